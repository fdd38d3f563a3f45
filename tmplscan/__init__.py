"""Parts for template-driven scanning: payloads, expressions, matchers, extractors, catalogs, output and template updates."""

__version__ = "2.3.2"
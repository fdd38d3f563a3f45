# tmplscan

`tmplscan` is a library of the parts a template-driven scanner is built from.
It uses only the standard library and needs Python 3.10 or later.

## What is in it

| Module | What it does |
| --- | --- |
| `tmplscan.replacer` | `replace(template, values)` substitutes `{{name}}` and `§name§` markers in one pass; `to_string(value)` renders values the way templates see them. |
| `tmplscan.compare` | `string_slice` and `string_map`: case-insensitive equality of string lists and string maps. |
| `tmplscan.colorizer` | `Aurora` applies ANSI styles (or passes text through when colours are off); `severity_colors(aurora)` gives the coloured label for `info`, `low`, `medium`, `high` and `critical`. |
| `tmplscan.generators` | `Generator` validates and loads payload lists (inline lists, multi-line strings or wordlist files) and hands out `PayloadIterator`s for `AttackType.SNIPER`, `PITCHFORK` and `CLUSTERBOMB`. Also `load_payloads`, `load_payloads_from_file`, `merge_maps`, `expand_map_values`, `copy_map_with_default_value` and `trim_delimiters`. Invalid payloads raise `PayloadError`. |
| `tmplscan.evaluator` | `Expression`, a small expression language: float numbers, quoted strings, booleans, variables, arithmetic, comparison, regex (`=~`, `!~`), logical and bitwise operators, `IN`, `?:`, `??` and function calls. Failures raise `ExpressionError`. |
| `tmplscan.dsl` | `helper_functions()` returns the functions expressions can call: string handling (`len`, `toupper`, `replace`, `replace_regex`, `trim*`, `reverse`, `contains`, `regex`), encoding (`base64`, `base64_py`, `base64_decode`, `url_encode`, `url_decode`, `hex_encode`, `hex_decode`, `html_escape`, `html_unescape`), hashing (`md5`, `sha1`, `sha256`, `mmh3`), random data (`rand_char`, `rand_base`, `rand_text_*`, `rand_int`) and `waitfor`. `murmur3_32` is exposed on its own. |
| `tmplscan.expressions` | `evaluate(data, base)` substitutes values into text and evaluates each embedded `{{...}}` expression, leaving ones that fail untouched. |
| `tmplscan.matchers` | `Matcher` with word, regex, binary, status, size and DSL checks combined by an `and`/`or` condition, optional hex-encoded words and negation. Bad definitions raise `CompileError`. |
| `tmplscan.extractors` | `Extractor` pulls unique values out of text by regex group or out of a map by key (`kval`). |
| `tmplscan.operators` | `Operators` runs extractors then matchers over one piece of data with caller-supplied match and extract functions, returning an `OperatorResult` or `None`. |
| `tmplscan.catalog` | `Catalog` resolves template names, globs and directories to `.yaml` files, honouring the templates directory's `.nuclei-ignore` rules; `filter_excludes` drops paths matching exclude rules. Unresolvable paths raise `CatalogError`. |
| `tmplscan.output` | `StandardWriter` writes `ResultEvent`s to stdout as coloured lines or JSON, optionally copying them (without colours) to an output file, and keeps a JSON trace log of requests. `strip_colors` removes ANSI escapes. |
| `tmplscan.progress` | `StatsTicker` counts requests, matches and errors, prints a periodic status line to stderr when active, and can serve its figures as JSON at `/metrics` on `127.0.0.1`. `fmt_duration` formats elapsed seconds as `h:mm:ss`. |
| `tmplscan.projectfile` | `ProjectFile` stores `StoredResponse`s in an SQLite file keyed by the SHA-256 of the raw request (`request_hash`), so a request need not be sent twice. |
| `tmplscan.config` | `TemplatesConfig` and `read_configuration`/`write_configuration` for the JSON file in `~/.config/nuclei`; `read_ignore_file`, `ignore_file_path` and `banner()`. |
| `tmplscan.update` | `TemplateUpdater` downloads a release archive, writes its templates, records MD5 checksums and reports additions, modifications and deletions as `UpdateResults`; `update_templates` installs or updates against the latest released version. Also `parse_version`, `read_previous_checksum`, `write_checksum` and `changelog`. Failures raise `UpdateError`. |

## Examples

Evaluate helper expressions embedded in text:

```python
from tmplscan.expressions import evaluate

evaluate("{{hex_encode('PING')}}", {})                  # '50494e47'
evaluate("{{hex_encode(Item)}}\r\n", {"Item": "PING"})  # '50494e47\r\n'
```

Replace placeholders:

```python
from tmplscan.replacer import replace

replace("GET /{{path}} HTTP/1.1", {"path": "admin"})   # 'GET /admin HTTP/1.1'
```

Walk through payload combinations:

```python
from tmplscan.generators import AttackType, Generator

generator = Generator(
    {"user": ["admin"], "path": ["one", "two", "three"]},
    AttackType.CLUSTERBOMB,
    "",
)
for values in generator.new_iterator():
    print(values)   # three combinations
```

Match and extract:

```python
from tmplscan.extractors import Extractor
from tmplscan.matchers import Matcher

matcher = Matcher(type="word", words=["a", "b"], condition="and")
matcher.compile()
matcher.match_words("a b")   # True
matcher.match_words("b")     # False

extractor = Extractor(type="regex", regex=[r"id=(\d+)"], group=1)
extractor.compile()
extractor.extract_regex("id=12 id=34")   # ['12', '34']
```

Find templates on disk:

```python
from tmplscan.catalog import Catalog

catalog = Catalog("/path/to/templates", [])
for template in catalog.get_templates_path(["cves/", "misc/*.yaml"]):
    print(template)
```

Write results:

```python
from tmplscan.output import ResultEvent, StandardWriter

with StandardWriter(True, False, False, "results.txt", "") as writer:
    writer.write(ResultEvent(template_id="example", type="http", matched="http://localhost/"))
```

## What it does not do

`tmplscan` has no command-line program and installs no commands. It does not
parse template files, send HTTP, DNS or network requests, run workflows,
cluster similar templates or rate-limit a scan; those are left to the code
that uses these parts. The only network access it makes itself is the template
update in `tmplscan.update` and the optional metrics server in
`tmplscan.progress`.
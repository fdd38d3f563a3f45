"""A persistent cache of HTTP responses keyed by the raw request."""

from __future__ import annotations

import base64
import hashlib
import json
import os
import shutil
import sqlite3
import tempfile
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Union

_DB_NAME = "project.db"

RawRequest = Union[bytes, bytearray, str]


def _as_bytes(request: RawRequest) -> bytes:
    if isinstance(request, str):
        return request.encode("utf-8")
    return bytes(request)


def request_hash(request: RawRequest) -> str:
    """Return the hex SHA-256 of a raw request, used as its cache key."""
    return hashlib.sha256(_as_bytes(request)).hexdigest()


@dataclass
class StoredResponse:
    """An HTTP response as kept in the project file."""

    status_code: int = 0
    status_reason: str = ""
    headers: dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""
    http_major: int = 1
    http_minor: int = 1

    @property
    def content_length(self) -> int:
        """The length of the body in bytes."""
        return len(self.body)

    @classmethod
    def from_http_response(cls, response: Any, body: bytes) -> "StoredResponse":
        """Build from an ``http.client.HTTPResponse`` and its already-read body."""
        headers: dict[str, list[str]] = {}
        for name, value in response.headers.items():
            headers.setdefault(name, []).append(value)
        major, minor = divmod(int(getattr(response, "version", 11)), 10)
        return cls(
            status_code=response.status,
            status_reason=f"{response.status} {response.reason}".rstrip(),
            headers=headers,
            body=bytes(body),
            http_major=major,
            http_minor=minor,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "http_major": self.http_major,
            "http_minor": self.http_minor,
            "status_code": self.status_code,
            "status_reason": self.status_reason,
            "headers": self.headers,
            "body": base64.b64encode(self.body).decode("ascii"),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredResponse":
        return cls(
            status_code=data["status_code"],
            status_reason=data["status_reason"],
            headers={key: list(values) for key, values in data["headers"].items()},
            body=base64.b64decode(data["body"]),
            http_major=data["http_major"],
            http_minor=data["http_minor"],
        )


class ProjectFile:
    """Stores responses on disk so identical requests need not be resent."""

    def __init__(self, path: str = "", cleanup: bool = False) -> None:
        self._created = not path
        self.path = path or tempfile.mkdtemp(prefix="projectfile-")
        os.makedirs(self.path, exist_ok=True)
        self.cleanup = cleanup
        self._lock = threading.Lock()
        self._db: Optional[sqlite3.Connection] = sqlite3.connect(
            os.path.join(self.path, _DB_NAME), check_same_thread=False
        )
        with self._db:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS records (hash TEXT PRIMARY KEY, data BLOB NOT NULL)"
            )

    def _connection(self) -> sqlite3.Connection:
        if self._db is None:
            raise ValueError("project file is closed")
        return self._db

    def get(self, request: RawRequest) -> StoredResponse:
        """Return the stored response for ``request``; raise KeyError if absent."""
        key = request_hash(request)
        with self._lock:
            row = self._connection().execute(
                "SELECT data FROM records WHERE hash = ?", (key,)
            ).fetchone()
        if row is None:
            raise KeyError("not found")
        record = json.loads(row[0])
        return StoredResponse.from_dict(record["response"])

    def set(self, request: RawRequest, response: StoredResponse) -> None:
        """Store ``response`` as the answer to ``request``."""
        raw = _as_bytes(request)
        record = {
            "request": base64.b64encode(raw).decode("ascii"),
            "response": response.to_dict(),
        }
        data = json.dumps(record).encode("utf-8")
        with self._lock:
            db = self._connection()
            with db:
                db.execute(
                    "INSERT OR REPLACE INTO records (hash, data) VALUES (?, ?)",
                    (request_hash(raw), data),
                )

    def close(self) -> None:
        """Close the store, removing it from disk when cleanup is set."""
        with self._lock:
            if self._db is None:
                return
            self._db.close()
            self._db = None
        if not self.cleanup:
            return
        if self._created:
            shutil.rmtree(self.path, ignore_errors=True)
        else:
            try:
                os.remove(os.path.join(self.path, _DB_NAME))
            except FileNotFoundError:
                pass

    def __enter__(self) -> "ProjectFile":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
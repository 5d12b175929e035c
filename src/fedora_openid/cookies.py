"""Cookie jar for OpenID sessions that can be persisted on disk between runs."""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from http.cookiejar import Cookie, CookieJar
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

import httpx

from fedora_openid.exceptions import (
    CookieCacheDoesNotExist,
    CookieCacheError,
    CookieCacheFileSystemError,
    CookieCacheSerializationError,
)
from fedora_openid.models import CookieRecord

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

URLTypes = Union[httpx.URL, str]


class _ReadWriteLock:
    """Lets any number of readers in at once, writers get exclusive access.

    Waiting writers block new readers, so a steady stream of lookups can't
    starve cookie ingestion. The lock is not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _cookie_from_record(record: CookieRecord) -> Cookie:
    domain = record.domain if record.host_only else "." + record.domain.lstrip(".")
    return Cookie(
        version=0,
        name=record.name,
        value=record.value,
        port=None,
        port_specified=False,
        domain=domain,
        domain_specified=not record.host_only,
        domain_initial_dot=not record.host_only,
        path=record.path,
        path_specified=True,
        secure=record.secure,
        expires=record.expires.timestamp() if record.expires else None,
        discard=record.expires is None,
        comment=None,
        comment_url=None,
        rest={},
    )


def _record_from_cookie(cookie: Cookie) -> CookieRecord:
    expires = None
    if cookie.expires is not None:
        expires = datetime.fromtimestamp(cookie.expires, timezone.utc)
    return CookieRecord(
        name=cookie.name,
        value=cookie.value or "",
        expires=expires,
        domain=cookie.domain.lstrip(".") if cookie.domain_specified else cookie.domain,
        path=cookie.path,
        secure=cookie.secure,
        host_only=not cookie.domain_specified,
    )


def _record_to_dict(record: CookieRecord) -> dict[str, Any]:
    return {
        "name": record.name,
        "value": record.value,
        "expires": record.expires.isoformat() if record.expires else None,
        "domain": record.domain,
        "path": record.path,
        "secure": record.secure,
        "host_only": record.host_only,
    }


def _record_from_dict(data: dict[str, Any]) -> CookieRecord:
    name = data["name"]
    value = data["value"]
    if not isinstance(name, str) or not isinstance(value, str):
        raise TypeError("cookie name and value must be strings")

    expires = data.get("expires")
    return CookieRecord(
        name=name,
        value=value,
        expires=_as_utc(datetime.fromisoformat(expires)) if expires else None,
        domain=str(data.get("domain", "")),
        path=str(data.get("path", "/")),
        secure=bool(data.get("secure", False)),
        host_only=bool(data.get("host_only", True)),
    )


class CachingJar(CookieJar):
    """Thread-safe cookie jar with an on-disk JSON snapshot.

    Parsing and scoping of cookies is left to ``http.cookiejar`` and its
    default policy. Pass the jar as ``cookies=`` to an ``httpx.Client`` and
    every request, redirects included, reads and writes through it.

    The jar also follows the usual cookie provider shape: ``cookies(url)``
    returns the Cookie header for an outgoing request and
    ``set_cookies(headers, url)`` ingests Set-Cookie headers from a response.
    """

    def __init__(self, records: Iterable[CookieRecord] = (), login_url: Optional[str] = None) -> None:
        super().__init__()
        self.login_url = login_url
        self._lock = _ReadWriteLock()
        for record in records:
            self.set_cookie(_cookie_from_record(record))

    @classmethod
    def empty(cls, login_url: Optional[str] = None) -> "CachingJar":
        return cls(login_url=login_url)

    @classmethod
    def load(cls, path: Path) -> "CachingJar":
        """Read a jar from disk.

        Expired cookies are kept, so ``is_fresh()`` can tell that the
        snapshot is stale, but they are never sent with requests.
        """
        path = Path(path)
        try:
            raw = path.read_bytes()
        except FileNotFoundError as e:
            raise CookieCacheDoesNotExist() from e
        except OSError as e:
            raise CookieCacheFileSystemError(f"Failed to read cookie cache from disk: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict):
                raise TypeError("cookie cache is not a JSON object")
            login_url = data.get("login_url")
            if login_url is not None and not isinstance(login_url, str):
                raise TypeError("login_url must be a string")
            records = [_record_from_dict(item) for item in data["cookies"]]
        except (ValueError, KeyError, TypeError) as e:
            raise CookieCacheSerializationError(f"Failed to deserialize cookie cache: {e}") from e

        jar = cls(records, login_url=login_url)
        logger.debug("Loaded %d cookie(s) from %s", len(jar), path)
        return jar

    def save(self, path: Path) -> None:
        """Write the jar to disk, replacing any previous snapshot atomically."""
        path = Path(path)
        snapshot = self.to_dict()

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(snapshot, f, indent=2)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CookieCacheFileSystemError(f"Failed to write cookie cache to disk: {e}") from e

        logger.debug("Wrote %d cookie(s) to %s", len(snapshot["cookies"]), path)

    def try_save(self, path: Path) -> bool:
        """Like save(), but log failures instead of raising them."""
        try:
            self.save(path)
        except CookieCacheError as e:
            logger.warning("Failed to write cached cookies: %s", e.message)
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "login_url": self.login_url,
            "cookies": [_record_to_dict(record) for record in self.records()],
        }

    def records(self) -> list[CookieRecord]:
        """Return a snapshot of all stored cookies, expired ones included."""
        return [_record_from_cookie(cookie) for cookie in self]

    def is_fresh(self, now: Optional[datetime] = None) -> bool:
        """True if no stored cookie has expired yet."""
        now = now or datetime.now(timezone.utc)
        return not any(record.is_expired(now) for record in self.records())

    def cookies(self, url: URLTypes) -> Optional[str]:
        """Return the Cookie header value for a request to ``url``, if any."""
        request = httpx.Request("GET", url)
        httpx.Cookies(self).set_cookie_header(request)
        return request.headers.get("Cookie")

    def set_cookies(self, cookie_headers: Iterable[str], url: URLTypes) -> None:
        """Store cookies from the Set-Cookie headers of a response from ``url``."""
        response = httpx.Response(
            200,
            headers=[("Set-Cookie", header) for header in cookie_headers],
            request=httpx.Request("GET", url),
        )
        httpx.Cookies(self).extract_cookies(response)

    def __iter__(self) -> Iterator[Cookie]:
        with self._lock.read():
            return iter(list(super().__iter__()))

    def add_cookie_header(self, request: Any) -> None:
        with self._lock.read():
            super().add_cookie_header(request)

    def extract_cookies(self, response: Any, request: Any) -> None:
        with self._lock.write():
            for cookie in self.make_cookies(response, request):
                if self._policy.set_ok(cookie, request):
                    super().set_cookie(cookie)

    def set_cookie(self, cookie: Cookie) -> None:
        with self._lock.write():
            super().set_cookie(cookie)

    def clear_expired_cookies(self) -> None:
        """Expired cookies stay in the jar until replaced, they are only skipped when sending."""

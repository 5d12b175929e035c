"""Session manager for building OpenID-authenticated Fedora sessions."""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from fedora_openid.client import OpenIDClient
from fedora_openid.cookies import CachingJar
from fedora_openid.exceptions import CookieCacheDoesNotExist, CookieCacheError
from fedora_openid.models import OpenIDParameters, SessionConfig
from fedora_openid.storage import Storage

logger = logging.getLogger(__name__)

__version__ = "0.1.0"

FEDORA_USER_AGENT = f"fedora-openid v{__version__}"


def load_cached_jar(storage: Storage, login_url: str) -> Optional[CachingJar]:
    """Return the cached cookies if they belong to ``login_url`` and are still fresh.

    Any problem with the cache is logged and treated as a miss.
    """
    try:
        jar = CachingJar.load(storage.cookie_cache_path)
    except CookieCacheDoesNotExist:
        logger.info("Creating new cookie cache.")
        return None
    except CookieCacheError as e:
        logger.warning("Failed to load cached cookies: %s", e.message)
        return None

    if jar.login_url != login_url:
        logger.info("Login URLs don't match. Not reusing cached cookies.")
        return None

    if not jar.is_fresh():
        logger.info("Cached cookies are expired.")
        return None

    return jar


@dataclass
class OpenIDSession:
    """An httpx client carrying the cookies of a successful OpenID login.

    ``params`` holds what the provider returned for the login, or None if
    cached cookies were reused and no login happened.
    """

    client: httpx.Client
    jar: CachingJar
    params: Optional[OpenIDParameters] = None

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "OpenIDSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class SessionManager:
    """Coordinates the cookie cache and the OpenID login."""

    def __init__(
        self,
        config: SessionConfig,
        storage: Storage | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config
        self._storage = storage or Storage()
        self._transport = transport

    def build(self) -> OpenIDSession:
        """Return an authenticated session, logging in only if no fresh cookies are cached."""
        config = self.config
        auth_url = config.resolve_auth_url()

        jar = load_cached_jar(self._storage, config.login_url) if config.cache_cookies else None
        if jar is not None:
            logger.info("Reusing cached session cookies for %s", config.login_url)
            return OpenIDSession(client=self._build_client(jar, follow_redirects=True), jar=jar)

        jar = CachingJar.empty(config.login_url)

        with self._build_client(jar, follow_redirects=False) as login_client:
            openid = OpenIDClient(login_client, auth_url, max_redirects=config.max_redirects)
            params = openid.login(config.login_url, config.username, config.password, config.otp)

        if config.cache_cookies:
            jar.try_save(self._storage.cookie_cache_path)

        return OpenIDSession(
            client=self._build_client(jar, follow_redirects=True),
            jar=jar,
            params=params,
        )

    def _build_client(self, jar: CachingJar, follow_redirects: bool) -> httpx.Client:
        headers = {
            "User-Agent": self.config.user_agent or FEDORA_USER_AGENT,
            "Accept": "application/json",
        }
        return httpx.Client(
            headers=headers,
            cookies=jar,
            timeout=self.config.timeout,
            follow_redirects=follow_redirects,
            transport=self._transport,
        )

"""Shared pytest fixtures for the fedora-openid test suite."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qsl

import httpx
import pytest

from fedora_openid.models import FEDORA_OPENID_API, CookieRecord, SessionConfig
from fedora_openid.storage import Storage


LOGIN_URL = "https://bodhi.fedoraproject.org/login"
PROVIDER_LOGIN_URL = "https://id.fedoraproject.org/openid/?openid.mode=checkid_setup&foo=bar"
RETURN_TO = "https://bodhi.fedoraproject.org/login?openid_complete=yes"


def form_data(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body."""
    return dict(parse_qsl(request.content.decode("utf-8"), keep_blank_values=True))


class FakeFedora:
    """Plays both the web service and the OpenID provider for one login."""

    def __init__(self, return_to: str = RETURN_TO, auth_body: object = None, handshake_status: int = 302) -> None:
        self.return_to = return_to
        self.auth_body = auth_body if auth_body is not None else {
            "success": True,
            "response": {
                "openid.assoc_handle": "handle",
                "openid.claimed_id": "https://jdoe.id.fedoraproject.org/",
                "openid.identity": "https://jdoe.id.fedoraproject.org/",
                "openid.mode": "id_res",
                "openid.return_to": return_to,
                "openid.sig": "signature",
                "openid.sreg.nickname": "jdoe",
                "openid.sreg.email": "jdoe@fedoraproject.org",
            },
        }
        self.handshake_status = handshake_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = request.url

        if request.method == "GET" and str(url) == LOGIN_URL:
            return httpx.Response(
                302,
                headers=[
                    ("Location", PROVIDER_LOGIN_URL),
                    ("Set-Cookie", "bodhi_session=pre-login; Path=/; Max-Age=3600"),
                ],
            )

        if request.method == "GET" and url.host == "id.fedoraproject.org" and url.path == "/openid/":
            return httpx.Response(200, text="<html>login form</html>")

        if request.method == "POST" and str(url) == FEDORA_OPENID_API:
            return httpx.Response(200, json=self.auth_body)

        if request.method == "POST" and str(url) == self.return_to:
            headers = [("Set-Cookie", "auth_tkt=ticket; Path=/; Max-Age=3600")]
            if self.handshake_status in (301, 302, 303):
                headers.append(("Location", f"{url.scheme}://{url.host}/"))
            return httpx.Response(self.handshake_status, headers=headers)

        return httpx.Response(200, json={"path": url.path})

    def posts(self) -> list[httpx.Request]:
        return [request for request in self.requests if request.method == "POST"]


@pytest.fixture
def fake_fedora() -> FakeFedora:
    """Returns a fake Fedora service that accepts any login."""
    return FakeFedora()


@pytest.fixture
def tmp_storage(tmp_path) -> Storage:
    """Returns a Storage instance using a temporary directory."""
    return Storage(base_path=tmp_path)


@pytest.fixture
def session_config() -> SessionConfig:
    """Returns a SessionConfig for the fake Bodhi login URL."""
    return SessionConfig(
        login_url=LOGIN_URL,
        username="jdoe",
        password="hunter2",
    )


@pytest.fixture
def future() -> datetime:
    """Returns a timestamp one hour from now."""
    return datetime.now(timezone.utc) + timedelta(hours=1)


@pytest.fixture
def past() -> datetime:
    """Returns a timestamp one hour ago."""
    return datetime.now(timezone.utc) - timedelta(hours=1)


@pytest.fixture
def bodhi_cookie(future) -> CookieRecord:
    """Returns a persistent cookie scoped to bodhi.fedoraproject.org."""
    return CookieRecord(
        name="auth_tkt",
        value="cached-ticket",
        expires=future,
        domain="bodhi.fedoraproject.org",
        path="/",
    )

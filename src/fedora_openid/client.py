"""OpenID client for logging in against the Fedora identity provider."""

import logging
from typing import Optional

import httpx

from fedora_openid.exceptions import (
    AuthenticationRejected,
    AuthenticationTransportError,
    HandshakeRejected,
    InvalidRedirectUrl,
    InvalidReturnUrl,
    LoginFailed,
    MissingRedirectTarget,
    RequestError,
    TooManyRedirects,
    UndecodableRedirectTarget,
    UrlParsingError,
)
from fedora_openid.models import DEFAULT_MAX_REDIRECTS, OpenIDParameters, OpenIDResponse

logger = logging.getLogger(__name__)

AUTH_MODULE = "fedoauth.auth.fas.Auth_FAS"
AUTH_FLOW = "fedora"
DEFAULT_OPENID_MODE = "checkid_setup"


def parse_url(value: str, base: Optional[httpx.URL] = None) -> Optional[httpx.URL]:
    """Parse an absolute http(s) URL, resolving relative ones against ``base``.

    Returns None if the value is not usable as a request URL.
    """
    try:
        url = httpx.URL(value)
        if base is not None:
            url = base.join(url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None

    if url.scheme not in ("http", "https") or not url.host:
        return None
    return url


def build_login_form(
    state: dict[str, str],
    username: str,
    password: str,
    otp: Optional[str] = None,
) -> dict[str, str]:
    """Combine the discovered parameters with the user's credentials."""
    form = dict(state)
    form["username"] = username
    # FAS expects the one-time password appended to the regular one
    form["password"] = f"{password}{otp}" if otp else password
    form["auth_module"] = AUTH_MODULE
    form["auth_flow"] = AUTH_FLOW
    form.setdefault("openid.mode", DEFAULT_OPENID_MODE)
    return form


class OpenIDClient:
    """Runs the OpenID ``checkid_setup`` handshake over a given httpx client.

    The client must not follow redirects on its own, every hop of the
    discovery phase is inspected here.
    """

    def __init__(
        self,
        client: httpx.Client,
        auth_url: str,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
    ) -> None:
        self._client = client
        self.auth_url = auth_url
        self.max_redirects = max_redirects
        self._last_response: Optional[httpx.Response] = None
        client.event_hooks["response"].append(self._remember_response)

    def login(
        self,
        login_url: str,
        username: str,
        password: str,
        otp: Optional[str] = None,
    ) -> OpenIDParameters:
        """Run the full login and return the parameters sent by the provider."""
        state = self.walk_redirects(login_url)
        form = build_login_form(state, username, password, otp)

        logger.debug("Submitting credentials to %s", self.auth_url)
        params = self.submit_credentials(form)

        logger.debug("Completing OpenID handshake with %s", params.return_to)
        self.complete_handshake(params)

        logger.info("Authenticated via OpenID as %s", params.sreg_nickname or username)
        return params

    def walk_redirects(self, login_url: str) -> dict[str, str]:
        """Follow redirects from ``login_url`` and collect every query parameter seen."""
        url = parse_url(login_url)
        if url is None:
            raise UrlParsingError(login_url, "Failed to parse login URL")

        state: dict[str, str] = {}
        redirects = 0

        while True:
            response = self._get(url)

            for key, value in url.params.multi_items():
                state[key] = value

            if not httpx.codes.is_redirect(response.status_code):
                break

            if redirects >= self.max_redirects:
                raise TooManyRedirects(self.max_redirects)

            url = self._redirect_target(response, url)
            redirects += 1
            logger.debug("Following redirect %d to %s://%s%s", redirects, url.scheme, url.host, url.path)

        return state

    def submit_credentials(self, form: dict[str, str]) -> OpenIDParameters:
        """POST the login form to the OpenID endpoint and parse its answer."""
        try:
            response = self._client.post(self.auth_url, data=form)
        except httpx.RequestError as e:
            raise AuthenticationTransportError(str(e)) from e

        # the only sign of wrong credentials is a response that is not JSON
        try:
            data = response.json()
        except ValueError as e:
            raise LoginFailed() from e

        openid_response = OpenIDResponse.from_dict(data)
        if not openid_response.success or openid_response.response is None:
            raise AuthenticationRejected()

        return openid_response.response

    def complete_handshake(self, params: OpenIDParameters) -> httpx.Response:
        """POST the provider's signed parameters back to the original site."""
        return_url = parse_url(params.return_to)
        if return_url is None:
            raise InvalidReturnUrl(params.return_to)

        try:
            response = self._client.post(return_url, data=params.to_form())
        except httpx.RequestError as e:
            raise RequestError(f"Failed to contact OpenID provider: {e}") from e

        status = response.status_code
        if not httpx.codes.is_success(status) and not httpx.codes.is_redirect(status):
            raise HandshakeRejected(status)

        return response

    def _remember_response(self, response: httpx.Response) -> None:
        self._last_response = response

    def _get(self, url: httpx.URL) -> httpx.Response:
        self._last_response = None
        try:
            return self._client.get(url)
        except httpx.RemoteProtocolError as e:
            # httpx rejects an unparseable Location while receiving the redirect
            response = self._last_response
            if response is not None and httpx.codes.is_redirect(response.status_code):
                self._redirect_target(response, url)
            raise RequestError(f"Failed to contact OpenID provider: {e}") from e
        except httpx.RequestError as e:
            raise RequestError(f"Failed to contact OpenID provider: {e}") from e

    def _redirect_target(self, response: httpx.Response, current: httpx.URL) -> httpx.URL:
        locations = [value for key, value in response.headers.raw if key.lower() == b"location"]
        if not locations:
            raise MissingRedirectTarget()

        try:
            location = locations[0].decode("ascii")
        except UnicodeDecodeError as e:
            raise UndecodableRedirectTarget() from e

        target = parse_url(location.strip(), base=current)
        if target is None:
            raise InvalidRedirectUrl(location)
        return target

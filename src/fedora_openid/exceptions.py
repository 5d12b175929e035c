"""Custom exceptions for the fedora-openid library."""


class FedoraError(Exception):
    """Base exception for all fedora-openid errors."""

    def __init__(self, message: str = "An error occurred while talking to Fedora services") -> None:
        self.message = message
        super().__init__(self.message)


class RequestError(FedoraError):
    """Raised when an HTTP request fails at the transport level."""

    def __init__(self, message: str = "Failed to contact OpenID provider") -> None:
        super().__init__(message)


class UrlParsingError(FedoraError):
    """Raised when a URL encountered during login cannot be parsed."""

    def __init__(self, url: str | None = None, message: str = "Failed to parse URL") -> None:
        if url is not None:
            message = f"{message}: {url!r}"
        super().__init__(message)
        self.url = url


class InvalidRedirectUrl(UrlParsingError):
    """Raised when a redirect target is not a valid URL."""

    def __init__(self, url: str | None = None) -> None:
        super().__init__(url, "Failed to parse redirection URL")


class InvalidReturnUrl(UrlParsingError):
    """Raised when the provider's openid.return_to is not a valid URL."""

    def __init__(self, url: str | None = None) -> None:
        super().__init__(url, "Failed to parse OpenID return URL")


class RedirectionError(FedoraError):
    """Raised when an HTTP redirect can not be followed."""

    def __init__(self, message: str = "Invalid HTTP redirect") -> None:
        super().__init__(message)


class MissingRedirectTarget(RedirectionError):
    """Raised when a redirect response has no Location header."""

    def __init__(self, message: str = "No redirect URL provided in HTTP redirect headers.") -> None:
        super().__init__(message)


class UndecodableRedirectTarget(RedirectionError):
    """Raised when the Location header is not valid text."""

    def __init__(self, message: str = "Failed to decode redirect URL.") -> None:
        super().__init__(message)


class TooManyRedirects(RedirectionError):
    """Raised when the login URL redirects more often than allowed."""

    def __init__(self, max_redirects: int | None = None) -> None:
        if max_redirects is not None:
            message = f"Exceeded maximum number of redirects ({max_redirects})."
        else:
            message = "Exceeded maximum number of redirects."
        super().__init__(message)
        self.max_redirects = max_redirects


class AuthenticationError(FedoraError):
    """Raised when the provider or the original site rejects the login."""

    def __init__(self, message: str = "Failed to authenticate with OpenID service") -> None:
        super().__init__(message)


class AuthenticationTransportError(AuthenticationError):
    """Raised when the credentials could not be sent to the provider."""

    def __init__(self, error: str | None = None) -> None:
        message = "Failed to authenticate with OpenID service"
        if error:
            message = f"{message}: {error}"
        super().__init__(message)


class AuthenticationRejected(AuthenticationError):
    """Raised when the provider answers with success set to false."""

    def __init__(
        self, message: str = "Failed to authenticate with OpenID service: OpenID endpoint returned an error code."
    ) -> None:
        super().__init__(message)


class HandshakeRejected(AuthenticationError):
    """Raised when the original site does not accept the signed assertion."""

    def __init__(self, status_code: int | None = None) -> None:
        message = "Failed to complete authentication with the original site."
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)
        self.status_code = status_code


class DeserializationError(FedoraError):
    """Raised when the provider's JSON does not have the expected shape."""

    def __init__(self, message: str = "Failed to deserialize JSON returned by OpenID endpoint") -> None:
        super().__init__(message)


class LoginError(FedoraError):
    """Raised when the provider does not return JSON at all."""

    def __init__(
        self, message: str = "Authentication failed, possibly due to wrong username / password."
    ) -> None:
        super().__init__(message)


class LoginFailed(LoginError):
    """Raised when submitted credentials were not accepted."""


class CookieCacheError(FedoraError):
    """Raised when the on-disk cookie cache can't be used."""

    def __init__(self, message: str = "Failed to use on-disk cookie cache.") -> None:
        super().__init__(message)


class CookieCacheDoesNotExist(CookieCacheError):
    """Raised when no cookie cache file exists yet."""

    def __init__(self, message: str = "No existing cookie cache found.") -> None:
        super().__init__(message)


class CookieCacheFileSystemError(CookieCacheError):
    """Raised when reading or writing the cookie cache file fails."""

    def __init__(self, message: str = "Failed to access cookie cache on disk.") -> None:
        super().__init__(message)


class CookieCacheSerializationError(CookieCacheError):
    """Raised when the cookie cache can't be (de)serialized."""

    def __init__(self, message: str = "Failed to (de)serialize cookie cache.") -> None:
        super().__init__(message)

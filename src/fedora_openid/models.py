"""Data models for the fedora-openid library."""

import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from fedora_openid.exceptions import DeserializationError


FEDORA_OPENID_API = "https://id.fedoraproject.org/api/v1/"
FEDORA_OPENID_STG_API = "https://id.stg.fedoraproject.org/api/v1/"

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_REDIRECTS = 20


@dataclass(frozen=True)
class CookieRecord:
    """Represents a single cookie together with its scope."""

    name: str
    value: str
    expires: Optional[datetime] = None
    domain: str = ""
    path: str = "/"
    secure: bool = False
    host_only: bool = True

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Session cookies (no expiry) never expire."""
        if self.expires is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires <= now


# in-memory field name -> wire name
OPENID_WIRE_NAMES: dict[str, str] = {
    "assoc_handle": "openid.assoc_handle",
    "cla_signed_cla": "openid.cla.signed_cla",
    "claimed_id": "openid.claimed_id",
    "identity": "openid.identity",
    "lp_is_member": "openid.lp.is_member",
    "mode": "openid.mode",
    "ns": "openid.ns",
    "ns_cla": "openid.ns.cla",
    "ns_lp": "openid.ns.lp",
    "ns_sreg": "openid.ns.sreg",
    "op_endpoint": "openid.op_endpoint",
    "response_nonce": "openid.response_nonce",
    "return_to": "openid.return_to",
    "sig": "openid.sig",
    "signed": "openid.signed",
    "sreg_email": "openid.sreg.email",
    "sreg_nickname": "openid.sreg.nickname",
}


@dataclass
class OpenIDParameters:
    """OpenID parameters returned by the provider after a successful login.

    Only ``return_to`` is needed to complete the handshake. Everything the
    provider sends back is posted to that URL again, including fields that
    are not known here, which end up in ``extra``.
    """

    return_to: str
    assoc_handle: Optional[str] = None
    cla_signed_cla: Optional[str] = None
    claimed_id: Optional[str] = None
    identity: Optional[str] = None
    lp_is_member: Optional[str] = None
    mode: Optional[str] = None
    ns: Optional[str] = None
    ns_cla: Optional[str] = None
    ns_lp: Optional[str] = None
    ns_sreg: Optional[str] = None
    op_endpoint: Optional[str] = None
    response_nonce: Optional[str] = None
    sig: Optional[str] = None
    signed: Optional[str] = None
    sreg_email: Optional[str] = None
    sreg_nickname: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "OpenIDParameters":
        """Build parameters from the provider's ``response`` object."""
        if not isinstance(data, dict):
            raise DeserializationError(
                "Failed to deserialize JSON returned by OpenID endpoint: 'response' is not an object"
            )

        wire_to_field = {wire: name for name, wire in OPENID_WIRE_NAMES.items()}
        known: dict[str, str] = {}
        extra: dict[str, Any] = {}

        for key, value in data.items():
            name = wire_to_field.get(key)
            if name is None:
                extra[key] = value
                continue
            if not isinstance(value, str):
                raise DeserializationError(
                    f"Failed to deserialize JSON returned by OpenID endpoint: {key!r} is not a string"
                )
            known[name] = value

        if "return_to" not in known:
            raise DeserializationError(
                "Failed to deserialize JSON returned by OpenID endpoint: missing 'openid.return_to'"
            )

        return cls(extra=extra, **known)

    def to_form(self) -> dict[str, str]:
        """Return all parameters keyed by their wire names, ready to be form-encoded."""
        form: dict[str, str] = {}
        for f in fields(self):
            if f.name == "extra":
                continue
            value = getattr(self, f.name)
            if value is not None:
                form[OPENID_WIRE_NAMES[f.name]] = value

        for key, value in self.extra.items():
            form[key] = value if isinstance(value, str) else json.dumps(value)

        return form


@dataclass
class OpenIDResponse:
    """Represents the JSON envelope returned by the OpenID endpoint."""

    success: bool
    response: Optional[OpenIDParameters]

    @classmethod
    def from_dict(cls, data: Any) -> "OpenIDResponse":
        if not isinstance(data, dict):
            raise DeserializationError(
                "Failed to deserialize JSON returned by OpenID endpoint: expected an object"
            )

        success = data.get("success")
        if not isinstance(success, bool):
            raise DeserializationError(
                "Failed to deserialize JSON returned by OpenID endpoint: missing boolean 'success'"
            )

        # a failed login carries no usable parameters
        if not success:
            return cls(success=False, response=None)

        return cls(success=True, response=OpenIDParameters.from_dict(data.get("response")))


class SessionKind(str, Enum):
    """Which OpenID endpoint to authenticate against."""

    DEFAULT = "default"
    STAGING = "staging"
    CUSTOM = "custom"


@dataclass
class SessionConfig:
    """Everything needed to build an authenticated session."""

    login_url: str
    username: str
    password: str
    otp: Optional[str] = None
    kind: SessionKind = SessionKind.DEFAULT
    auth_url: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    user_agent: Optional[str] = None
    cache_cookies: bool = True
    max_redirects: int = DEFAULT_MAX_REDIRECTS

    def resolve_auth_url(self) -> str:
        """Return the authentication endpoint for the configured session kind."""
        if self.auth_url is not None:
            return self.auth_url
        if self.kind == SessionKind.DEFAULT:
            return FEDORA_OPENID_API
        if self.kind == SessionKind.STAGING:
            return FEDORA_OPENID_STG_API
        raise ValueError("auth_url is required for custom sessions")


@dataclass
class Config:
    """User configuration for the CLI."""

    username: Optional[str]
    kind: str
    timeout: float
    cache_cookies: bool

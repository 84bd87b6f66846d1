"""Who owns a cart: an authenticated account or an anonymous browser token."""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Literal

from spicecart.core.config import settings
from spicecart.domain.enums import Channel

IdentityKind = Literal["user", "anonymous"]


@dataclass(frozen=True)
class Identity:
    kind: IdentityKind
    user_id: str | None = None
    token: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.kind == "anonymous"

    @property
    def is_addressable(self) -> bool:
        """True when a cart can be looked up for this identity."""
        return bool(self.user_id) if self.kind == "user" else bool(self.token)

    @classmethod
    def user(cls, user_id: str) -> "Identity":
        return cls(kind="user", user_id=str(user_id))

    @classmethod
    def anonymous(cls, token: str | None = None) -> "Identity":
        return cls(kind="anonymous", token=token or None)


def cookie_name(channel: Channel) -> str:
    return settings.cart_cookie_name(Channel(channel).value)


def resolve_identity(
    channel: Channel,
    *,
    user_id: str | None,
    cookies: Mapping[str, str] | None = None,
) -> Identity:
    """Authenticated users win; otherwise read the channel's anonymous cookie."""
    if user_id:
        return Identity.user(user_id)
    token = (cookies or {}).get(cookie_name(channel))
    return Identity.anonymous(token)


def mint_token() -> str:
    return secrets.token_urlsafe(32)


def ensure_anonymous_token(identity: Identity) -> tuple[Identity, bool]:
    """Give a token-less anonymous caller a fresh token. Returns (identity, minted)."""
    if identity.kind == "user" or identity.token:
        return identity, False
    return replace(identity, token=mint_token()), True

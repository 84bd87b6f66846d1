"""Bearer token decoding for tokens issued by the external identity provider."""

from __future__ import annotations

from typing import Any

from jose import JWTError, jwt

from spicecart.core.config import settings

ALGORITHM = settings.IDENTITY_JWT_ALGORITHM


def _ensure_header_algorithm(token: str) -> None:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise JWTError("Invalid token header") from exc
    if header.get("alg") != ALGORITHM:
        raise JWTError("Token signed with unexpected algorithm")


def _candidate_secrets(primary: str | None, fallbacks: list[str]) -> list[str]:
    seen: list[str] = []
    for item in [primary, *fallbacks]:
        if item and item not in seen:
            seen.append(item)
    return seen


def _decode_with_rotation(token: str, primary: str | None, fallbacks: list[str]) -> dict[str, Any]:
    _ensure_header_algorithm(token)
    options = {"verify_aud": settings.IDENTITY_JWT_AUDIENCE is not None}
    last_error: JWTError | None = None
    for secret in _candidate_secrets(primary, fallbacks):
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=settings.IDENTITY_JWT_AUDIENCE,
                options=options,
            )
        except JWTError as exc:
            last_error = exc
    raise last_error or JWTError("Unable to decode token with provided secrets")


def decode_access_token(token: str) -> dict[str, Any]:
    data = _decode_with_rotation(token, settings.IDENTITY_JWT_SECRET, settings.IDENTITY_JWT_SECRET_FALLBACKS)
    if not data.get("sub"):
        raise JWTError("Token without subject")
    return data


def token_scopes(payload: dict[str, Any]) -> list[str]:
    scopes = payload.get("scopes") or []
    if isinstance(scopes, str):
        scopes = scopes.split()
    return [str(scope) for scope in scopes]

# spicecart/api/deps.py
from typing import Any

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from spicecart.core.security import decode_access_token, token_scopes
from spicecart.db.session_async import get_async_db, get_elevated_db
from spicecart.domain.enums import Channel
from spicecart.services.catalog_reader import CatalogReader, catalog_reader_for
from spicecart.services.identity import Identity, resolve_identity


# Tokens are issued by the external identity provider; this URL is for the docs only.
oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def get_token_payload(token: str | None = Depends(oauth2_scheme_optional)) -> dict[str, Any] | None:
    """Decoded claims of the bearer token, or None for anonymous callers."""
    if not token:
        return None
    try:
        return decode_access_token(token)
    except JWTError:
        return None


def get_identity(
    channel: Channel,
    request: Request,
    payload: dict[str, Any] | None = Depends(get_token_payload),
) -> Identity:
    user_id = str(payload["sub"]) if payload else None
    return resolve_identity(channel, user_id=user_id, cookies=request.cookies)


def get_catalog_reader(
    channel: Channel,
    db: AsyncSession = Depends(get_async_db),
    elevated_db: AsyncSession = Depends(get_elevated_db),
) -> CatalogReader:
    return catalog_reader_for(channel, db, elevated_db)


def get_current_admin(token: str = Depends(oauth2_scheme)) -> dict[str, Any]:
    cred_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise cred_exc
    if "admin" not in token_scopes(payload):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return payload

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from sqlpractice.core.config import settings


class TokenData(BaseModel):
    sub: str
    name: Optional[str] = None


bearer = HTTPBearer(auto_error=False)


def create_token(user_id: str, name: Optional[str] = None, ttl_minutes: Optional[int] = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.MOCK_TOKEN_TTL_MINUTES
    payload = {"sub": user_id, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl)).timestamp())}
    if name:
        payload["name"] = name
    if settings.AUTH_AUDIENCE:
        payload["aud"] = settings.AUTH_AUDIENCE
    if settings.AUTH_ISSUER:
        payload["iss"] = settings.AUTH_ISSUER
    return jwt.encode(payload, settings.AUTH_SECRET_KEY.get_secret_value(), algorithm=settings.AUTH_ALGORITHM)


def decode_token(token: str) -> TokenData:
    payload = jwt.decode(
        token,
        settings.AUTH_SECRET_KEY.get_secret_value(),
        algorithms=[settings.AUTH_ALGORITHM],
        audience=settings.AUTH_AUDIENCE,
        issuer=settings.AUTH_ISSUER,
        options={"require": ["sub", "exp"]},
    )
    return TokenData(sub=payload["sub"], name=payload.get("name"))


def get_current_user(creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer)) -> TokenData:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    try:
        return decode_token(creds.credentials)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

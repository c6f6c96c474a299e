from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from sqlpractice.core.auth import create_token
from sqlpractice.core.config import settings

router = APIRouter()


class MockLogin(BaseModel):
    user_id: str
    name: Optional[str] = None


@router.post("/mock-login")
def mock_login(payload: MockLogin):
    if not settings.MOCK_LOGIN_ENABLED or settings.is_production():
        raise HTTPException(404, "Not Found")
    token = create_token(payload.user_id, payload.name)
    return {"access_token": token, "token_type": "bearer"}

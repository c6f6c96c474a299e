from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_serializer
from sqlalchemy.orm import Session

from sqlpractice.core.auth import TokenData, get_current_user
from sqlpractice.core.database import get_db
from sqlpractice.services import progress

router = APIRouter()


class SubjectProgress(BaseModel):
    name: str
    solved: int
    failed: int
    lastActivity: Optional[datetime] = None

    @field_serializer("lastActivity")
    def utc_activity(self, value: Optional[datetime]) -> Optional[datetime]:
        return progress.as_utc(value)


class UserDetails(BaseModel):
    id: int
    clerkUserId: str
    name: Optional[str] = None
    createdAt: Optional[datetime] = None
    totalSolved: int
    totalFailed: int
    subjectProgress: List[SubjectProgress]

    @field_serializer("createdAt")
    def utc_created(self, value: Optional[datetime]) -> Optional[datetime]:
        return progress.as_utc(value)


class AttemptRow(BaseModel):
    questionId: str
    subject: str
    difficulty: str
    verdict: str
    attemptedAt: Optional[datetime] = None
    cooldownUntil: Optional[datetime] = None
    failureCount: int
    locked: bool

    @field_serializer("attemptedAt", "cooldownUntil")
    def utc_times(self, value: Optional[datetime]) -> Optional[datetime]:
        return progress.as_utc(value)


@router.get("/details", response_model=UserDetails)
def get_user_details(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return UserDetails(**progress.user_details(db, user.sub, user.name))


@router.get("/attempts", response_model=List[AttemptRow])
def get_user_attempts(user: TokenData = Depends(get_current_user), db: Session = Depends(get_db)):
    return [AttemptRow(**row) for row in progress.list_attempts(db, user.sub)]

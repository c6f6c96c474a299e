import logging
from datetime import datetime
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sqlpractice.core.config import settings
from sqlpractice.core.database import get_db
from sqlpractice.models.orm import Verdict
from sqlpractice.services import progress
from sqlpractice.services.grading import asked_follow_up, classify_verdict
from sqlpractice.services.llm import FeedbackClient, FeedbackError, get_feedback_client
from sqlpractice.services.prompts import Submission, Turn, build_prompt

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatTurn(BaseModel):
    role: str = Field(..., description="'user' or 'assistant'")
    content: str


class EvaluateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = None
    schema_text: Optional[str] = Field(default=None, alias="schema")
    user_query: Optional[str] = Field(default=None, alias="userQuery")
    follow_up: bool = Field(default=False, alias="followUp")
    conversation_history: Optional[List[ChatTurn]] = Field(default=None, alias="conversationHistory")
    user_response: Optional[str] = Field(default=None, alias="userResponse")
    question_id: Optional[Union[int, str]] = Field(default=None, alias="questionId")
    difficulty: Optional[str] = None
    topic: Optional[str] = None
    clerk_user_id: Optional[str] = Field(default=None, alias="clerkUserId")
    attempt_number: Optional[int] = Field(default=None, alias="attemptNumber")
    is_correct: bool = Field(default=False, alias="isCorrect")
    has_asked_follow_up: bool = Field(default=False, alias="hasAskedFollowUp")

    @field_validator("follow_up", "is_correct", "has_asked_follow_up", mode="before")
    @classmethod
    def null_flag_is_false(cls, v):
        return False if v is None else v


class EvaluateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    feedback: str
    cooldown: bool
    cooldown_until: Optional[datetime] = Field(default=None, alias="cooldownUntil")
    is_correct: Optional[bool] = Field(default=None, alias="isCorrect")
    has_asked_follow_up: Optional[bool] = Field(default=None, alias="hasAskedFollowUp")
    attempt_number: Optional[int] = Field(default=None, alias="attemptNumber")

    @field_serializer("cooldown_until")
    def utc_cooldown(self, value: Optional[datetime]) -> Optional[datetime]:
        return progress.as_utc(value)


def _to_submission(payload: EvaluateRequest) -> Submission:
    return Submission(
        question=payload.question,
        schema=payload.schema_text,
        user_query=payload.user_query,
        follow_up=payload.follow_up,
        conversation_history=[Turn(t.role, t.content) for t in payload.conversation_history or []],
        user_response=payload.user_response,
        attempt_number=payload.attempt_number,
        is_correct=payload.is_correct,
        has_asked_follow_up=payload.has_asked_follow_up,
        max_attempts=settings.MAX_ATTEMPTS,
        cooldown_hours=settings.COOLDOWN_HOURS,
    )


def _check_cooldown(db: Session, payload: EvaluateRequest) -> Optional[EvaluateResponse]:
    try:
        now = progress.utcnow()
        until = progress.active_cooldown(db, payload.clerk_user_id, payload.question_id, now)
    except SQLAlchemyError as e:
        logger.error(f"Cooldown check error: {e}", exc_info=True)
        db.rollback()
        return None
    if until is None:
        return None
    return EvaluateResponse(feedback=progress.cooldown_message(until, now), cooldown=True, cooldown_until=until)


@router.post("/evaluate-sql", response_model=EvaluateResponse, response_model_exclude_none=True)
def evaluate_sql(
    payload: EvaluateRequest,
    db: Session = Depends(get_db),
    evaluator: FeedbackClient = Depends(get_feedback_client),
):
    if not payload.question or not payload.schema_text or not payload.user_query:
        raise HTTPException(400, "Missing required fields")

    try:
        if not payload.follow_up and payload.clerk_user_id and payload.question_id is not None:
            cooldown = _check_cooldown(db, payload)
            if cooldown:
                return cooldown

        submission = _to_submission(payload)
        feedback = evaluator.complete(build_prompt(submission))
        verdict = classify_verdict(feedback)
        current_attempt = submission.current_attempt
        follow_up_asked = asked_follow_up(feedback, verdict, payload.follow_up)

        locked = False
        cooldown_until = None
        tracked = (
            payload.clerk_user_id and payload.question_id is not None
            and payload.difficulty and payload.topic and not payload.follow_up
        )
        if tracked:
            try:
                outcome = progress.record_submission(
                    db, payload.clerk_user_id, payload.question_id, payload.difficulty, payload.topic,
                    verdict, current_attempt,
                )
                locked = outcome.locked
                cooldown_until = outcome.cooldown_until
                if locked:
                    feedback += progress.lock_notice(settings.COOLDOWN_HOURS)
            except SQLAlchemyError as e:
                logger.error(f"Database error while recording submission: {e}", exc_info=True)
                db.rollback()

        return EvaluateResponse(
            feedback=feedback,
            cooldown=locked,
            cooldown_until=cooldown_until,
            is_correct=verdict == Verdict.PASS,
            has_asked_follow_up=follow_up_asked,
            attempt_number=payload.attempt_number if payload.follow_up else current_attempt,
        )
    except FeedbackError as e:
        logger.error("Evaluator unavailable: %s", e)
        raise HTTPException(500, "Failed to evaluate query")
    except Exception as e:
        logger.exception("Error evaluating SQL: %s", e)
        raise HTTPException(500, "Failed to evaluate query")

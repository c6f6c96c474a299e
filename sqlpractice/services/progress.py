"""
Attempt progression, cooldown locking and per-subject progress summaries.
"""
import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from sqlpractice.core.config import settings
from sqlpractice.models.orm import (
    Question, Subject, User, UserQuestionAttempt, UserSubjectSummary, Verdict,
)
from sqlpractice.services.grading import map_difficulty

logger = logging.getLogger(__name__)


@dataclass
class AttemptOutcome:
    verdict: Verdict
    failure_count: int
    cooldown_until: Optional[datetime]
    locked: bool


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a stored naive timestamp so it serializes with an offset."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def slugify(topic: str) -> str:
    return re.sub(r"\s+", "-", topic.lower())


def question_key(question_id: Any) -> str:
    return f"{settings.QUESTION_ID_PREFIX}{question_id}"


def hours_left(cooldown_until: datetime, now: datetime) -> int:
    return math.ceil((cooldown_until - now).total_seconds() / 3600)


def cooldown_message(cooldown_until: datetime, now: datetime) -> str:
    return (
        "⏳ **COOLDOWN ACTIVE**\n\n"
        f"You failed this question previously. You can retry after **{hours_left(cooldown_until, now)} hours**.\n\n"
        "Use this time to:\n"
        "- Review SQL concepts\n"
        "- Practice similar problems\n"
        "- Study the schema carefully\n\n"
        "Come back stronger! 💪"
    )


def lock_notice(cooldown_hours: int) -> str:
    return (
        f"\n\n⏳ **Question locked for {cooldown_hours} hours**\n\n"
        "Study the solution above and retry after the cooldown period."
    )


def get_user(db: Session, external_id: str) -> Optional[User]:
    return db.scalar(select(User).where(User.external_id == external_id))


def get_or_create_user(db: Session, external_id: str, name: Optional[str] = None) -> User:
    user = get_user(db, external_id)
    if not user:
        user = User(external_id=external_id, name=name)
        db.add(user); db.flush()
    return user


def upsert_subject(db: Session, topic: str) -> Subject:
    slug = slugify(topic)
    subject = db.scalar(select(Subject).where(Subject.slug == slug))
    if not subject:
        subject = Subject(name=topic, slug=slug, is_active=True)
        db.add(subject); db.flush()
    return subject


def upsert_question(db: Session, key: str, subject: Subject, difficulty: str) -> Question:
    question = db.get(Question, key)
    if not question:
        question = Question(id=key, subject_id=subject.id, difficulty=map_difficulty(difficulty), is_active=True)
        db.add(question); db.flush()
    return question


def find_attempt(db: Session, user_id: int, key: str) -> Optional[UserQuestionAttempt]:
    return db.scalar(
        select(UserQuestionAttempt).where(UserQuestionAttempt.user_id == user_id, UserQuestionAttempt.question_id == key)
    )


def active_cooldown(db: Session, external_id: str, question_id: Any, now: Optional[datetime] = None) -> Optional[datetime]:
    """Return the end of the cooldown in force for this user/question, if any."""
    now = now or utcnow()
    user = get_user(db, external_id)
    if not user:
        return None
    attempt = find_attempt(db, user.id, question_key(question_id))
    if attempt and attempt.cooldown_until and now < attempt.cooldown_until:
        return attempt.cooldown_until
    return None


def decide_outcome(
    verdict: Verdict,
    attempt_number: int,
    previous_failures: int,
    now: datetime,
    max_attempts: Optional[int] = None,
    cooldown_hours: Optional[int] = None,
) -> AttemptOutcome:
    """
    Apply the retry policy to a classified submission.

    PASS clears any cooldown and resets failures. A miss before the final
    attempt is WEAK. A miss on the final attempt is FAIL and starts a cooldown.
    """
    if max_attempts is None:
        max_attempts = settings.MAX_ATTEMPTS
    if cooldown_hours is None:
        cooldown_hours = settings.COOLDOWN_HOURS

    if verdict == Verdict.PASS:
        return AttemptOutcome(Verdict.PASS, 0, None, False)
    if attempt_number >= max_attempts:
        return AttemptOutcome(Verdict.FAIL, previous_failures + 1, now + timedelta(hours=cooldown_hours), True)
    return AttemptOutcome(Verdict.WEAK, previous_failures, None, False)


def record_submission(
    db: Session,
    external_id: str,
    question_id: Any,
    difficulty: str,
    topic: str,
    verdict: Verdict,
    attempt_number: int,
    now: Optional[datetime] = None,
) -> AttemptOutcome:
    """Persist one graded submission and refresh the subject summary."""
    now = now or utcnow()
    user = get_or_create_user(db, external_id)
    subject = upsert_subject(db, topic)
    question = upsert_question(db, question_key(question_id), subject, difficulty)

    attempt = find_attempt(db, user.id, question.id)
    outcome = decide_outcome(verdict, attempt_number, attempt.failure_count if attempt else 0, now)

    if attempt:
        attempt.verdict = outcome.verdict
        attempt.attempted_at = now
        attempt.cooldown_until = outcome.cooldown_until
        attempt.failure_count = outcome.failure_count
    else:
        attempt = UserQuestionAttempt(
            user_id=user.id, question_id=question.id, subject_id=subject.id,
            verdict=outcome.verdict, attempted_at=now,
            cooldown_until=outcome.cooldown_until, failure_count=outcome.failure_count,
        )
        db.add(attempt)
    db.flush()

    refresh_subject_summary(db, user, subject, now)
    db.commit()
    logger.info(
        "Recorded %s for user=%s question=%s attempt=%s failures=%s",
        outcome.verdict.value, user.id, question.id, attempt_number, outcome.failure_count,
    )
    return outcome


def refresh_subject_summary(db: Session, user: User, subject: Subject, now: datetime) -> UserSubjectSummary:
    counts = dict(
        db.execute(
            select(UserQuestionAttempt.verdict, func.count())
            .where(UserQuestionAttempt.user_id == user.id, UserQuestionAttempt.subject_id == subject.id)
            .group_by(UserQuestionAttempt.verdict)
        ).all()
    )
    summary = db.scalar(
        select(UserSubjectSummary).where(UserSubjectSummary.user_id == user.id, UserSubjectSummary.subject_id == subject.id)
    )
    if not summary:
        summary = UserSubjectSummary(user_id=user.id, subject_id=subject.id)
        db.add(summary)
    summary.solved_count = counts.get(Verdict.PASS, 0)
    summary.failed_count = counts.get(Verdict.FAIL, 0)
    summary.last_activity = now
    db.flush()
    return summary


def user_details(db: Session, external_id: str, name: Optional[str] = None) -> Dict[str, Any]:
    user = db.scalar(
        select(User)
        .where(User.external_id == external_id)
        .options(selectinload(User.summaries).selectinload(UserSubjectSummary.subject))
    )
    if not user:
        user = User(external_id=external_id, name=name or "User")
        db.add(user); db.commit(); db.refresh(user)

    summaries = user.summaries
    return {
        "id": user.id,
        "clerkUserId": user.external_id,
        "name": user.name,
        "createdAt": user.created_at,
        "totalSolved": sum(s.solved_count for s in summaries),
        "totalFailed": sum(s.failed_count for s in summaries),
        "subjectProgress": [
            {"name": s.subject.name, "solved": s.solved_count, "failed": s.failed_count, "lastActivity": s.last_activity}
            for s in summaries
        ],
    }


def list_attempts(db: Session, external_id: str, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    now = now or utcnow()
    user = get_user(db, external_id)
    if not user:
        return []
    rows = db.scalars(
        select(UserQuestionAttempt)
        .where(UserQuestionAttempt.user_id == user.id)
        .options(selectinload(UserQuestionAttempt.question), selectinload(UserQuestionAttempt.subject))
        .order_by(UserQuestionAttempt.attempted_at.desc())
    ).all()
    return [
        {
            "questionId": a.question_id,
            "subject": a.subject.name,
            "difficulty": a.question.difficulty.value,
            "verdict": a.verdict.value,
            "attemptedAt": a.attempted_at,
            "cooldownUntil": a.cooldown_until,
            "failureCount": a.failure_count,
            "locked": bool(a.cooldown_until and now < a.cooldown_until),
        }
        for a in rows
    ]

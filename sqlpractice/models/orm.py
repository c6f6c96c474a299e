import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase): pass


class Verdict(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WEAK = "WEAK"


class Difficulty(str, enum.Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    summaries: Mapped[List["UserSubjectSummary"]] = relationship(back_populates="user")
    attempts: Mapped[List["UserQuestionAttempt"]] = relationship(back_populates="user")


class Subject(Base):
    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())


class Question(Base):
    __tablename__ = "questions"

    # "sql-<client question id>"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    subject_id: Mapped[int] = mapped_column(Integer, ForeignKey("subjects.id"), nullable=False)
    difficulty: Mapped[Difficulty] = mapped_column(SQLEnum(Difficulty), nullable=False, default=Difficulty.MEDIUM)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    subject: Mapped["Subject"] = relationship()


class UserQuestionAttempt(Base):
    __tablename__ = "user_question_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "question_id", name="uq_user_question_attempt"),
        Index("idx_uqa_user_subject", "user_id", "subject_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id: Mapped[str] = mapped_column(String(64), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    subject_id: Mapped[int] = mapped_column(Integer, ForeignKey("subjects.id"), nullable=False)
    verdict: Mapped[Verdict] = mapped_column(SQLEnum(Verdict), nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())
    cooldown_until: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    failure_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    user: Mapped["User"] = relationship(back_populates="attempts")
    question: Mapped["Question"] = relationship()
    subject: Mapped["Subject"] = relationship()


class UserSubjectSummary(Base):
    __tablename__ = "user_subject_summaries"
    __table_args__ = (
        UniqueConstraint("user_id", "subject_id", name="uq_user_subject_summary"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subject_id: Mapped[int] = mapped_column(Integer, ForeignKey("subjects.id"), nullable=False)
    solved_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_activity: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    user: Mapped["User"] = relationship(back_populates="summaries")
    subject: Mapped["Subject"] = relationship()

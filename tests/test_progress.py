from datetime import datetime, timedelta

from sqlalchemy import select

from sqlpractice.models.orm import Question, Subject, UserQuestionAttempt, UserSubjectSummary, Verdict
from sqlpractice.services import progress

NOW = datetime(2026, 3, 1, 12, 0, 0)


def test_decide_outcome_table():
    assert progress.decide_outcome(Verdict.PASS, 1, 2, NOW) == progress.AttemptOutcome(Verdict.PASS, 0, None, False)
    assert progress.decide_outcome(Verdict.FAIL, 1, 0, NOW) == progress.AttemptOutcome(Verdict.WEAK, 0, None, False)
    assert progress.decide_outcome(Verdict.WEAK, 2, 1, NOW) == progress.AttemptOutcome(Verdict.WEAK, 1, None, False)
    assert progress.decide_outcome(Verdict.PASS, 3, 1, NOW).cooldown_until is None

    final = progress.decide_outcome(Verdict.FAIL, 3, 1, NOW)
    assert final.verdict == Verdict.FAIL
    assert final.failure_count == 2
    assert final.cooldown_until == NOW + timedelta(hours=24)
    assert final.locked

    beyond = progress.decide_outcome(Verdict.FAIL, 4, 0, NOW)
    assert beyond.verdict == Verdict.FAIL
    assert beyond.locked


def test_decide_outcome_honours_zero_overrides():
    outcome = progress.decide_outcome(Verdict.FAIL, 3, 0, NOW, cooldown_hours=0)
    assert outcome.locked
    assert outcome.cooldown_until == NOW

    single = progress.decide_outcome(Verdict.FAIL, 1, 0, NOW, max_attempts=1)
    assert single.verdict == Verdict.FAIL
    assert single.cooldown_until == NOW + timedelta(hours=24)


def test_slugify_and_question_key():
    assert progress.slugify("Window  Functions") == "window-functions"
    assert progress.question_key(7) == "sql-7"


def test_cooldown_message_rounds_hours_up():
    message = progress.cooldown_message(NOW + timedelta(hours=5, minutes=1), NOW)
    assert "retry after **6 hours**" in message
    assert message.startswith("⏳ **COOLDOWN ACTIVE**")


def test_record_submission_creates_rows(db):
    outcome = progress.record_submission(db, "user_1", 5, "easy", "Basic Queries", Verdict.FAIL, 1, now=NOW)

    assert outcome.verdict == Verdict.WEAK
    subject = db.scalar(select(Subject))
    assert subject.slug == "basic-queries"
    assert subject.name == "Basic Queries"
    question = db.get(Question, "sql-5")
    assert question.difficulty.value == "EASY"
    attempt = db.scalar(select(UserQuestionAttempt))
    assert attempt.verdict == Verdict.WEAK
    assert attempt.cooldown_until is None


def test_third_failure_sets_cooldown_and_increments_failures(db):
    progress.record_submission(db, "user_1", 5, "easy", "Joins", Verdict.FAIL, 1, now=NOW)
    progress.record_submission(db, "user_1", 5, "easy", "Joins", Verdict.FAIL, 2, now=NOW)
    outcome = progress.record_submission(db, "user_1", 5, "easy", "Joins", Verdict.FAIL, 3, now=NOW)

    assert outcome.locked
    attempt = db.scalar(select(UserQuestionAttempt))
    assert attempt.verdict == Verdict.FAIL
    assert attempt.failure_count == 1
    assert attempt.cooldown_until == NOW + timedelta(hours=24)
    assert db.scalar(select(UserQuestionAttempt).where(UserQuestionAttempt.id != attempt.id)) is None

    summary = db.scalar(select(UserSubjectSummary))
    assert summary.failed_count == 1
    assert summary.solved_count == 0


def test_pass_clears_cooldown_and_failures(db):
    progress.record_submission(db, "user_1", 5, "easy", "Joins", Verdict.FAIL, 3, now=NOW)
    later = NOW + timedelta(hours=25)
    progress.record_submission(db, "user_1", 5, "easy", "Joins", Verdict.PASS, 1, now=later)

    attempt = db.scalar(select(UserQuestionAttempt))
    assert attempt.verdict == Verdict.PASS
    assert attempt.failure_count == 0
    assert attempt.cooldown_until is None
    assert attempt.attempted_at == later

    summary = db.scalar(select(UserSubjectSummary))
    assert (summary.solved_count, summary.failed_count) == (1, 0)
    assert summary.last_activity == later


def test_active_cooldown(db):
    assert progress.active_cooldown(db, "nobody", 5, NOW) is None
    progress.record_submission(db, "user_1", 5, "easy", "Joins", Verdict.FAIL, 3, now=NOW)

    assert progress.active_cooldown(db, "user_1", 5, NOW + timedelta(hours=1)) == NOW + timedelta(hours=24)
    assert progress.active_cooldown(db, "user_1", 5, NOW + timedelta(hours=24, seconds=1)) is None
    assert progress.active_cooldown(db, "user_1", 6, NOW) is None


def test_summary_counts_per_subject(db):
    progress.record_submission(db, "user_1", 1, "easy", "Joins", Verdict.PASS, 1, now=NOW)
    progress.record_submission(db, "user_1", 2, "hard", "Joins", Verdict.PASS, 2, now=NOW)
    progress.record_submission(db, "user_1", 3, "hard", "Joins", Verdict.FAIL, 3, now=NOW)
    progress.record_submission(db, "user_1", 4, "medium", "Aggregation", Verdict.WEAK, 1, now=NOW)

    details = progress.user_details(db, "user_1")
    assert details["totalSolved"] == 2
    assert details["totalFailed"] == 1
    by_name = {s["name"]: s for s in details["subjectProgress"]}
    assert by_name["Joins"]["solved"] == 2
    assert by_name["Aggregation"] == {"name": "Aggregation", "solved": 0, "failed": 0, "lastActivity": NOW}


def test_user_details_creates_unknown_user(db):
    details = progress.user_details(db, "new_user", "Ada")
    assert details["clerkUserId"] == "new_user"
    assert details["name"] == "Ada"
    assert details["totalSolved"] == 0
    assert details["subjectProgress"] == []


def test_list_attempts_reports_lock_state(db):
    progress.record_submission(db, "user_1", 1, "easy", "Joins", Verdict.FAIL, 3, now=NOW)
    progress.record_submission(db, "user_1", 2, "easy", "Joins", Verdict.PASS, 1, now=NOW - timedelta(hours=1))

    rows = progress.list_attempts(db, "user_1", now=NOW + timedelta(hours=2))
    assert [r["questionId"] for r in rows] == ["sql-1", "sql-2"]
    assert rows[0]["locked"] and rows[0]["verdict"] == "FAIL"
    assert not rows[1]["locked"]
    assert progress.list_attempts(db, "nobody") == []

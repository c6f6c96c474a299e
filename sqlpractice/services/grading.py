"""
Verdict classification for free-text feedback returned by the evaluator.
"""
from sqlpractice.models.orm import Difficulty, Verdict

PASS_MARKERS = ("correct", "✓")
FAIL_MARKERS = ("wrong", "incorrect", "✗")


def classify_verdict(feedback: str) -> Verdict:
    """
    Classify feedback text into a verdict by keyword containment.

    PASS markers are checked first, so text mentioning both "correct" and
    "wrong" (or "incorrect", which contains "correct") is a PASS.
    """
    text = (feedback or "").lower()
    if any(marker in text for marker in PASS_MARKERS):
        return Verdict.PASS
    if any(marker in text for marker in FAIL_MARKERS):
        return Verdict.FAIL
    return Verdict.WEAK


def asked_follow_up(feedback: str, verdict: Verdict, follow_up: bool) -> bool:
    """True when a passing first-turn reply contains a question for the user."""
    return "?" in (feedback or "") and verdict == Verdict.PASS and not follow_up


def map_difficulty(label: str) -> Difficulty:
    try:
        return Difficulty[(label or "").strip().upper()]
    except KeyError:
        return Difficulty.MEDIUM

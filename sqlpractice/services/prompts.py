"""
Prompt templates for query evaluation and follow-up conversation turns.
"""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class Turn:
    role: str
    content: str


@dataclass
class Submission:
    question: str
    schema: str
    user_query: str
    follow_up: bool = False
    conversation_history: List[Turn] = field(default_factory=list)
    user_response: Optional[str] = None
    attempt_number: Optional[int] = None
    is_correct: bool = False
    has_asked_follow_up: bool = False
    max_attempts: int = 3
    cooldown_hours: int = 24

    @property
    def is_follow_up_turn(self) -> bool:
        return bool(self.follow_up and self.conversation_history and self.user_response)

    @property
    def current_attempt(self) -> int:
        return self.attempt_number or 1


def render_history(history: List[Turn], last: int) -> str:
    return "\n".join(f"{turn.role}: {turn.content}" for turn in history[-last:])


def build_prompt(submission: Submission) -> str:
    """Pick the template for this turn and fill it in."""
    if submission.is_follow_up_turn:
        if submission.is_correct:
            return _answer_question_prompt(submission)
        if submission.has_asked_follow_up:
            return _evaluate_reply_prompt(submission)
        return _hint_prompt(submission)
    if submission.current_attempt >= submission.max_attempts:
        return _final_attempt_prompt(submission)
    return _attempt_prompt(submission)


def _answer_question_prompt(s: Submission) -> str:
    return f"""SQL Problem: {s.question}

Schema:
{s.schema}

User's Correct Query:
{s.user_query}

The user's SQL query was CORRECT. They are now asking a follow-up question about the problem.

Previous conversation:
{render_history(s.conversation_history, 4)}

User: {s.user_response}

RULES:
1. Answer their question briefly (2-3 sentences max)
2. Be helpful and educational
3. DO NOT ask any more questions - just answer
4. Keep it concise"""


def _evaluate_reply_prompt(s: Submission) -> str:
    return f"""SQL Problem: {s.question}

Schema:
{s.schema}

Previous conversation:
{render_history(s.conversation_history, 4)}

User: {s.user_response}

RULES:
1. Evaluate their response briefly (1-2 sentences)
2. If correct, say "Good!" or "Correct!"
3. If wrong, give a brief correction
4. DO NOT ask another follow-up question
5. End the conversation here"""


def _hint_prompt(s: Submission) -> str:
    return f"""SQL Problem: {s.question}

Schema:
{s.schema}

User's Current Query:
{s.user_query}

Previous feedback:
{render_history(s.conversation_history, 2)}

User: {s.user_response}

RULES:
1. Look at their current query and the feedback given
2. Give ONE specific, actionable hint (2-3 sentences max)
3. Don't reveal the full answer
4. Point them in the right direction
5. Be encouraging"""


def _final_attempt_prompt(s: Submission) -> str:
    return f"""Evaluate this SQL query (THIRD AND FINAL ATTEMPT):

Problem: {s.question}

Schema:
{s.schema}

User's Query:
{s.user_query}

RULES FOR THIRD ATTEMPT:
1. Start with "**WRONG**" if incorrect, or "**CORRECT**" if correct
2. If WRONG:
   - Show the COMPLETE CORRECT SQL query in a code block
   - Explain it in 2-3 sentences
   - Say "This question is now locked for {s.cooldown_hours} hours."
3. If CORRECT:
   - Say "Correct!" and briefly explain why (2-3 sentences)
   - Ask ONE follow-up question ONLY IF the problem requires conceptual understanding
   - For simple problems, just congratulate and don't ask follow-up

Keep it SHORT and PRECISE."""


def _attempt_prompt(s: Submission) -> str:
    remaining = s.max_attempts - s.current_attempt
    return f"""Evaluate this SQL query (Attempt {s.current_attempt} of {s.max_attempts}):

Problem: {s.question}

Schema:
{s.schema}

User's Query:
{s.user_query}

RULES:
1. Start with "**CORRECT**" or "**WRONG**"
2. If CORRECT:
   - Say "Correct!" and briefly explain why (2-3 sentences)
   - Ask ONE follow-up question ONLY IF the problem requires conceptual understanding (e.g., for complex joins, window functions, subqueries)
   - For simple problems (basic SELECT, WHERE), just congratulate and don't ask follow-up
3. If WRONG:
   - Give ONE specific hint (don't reveal the answer)
   - Say "You have {remaining} attempt(s) remaining. Try again!"

Keep response under 5 lines."""

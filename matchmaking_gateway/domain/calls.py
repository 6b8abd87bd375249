"""Call session lifecycle - state transitions and billing for masked calls"""

import random
from datetime import datetime
from matchmaking_gateway.domain.models import CallSession, WebhookEvent, SessionTransition
from matchmaking_gateway.domain.exceptions import SessionAlreadyTerminalError
from matchmaking_gateway.utils.math_utils import ceil_div

INITIATED = "initiated"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
BUSY = "busy"
NO_ANSWER = "no-answer"
FAILED = "failed"

TERMINAL_STATUSES = frozenset({COMPLETED, BUSY, NO_ANSWER, FAILED})

# Provider status strings that map onto our own names
PROVIDER_STATUS_MAP = {
    "in-progress": IN_PROGRESS,
    "in_progress": IN_PROGRESS,
}


def generate_virtual_number(rng: random.Random | None = None) -> str:
    """
    Cosmetic display number in the form +91-XXXX-XXXXXX.

    Not allocated from any pool; two sessions may show the same number.
    """
    rng = rng or random
    area_code = rng.randint(1000, 9999)
    number = rng.randint(100000, 999999)
    return f"+91-{area_code}-{number}"


def calculate_call_cost(duration_seconds: int, cost_per_minute: int) -> int:
    """Cost in credits, billed per started minute"""
    if duration_seconds <= 0:
        return 0
    return ceil_div(duration_seconds, 60) * cost_per_minute


def participant_share(cost: int) -> int:
    """Each participant pays half the call, rounded up"""
    return ceil_div(cost, 2)


def parse_duration(raw) -> int:
    """Provider durations arrive as strings, ints or decimal strings like "125.0"; anything unusable is 0"""
    try:
        duration = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(duration, 0)


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def plan_transition(session: CallSession, event: WebhookEvent, now: datetime) -> SessionTransition:
    """
    Decide how a provider status callback changes a call session.

    Transition table:
    - in-progress              -> in_progress, started_at recorded the first time
    - completed                -> completed, cost = ceil(duration / 60) * cost_per_minute;
                                  with a positive duration each participant is charged
                                  ceil(cost / 2) and gets a call log entry
    - busy / no-answer / failed -> same terminal status, nothing charged
    - anything else            -> status stored verbatim

    Duration always comes from the event, so a completed callback that
    arrives before any in-progress one is billed correctly.

    Raises:
        SessionAlreadyTerminalError: Session already ended; the event must not change it
    """
    if is_terminal(session.status):
        raise SessionAlreadyTerminalError(
            f"Session {session.id} already {session.status}, ignoring '{event.status}'"
        )

    status = PROVIDER_STATUS_MAP.get(event.status, event.status)

    if status == IN_PROGRESS:
        updates = {"status": IN_PROGRESS}
        if session.started_at is None:
            updates["started_at"] = now
        return SessionTransition(status=IN_PROGRESS, updates=updates)

    if status in TERMINAL_STATUSES:
        duration = event.duration_seconds
        cost = calculate_call_cost(duration, session.cost_per_minute) if status == COMPLETED else 0
        billable = status == COMPLETED and duration > 0

        return SessionTransition(
            status=status,
            updates={
                "status": status,
                "duration_seconds": duration,
                "cost": cost,
                "ended_at": now,
                "recording_url": event.recording_url,
            },
            terminal=True,
            credits_per_participant=participant_share(cost) if billable else 0,
            write_call_logs=billable,
        )

    return SessionTransition(status=status, updates={"status": status})

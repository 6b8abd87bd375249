"""Data access layer for profiles, matches, call credits and call sessions"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session, joinedload
from matchmaking_gateway.infrastructure.database.models import (
    User,
    UserProfile,
    UserLocation,
    UserMatch,
    UserCallCredit,
    CallSessionRecord,
    CallLog,
)
from matchmaking_gateway.domain.models import CandidateProfile, CallCreditBalance, CallLogEntry, CallSession
from matchmaking_gateway.domain.calls import TERMINAL_STATUSES
from matchmaking_gateway.domain.exceptions import CreditDeductionError, InvalidRecordError

logger = logging.getLogger(__name__)


def _to_candidate(user: User, profile: UserProfile, location: Optional[UserLocation]) -> CandidateProfile:
    """Convert joined rows into the ranking engine's typed snapshot"""
    if user is None or profile is None or user.id is None:
        raise InvalidRecordError("Profile row without a user")

    return CandidateProfile(
        user_id=user.id,
        gender=profile.gender,
        age=profile.age,
        religion=profile.religion,
        caste=profile.caste,
        education=profile.education,
        mother_tongue=profile.mother_tongue,
        state=profile.state,
        city=profile.city,
        latitude=location.latitude if location else None,
        longitude=location.longitude if location else None,
        profile_status=profile.status,
        account_status=user.status,
        name=user.name,
        occupation=profile.occupation,
        marital_status=profile.marital_status,
        profile_photo=profile.profile_photo,
    )


def _to_session(row: CallSessionRecord) -> CallSession:
    if row.id is None or row.caller_id is None or row.receiver_id is None or not row.status:
        raise InvalidRecordError(f"Call session row is incomplete: {row.id}")

    return CallSession(
        id=row.id,
        caller_id=row.caller_id,
        receiver_id=row.receiver_id,
        provider_call_id=row.provider_call_id,
        status=row.status,
        virtual_number_caller=row.caller_virtual_number,
        virtual_number_receiver=row.receiver_virtual_number,
        real_number_caller=row.caller_real_number,
        real_number_receiver=row.receiver_real_number,
        cost_per_minute=row.cost_per_minute,
        duration_seconds=row.duration_seconds or 0,
        cost=row.cost or 0,
        recording_url=row.recording_url,
        created_at=row.created_at,
        started_at=row.started_at,
        ended_at=row.ended_at,
    )


def _to_balance(row: UserCallCredit) -> CallCreditBalance:
    return CallCreditBalance(
        id=row.id,
        user_id=row.user_id,
        credits_remaining=row.credits_remaining,
        expires_at=row.expires_at,
        plan_name=row.plan_name,
    )



def _to_log_entry(
    row: CallLog,
    caller_virtual_number: str,
    receiver_virtual_number: str,
    other_user_name: Optional[str] = None,
) -> CallLogEntry:
    """Each participant sees the virtual number shown on their own side of the call"""
    if row.id is None or row.call_session_id is None:
        raise InvalidRecordError(f"Call log row is incomplete: {row.id}")

    return CallLogEntry(
        id=row.id,
        user_id=row.user_id,
        other_user_id=row.other_user_id,
        session_id=row.call_session_id,
        direction=row.direction,
        duration_seconds=row.duration_seconds,
        cost=row.cost,
        masked_number=caller_virtual_number if row.direction == "outgoing" else receiver_virtual_number,
        other_user_name=other_user_name,
        created_at=row.created_at,
    )


@dataclass
class ProfileFilters:
    """Optional search narrowing applied in SQL before ranking"""

    location: Optional[str] = None  # substring of city or state
    gender: Optional[str] = None
    age_min: Optional[int] = None
    age_max: Optional[int] = None
    religion: Optional[str] = None
    education: Optional[str] = None
    occupation: Optional[str] = None  # substring


class ProfileRepository:
    """Repository for user profiles"""

    def __init__(self, db: Session):
        self.db = db

    def _profile_query(self):
        return (
            self.db.query(User, UserProfile, UserLocation)
            .join(UserProfile, UserProfile.user_id == User.id)
            .outerjoin(UserLocation, UserLocation.user_id == User.id)
        )

    def get_profile(self, user_id: int) -> Optional[CandidateProfile]:
        """Fetch a user's profile regardless of moderation status"""
        row = self._profile_query().filter(User.id == user_id).first()
        if row is None:
            return None
        return _to_candidate(*row)

    def get_callable_user(self, user_id: int) -> Optional[User]:
        """Active account with a profile and a phone number on file"""
        return (
            self.db.query(User)
            .join(UserProfile, UserProfile.user_id == User.id)
            .filter(User.id == user_id, User.status == "active", User.phone.isnot(None))
            .first()
        )

    def find_candidates(
        self,
        requester: CandidateProfile,
        filters: ProfileFilters,
        limit: int,
    ) -> List[CandidateProfile]:
        """Fetch approved, active, opposite-gender profiles narrowed by filters"""
        query = self._profile_query().filter(
            User.id != requester.user_id,
            UserProfile.status == "approved",
            User.status == "active",
            UserProfile.gender != requester.gender,
        )

        if filters.location:
            pattern = f"%{filters.location}%"
            query = query.filter(or_(UserProfile.city.like(pattern), UserProfile.state.like(pattern)))
        if filters.gender:
            query = query.filter(UserProfile.gender == filters.gender)
        if filters.age_min is not None:
            query = query.filter(UserProfile.age >= filters.age_min)
        if filters.age_max is not None:
            query = query.filter(UserProfile.age <= filters.age_max)
        if filters.religion:
            query = query.filter(UserProfile.religion == filters.religion)
        if filters.education:
            query = query.filter(UserProfile.education == filters.education)
        if filters.occupation:
            query = query.filter(UserProfile.occupation.like(f"%{filters.occupation}%"))

        rows = query.order_by(UserProfile.created_at.desc(), User.id.desc()).limit(limit).all()
        return [_to_candidate(*row) for row in rows]

    def find_matched_profiles(self, user_id: int) -> List[CandidateProfile]:
        """Profiles of every user matched with user_id in either direction"""
        outgoing = self.db.query(UserMatch.matched_user_id).filter(UserMatch.user_id == user_id)
        incoming = self.db.query(UserMatch.user_id).filter(UserMatch.matched_user_id == user_id)

        rows = (
            self._profile_query()
            .filter(
                or_(User.id.in_(outgoing), User.id.in_(incoming)),
                User.status == "active",
                UserProfile.status == "approved",
            )
            .order_by(User.id)
            .all()
        )
        return [_to_candidate(*row) for row in rows]


class MatchRepository:
    """Repository for admin-created matches"""

    def __init__(self, db: Session):
        self.db = db

    def is_matched(self, user_a: int, user_b: int) -> bool:
        """True when a match row exists in either direction"""
        row = (
            self.db.query(UserMatch.id)
            .filter(
                or_(
                    and_(UserMatch.user_id == user_a, UserMatch.matched_user_id == user_b),
                    and_(UserMatch.user_id == user_b, UserMatch.matched_user_id == user_a),
                )
            )
            .first()
        )
        return row is not None


class CreditRepository:
    """Repository for prepaid call credits"""

    def __init__(self, db: Session):
        self.db = db

    def _active(self, user_id: int, now: datetime):
        return (
            self.db.query(UserCallCredit)
            .filter(
                UserCallCredit.user_id == user_id,
                UserCallCredit.credits_remaining > 0,
                UserCallCredit.expires_at > now,
            )
            .order_by(UserCallCredit.expires_at.asc(), UserCallCredit.id.asc())
        )

    def find_active_balance(self, user_id: int, now: datetime) -> Optional[CallCreditBalance]:
        """Oldest non-expired balance with credits left"""
        row = self._active(user_id, now).first()
        return _to_balance(row) if row else None

    def list_active_balances(self, user_id: int, now: datetime) -> List[CallCreditBalance]:
        return [_to_balance(row) for row in self._active(user_id, now).all()]

    def deduct_credits(self, balance_id: int, amount: int) -> bool:
        """
        Atomically take `amount` credits from a balance, flooring at zero.

        The decrement happens inside a single conditional UPDATE so two
        concurrent deductions can never lose an update or go negative.
        Returns False when the balance was already drained.
        """
        remaining = case(
            (UserCallCredit.credits_remaining > amount, UserCallCredit.credits_remaining - amount),
            else_=0,
        )
        updated = (
            self.db.query(UserCallCredit)
            .filter(UserCallCredit.id == balance_id, UserCallCredit.credits_remaining > 0)
            .update({UserCallCredit.credits_remaining: remaining}, synchronize_session=False)
        )
        return updated == 1

    def charge_user(self, user_id: int, amount: int, now: datetime, max_attempts: int) -> Optional[int]:
        """
        Deduct from the user's oldest active balance.

        When a concurrent request drains the chosen balance first, the next
        oldest one is tried, up to max_attempts. Returns the charged balance
        id, or None if the user has no active balance.

        Raises:
            CreditDeductionError: Every attempt lost a race
        """
        for attempt in range(1, max_attempts + 1):
            balance = self.find_active_balance(user_id, now)
            if balance is None:
                return None
            if self.deduct_credits(balance.id, amount):
                return balance.id
            logger.warning(
                "Credit balance drained concurrently, retrying",
                extra={"user_id": user_id, "balance_id": balance.id, "attempt": attempt},
            )
        raise CreditDeductionError(
            f"Could not deduct {amount} credits from user {user_id} after {max_attempts} attempts"
        )


class CallSessionRepository:
    """Repository for call sessions"""

    def __init__(self, db: Session):
        self.db = db

    def create_session(
        self,
        caller_id: int,
        receiver_id: int,
        provider_call_id: str,
        caller_virtual_number: str,
        receiver_virtual_number: str,
        caller_real_number: str,
        receiver_real_number: str,
        cost_per_minute: int,
        status: str = "initiated",
    ) -> CallSessionRecord:
        """Persist a new session once the provider has accepted the call"""
        db_session = CallSessionRecord(
            caller_id=caller_id,
            receiver_id=receiver_id,
            provider_call_id=provider_call_id,
            status=status,
            caller_virtual_number=caller_virtual_number,
            receiver_virtual_number=receiver_virtual_number,
            caller_real_number=caller_real_number,
            receiver_real_number=receiver_real_number,
            cost_per_minute=cost_per_minute,
        )
        self.db.add(db_session)
        self.db.flush()  # Get ID without committing
        return db_session

    def get_by_id(self, session_id: int) -> Optional[CallSessionRecord]:
        """Fetch session with both participants loaded"""
        return (
            self.db.query(CallSessionRecord)
            .options(joinedload(CallSessionRecord.caller), joinedload(CallSessionRecord.receiver))
            .filter(CallSessionRecord.id == session_id)
            .first()
        )

    def find_by_provider_id(self, provider_call_id: str) -> Optional[CallSession]:
        row = (
            self.db.query(CallSessionRecord)
            .filter(CallSessionRecord.provider_call_id == provider_call_id)
            .first()
        )
        return _to_session(row) if row else None

    def update_if_open(self, session_id: int, updates: Dict[str, Any]) -> bool:
        """
        Apply updates only while the session is not in a terminal state.

        This conditional UPDATE is the claim for terminal transitions: of two
        concurrent deliveries of the same terminal event, exactly one gets
        True back. started_at is only ever written once.
        """
        values = dict(updates)
        if "started_at" in values:
            values["started_at"] = func.coalesce(CallSessionRecord.started_at, values["started_at"])

        updated = (
            self.db.query(CallSessionRecord)
            .filter(
                CallSessionRecord.id == session_id,
                CallSessionRecord.status.notin_(sorted(TERMINAL_STATUSES)),
            )
            .update(
                {getattr(CallSessionRecord, key): value for key, value in values.items()},
                synchronize_session=False,
            )
        )
        return updated == 1


class CallLogRepository:
    """Repository for per-participant call history"""

    def __init__(self, db: Session):
        self.db = db

    def create_pair(self, session: CallSession, duration_seconds: int, cost: int) -> List[CallLogEntry]:
        """Outgoing entry for the caller, incoming entry for the receiver"""
        logs = [
            CallLog(
                user_id=session.caller_id,
                other_user_id=session.receiver_id,
                call_session_id=session.id,
                direction="outgoing",
                duration_seconds=duration_seconds,
                cost=cost,
            ),
            CallLog(
                user_id=session.receiver_id,
                other_user_id=session.caller_id,
                call_session_id=session.id,
                direction="incoming",
                duration_seconds=duration_seconds,
                cost=cost,
            ),
        ]
        self.db.add_all(logs)
        self.db.flush()
        return [
            _to_log_entry(row, session.virtual_number_caller, session.virtual_number_receiver) for row in logs
        ]

    def list_for_user(self, user_id: int, limit: int = 50) -> List[CallLogEntry]:
        """Most recent call log entries for a user, newest first"""
        rows = (
            self.db.query(CallLog)
            .options(joinedload(CallLog.session), joinedload(CallLog.other_user))
            .filter(CallLog.user_id == user_id)
            .order_by(CallLog.created_at.desc(), CallLog.id.desc())
            .limit(limit)
            .all()
        )
        return [
            _to_log_entry(
                row,
                row.session.caller_virtual_number,
                row.session.receiver_virtual_number,
                other_user_name=row.other_user.name,
            )
            for row in rows
        ]

"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class CandidateProfile:
    """Snapshot of a user profile as seen by the ranking engine"""

    user_id: int
    gender: Optional[str] = None
    age: Optional[int] = None
    religion: Optional[str] = None
    caste: Optional[str] = None
    education: Optional[str] = None
    mother_tongue: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    profile_status: str = "approved"  # pending | approved | rejected
    account_status: str = "active"  # active | inactive | suspended

    # Display-only
    name: Optional[str] = None
    occupation: Optional[str] = None
    marital_status: Optional[str] = None
    profile_photo: Optional[str] = None

    @property
    def has_location(self) -> bool:
        # (0, 0) is what the store returns when no location row exists
        if self.latitude is None or self.longitude is None:
            return False
        return not (self.latitude == 0 and self.longitude == 0)


@dataclass
class RankedCandidate:
    """Candidate with its compatibility score and optional distance"""

    profile: CandidateProfile
    score: int
    distance_km: Optional[int] = None


@dataclass
class CallSession:
    """Masked call between two matched users"""

    id: int
    caller_id: int
    receiver_id: int
    provider_call_id: str
    status: str
    virtual_number_caller: str
    virtual_number_receiver: str
    real_number_caller: str = field(repr=False)
    real_number_receiver: str = field(repr=False)
    cost_per_minute: int = 1
    duration_seconds: int = 0
    cost: int = 0
    recording_url: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


@dataclass
class CallCreditBalance:
    """Per-user decrementing counter of prepaid call credits"""

    id: int
    user_id: int
    credits_remaining: int
    expires_at: datetime
    plan_name: Optional[str] = None


@dataclass
class CallLogEntry:
    """One participant's view of a completed call"""

    id: int
    user_id: int
    other_user_id: int
    session_id: int
    direction: str  # "incoming" or "outgoing"
    duration_seconds: int
    cost: int
    masked_number: str  # virtual number this participant was shown
    other_user_name: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class ProviderCall:
    """Telephony provider's acknowledgement of a call setup request"""

    provider_call_id: str
    status: str


@dataclass
class WebhookEvent:
    """Status callback delivered by the telephony provider"""

    provider_call_id: str
    status: str
    duration_seconds: int = 0
    recording_url: Optional[str] = None


@dataclass
class SessionTransition:
    """Outcome of applying a webhook event to a call session"""

    status: str
    updates: Dict[str, Any]
    terminal: bool = False
    credits_per_participant: int = 0
    write_call_logs: bool = False

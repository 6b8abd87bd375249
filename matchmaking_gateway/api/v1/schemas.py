"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from matchmaking_gateway.domain.models import RankedCandidate


class ProfileSummary(BaseModel):
    """Ranked profile as shown in search and match lists (no contact details)"""

    id: int
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    religion: Optional[str] = None
    caste: Optional[str] = None
    mother_tongue: Optional[str] = None
    marital_status: Optional[str] = None
    education: Optional[str] = None
    occupation: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    profile_photo: Optional[str] = None
    distance_km: Optional[int] = None
    compatibility_score: int

    @classmethod
    def from_ranked(cls, ranked: RankedCandidate) -> "ProfileSummary":
        p = ranked.profile
        return cls(
            id=p.user_id,
            name=p.name,
            age=p.age,
            gender=p.gender,
            religion=p.religion,
            caste=p.caste,
            mother_tongue=p.mother_tongue,
            marital_status=p.marital_status,
            education=p.education,
            occupation=p.occupation,
            state=p.state,
            city=p.city,
            profile_photo=p.profile_photo,
            distance_km=ranked.distance_km,
            compatibility_score=ranked.score,
        )


class RankedProfilesResponse(BaseModel):
    """Response for GET /v1/search and GET /v1/matches"""

    profiles: List[ProfileSummary]
    total: int


class InitiateCallRequest(BaseModel):
    """Request body for POST /v1/calls/initiate"""

    target_user_id: int = Field(..., gt=0, description="User to call; must be a match")


class InitiateCallResponse(BaseModel):
    """Response for POST /v1/calls/initiate"""

    session_id: int
    virtual_number_caller: str
    virtual_number_receiver: str
    status: str = "connecting"
    message: str = "Call is being connected. Please wait..."


class CallWebhookRequest(BaseModel):
    """
    Provider status callback.

    Accepts our field names or the provider's (CallSid, CallStatus, ...).
    Everything is optional here so a missing call id can be answered with 400.
    """

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    provider_call_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("provider_call_id", "CallSid")
    )
    status: Optional[str] = Field(None, validation_alias=AliasChoices("status", "CallStatus"))
    duration_seconds: Optional[Union[int, str]] = Field(
        None, validation_alias=AliasChoices("duration_seconds", "CallDuration")
    )
    recording_url: Optional[str] = Field(
        None, validation_alias=AliasChoices("recording_url", "RecordingUrl")
    )


class WebhookResponse(BaseModel):
    """Response for POST /v1/calls/webhook"""

    success: bool = True
    message: str = "Webhook processed successfully"


class CallSessionView(BaseModel):
    """Participant's view of a call session; real numbers are never part of it"""

    id: int
    status: str
    duration_seconds: int
    cost: int
    caller_name: str
    receiver_name: str
    virtual_number_caller: str
    virtual_number_receiver: str
    is_caller: bool
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None


class CallLogItem(BaseModel):
    """Single entry in a user's call history"""

    id: int
    session_id: int
    other_user_id: int
    other_user_name: Optional[str] = None
    direction: str
    duration_seconds: int
    cost: int
    masked_number: str
    created_at: Optional[datetime] = None


class CallLogsResponse(BaseModel):
    """Response for GET /v1/calls/logs"""

    logs: List[CallLogItem]


class CreditBalanceItem(BaseModel):
    """Active call-credit balance"""

    id: int
    plan_name: Optional[str] = None
    credits_remaining: int
    expires_at: datetime


class CallCreditsResponse(BaseModel):
    """Response for GET /v1/calls/credits"""

    balances: List[CreditBalanceItem]
    total_remaining: int

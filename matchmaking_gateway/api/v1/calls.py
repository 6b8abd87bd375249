"""Masked calling endpoints - initiation, provider webhook, session view and history"""

import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from matchmaking_gateway.api.v1.schemas import (
    InitiateCallRequest,
    InitiateCallResponse,
    CallWebhookRequest,
    WebhookResponse,
    CallSessionView,
    CallLogItem,
    CallLogsResponse,
    CreditBalanceItem,
    CallCreditsResponse,
)
from matchmaking_gateway.api.dependencies import get_current_user_id, get_request_id, get_telephony_client
from matchmaking_gateway.config import settings
from matchmaking_gateway.infrastructure.database.session import get_db
from matchmaking_gateway.infrastructure.database.repositories import (
    ProfileRepository,
    MatchRepository,
    CreditRepository,
    CallSessionRepository,
    CallLogRepository,
)
from matchmaking_gateway.infrastructure.clients.telephony import TelephonyClient
from matchmaking_gateway.domain.models import CallSession, WebhookEvent
from matchmaking_gateway.domain.calls import INITIATED, generate_virtual_number, parse_duration, plan_transition
from matchmaking_gateway.domain.exceptions import (
    CreditDeductionError,
    ForbiddenError,
    InsufficientCreditsError,
    NotFoundError,
    NotMatchedError,
    ProviderError,
    SessionAlreadyTerminalError,
)
from matchmaking_gateway.infrastructure.observability.metrics import (
    call_initiation_counter,
    credit_deduction_failures_counter,
    record_webhook,
)
from matchmaking_gateway.infrastructure.observability.logging import log_call_event

router = APIRouter()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@router.post("/calls/initiate", response_model=InitiateCallResponse)
async def initiate_call(
    request_body: InitiateCallRequest,
    request: Request,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    telephony: TelephonyClient = Depends(get_telephony_client),
):
    """
    Connect the caller with a matched user through a masked number.

    Flow:
    1. Caller must hold active call credits
    2. Both accounts must be active with a profile
    3. The two users must be matched
    4. Ask the provider to bridge the real numbers
    5. Persist the session only after the provider accepted the call
    """
    request_id = get_request_id(request)
    target_id = request_body.target_user_id

    try:
        # 1. Credits
        if CreditRepository(db).find_active_balance(user_id, _utcnow()) is None:
            raise InsufficientCreditsError("No active call credits")

        # 2. Accounts
        profiles = ProfileRepository(db)
        caller = profiles.get_callable_user(user_id)
        target = profiles.get_callable_user(target_id)
        if caller is None:
            raise NotFoundError("Caller not found")
        if target is None:
            raise NotFoundError("Target user not found")

        # 3. Match
        if not MatchRepository(db).is_matched(user_id, target_id):
            raise NotMatchedError(f"Users {user_id} and {target_id} are not matched")

        # 4. Provider call setup
        virtual_number_caller = generate_virtual_number()
        virtual_number_receiver = generate_virtual_number()
        provider_call = await telephony.connect_call(
            from_number=caller.phone,
            to_number=target.phone,
            caller_id=settings.telephony_caller_id,
            status_callback_url=f"{settings.app_url}/v1/calls/webhook",
            time_limit_seconds=settings.call_time_limit_seconds,
            ring_timeout_seconds=settings.call_ring_timeout_seconds,
            record=True,
        )

        # 5. Persist
        db_session = CallSessionRepository(db).create_session(
            caller_id=user_id,
            receiver_id=target_id,
            provider_call_id=provider_call.provider_call_id,
            caller_virtual_number=virtual_number_caller,
            receiver_virtual_number=virtual_number_receiver,
            caller_real_number=caller.phone,
            receiver_real_number=target.phone,
            cost_per_minute=settings.call_cost_per_minute,
            status=INITIATED,
        )
        db.commit()

        call_initiation_counter.labels(outcome="connected").inc()
        log_call_event(
            request_id,
            "initiated",
            session_id=db_session.id,
            provider_call_id=provider_call.provider_call_id,
            caller_id=user_id,
            receiver_id=target_id,
        )

        return InitiateCallResponse(
            session_id=db_session.id,
            virtual_number_caller=virtual_number_caller,
            virtual_number_receiver=virtual_number_receiver,
        )

    except InsufficientCreditsError:
        db.rollback()
        call_initiation_counter.labels(outcome="no_credits").inc()
        raise HTTPException(
            status_code=402,
            detail="No active call credits. Please purchase a call plan to make calls.",
        )

    except NotFoundError as e:
        db.rollback()
        call_initiation_counter.labels(outcome="not_found").inc()
        raise HTTPException(status_code=404, detail=str(e))

    except NotMatchedError as e:
        db.rollback()
        call_initiation_counter.labels(outcome="not_matched").inc()
        logging.info(f"Call refused: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=403, detail="You can only call your matches")

    except ProviderError as e:
        db.rollback()
        call_initiation_counter.labels(outcome="provider_error").inc()
        logging.error(f"Telephony provider error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=502, detail="Failed to initiate call. Please try again.")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Call initiation failed")


def _charge_participants(credits: CreditRepository, session: CallSession, amount: int, request_id: str) -> None:
    """Deduct the same share from caller and receiver; a participant without credits is logged"""
    now = _utcnow()
    for participant_id in (session.caller_id, session.receiver_id):
        balance_id = credits.charge_user(
            participant_id, amount, now, settings.credit_deduction_max_attempts
        )
        if balance_id is None:
            credit_deduction_failures_counter.inc()
            log_call_event(
                request_id,
                "charge_skipped_no_credits",
                session_id=session.id,
                provider_call_id=session.provider_call_id,
                level=logging.WARNING,
                user_id=participant_id,
                credits=amount,
            )


@router.post("/calls/webhook", response_model=WebhookResponse)
def handle_call_webhook(
    payload: CallWebhookRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Apply a provider status callback to its call session.

    Deliveries are at-least-once and may arrive out of order. Once a session
    is terminal every further event is acknowledged without changes, so a
    repeated `completed` never charges twice.
    """
    request_id = get_request_id(request)

    if not payload.provider_call_id:
        raise HTTPException(status_code=400, detail="provider_call_id is required")
    if not payload.status:
        raise HTTPException(status_code=400, detail="status is required")

    event = WebhookEvent(
        provider_call_id=payload.provider_call_id,
        status=payload.status,
        duration_seconds=parse_duration(payload.duration_seconds),
        recording_url=payload.recording_url,
    )

    sessions = CallSessionRepository(db)
    session = sessions.find_by_provider_id(event.provider_call_id)
    if session is None:
        record_webhook(event.status, "unknown_session")
        log_call_event(
            request_id, "webhook_unknown_session", provider_call_id=event.provider_call_id, level=logging.WARNING
        )
        raise HTTPException(status_code=404, detail="Call session not found")

    try:
        transition = plan_transition(session, event, _utcnow())
    except SessionAlreadyTerminalError as e:
        record_webhook(event.status, "duplicate")
        log_call_event(
            request_id,
            "webhook_ignored",
            session_id=session.id,
            provider_call_id=event.provider_call_id,
            reason=str(e),
        )
        return WebhookResponse(message="Session already ended; event ignored")

    try:
        if not sessions.update_if_open(session.id, transition.updates):
            # Another delivery ended the session between our read and write
            db.rollback()
            record_webhook(event.status, "duplicate")
            log_call_event(
                request_id, "webhook_lost_race", session_id=session.id, provider_call_id=event.provider_call_id
            )
            return WebhookResponse(message="Session already ended; event ignored")

        if transition.credits_per_participant > 0:
            _charge_participants(CreditRepository(db), session, transition.credits_per_participant, request_id)

        if transition.write_call_logs:
            CallLogRepository(db).create_pair(
                session, event.duration_seconds, transition.credits_per_participant
            )

        db.commit()

    except CreditDeductionError as e:
        db.rollback()
        credit_deduction_failures_counter.inc()
        log_call_event(
            request_id,
            "charge_failed",
            session_id=session.id,
            provider_call_id=event.provider_call_id,
            level=logging.ERROR,
            error=str(e),
        )
        # Non-2xx makes the provider redeliver; the session is still open so the retry bills
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    except Exception as e:
        db.rollback()
        logging.error(f"Webhook processing error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    record_webhook(event.status, "ended" if transition.terminal else "applied")
    log_call_event(
        request_id,
        f"status_{transition.status}",
        session_id=session.id,
        provider_call_id=event.provider_call_id,
        duration_seconds=event.duration_seconds,
        credits_per_participant=transition.credits_per_participant,
    )
    return WebhookResponse()


@router.get("/calls/session/{session_id}", response_model=CallSessionView)
def get_call_session(
    session_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Retrieve a call session for one of its participants.

    Returns:
        Status, duration, cost and the virtual numbers; never the real ones
    """
    try:
        record = CallSessionRepository(db).get_by_id(session_id)
        if record is None:
            raise NotFoundError("Call session not found")
        if user_id not in (record.caller_id, record.receiver_id):
            raise ForbiddenError("Not a participant of this call")
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ForbiddenError as e:
        raise HTTPException(status_code=403, detail=str(e))

    return CallSessionView(
        id=record.id,
        status=record.status,
        duration_seconds=record.duration_seconds,
        cost=record.cost,
        caller_name=record.caller.name,
        receiver_name=record.receiver.name,
        virtual_number_caller=record.caller_virtual_number,
        virtual_number_receiver=record.receiver_virtual_number,
        is_caller=user_id == record.caller_id,
        created_at=record.created_at,
        started_at=record.started_at,
        ended_at=record.ended_at,
    )


@router.get("/calls/logs", response_model=CallLogsResponse)
def get_call_logs(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """The user's 50 most recent calls, newest first"""
    logs = CallLogRepository(db).list_for_user(user_id, limit=50)

    return CallLogsResponse(
        logs=[
            CallLogItem(
                id=log.id,
                session_id=log.session_id,
                other_user_id=log.other_user_id,
                other_user_name=log.other_user_name,
                direction=log.direction,
                duration_seconds=log.duration_seconds,
                cost=log.cost,
                masked_number=log.masked_number,
                created_at=log.created_at,
            )
            for log in logs
        ]
    )


@router.get("/calls/credits", response_model=CallCreditsResponse)
def get_call_credits(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Active call-credit balances, soonest expiry first"""
    balances = CreditRepository(db).list_active_balances(user_id, _utcnow())

    return CallCreditsResponse(
        balances=[
            CreditBalanceItem(
                id=b.id,
                plan_name=b.plan_name,
                credits_remaining=b.credits_remaining,
                expires_at=b.expires_at,
            )
            for b in balances
        ],
        total_remaining=sum(b.credits_remaining for b in balances),
    )

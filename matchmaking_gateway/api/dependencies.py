"""Dependency injection for FastAPI endpoints"""

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from matchmaking_gateway.config import settings
from matchmaking_gateway.infrastructure.clients.telephony import TelephonyClient

_security = HTTPBearer(auto_error=False)


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_telephony_client() -> TelephonyClient:
    """Provide telephony provider client instance"""
    return TelephonyClient()


def verify_token(token: str) -> dict:
    """Decode a bearer token issued by the login service"""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def get_current_user_id(credentials: HTTPAuthorizationCredentials | None = Depends(_security)) -> int:
    """Authenticated user's id from the `userId` claim"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    claims = verify_token(credentials.credentials)
    try:
        return int(claims["userId"])
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has no user",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

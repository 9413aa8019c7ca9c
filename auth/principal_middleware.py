"""
Principal resolution for incoming requests.

PrincipalMiddleware verifies a bearer JWT and attaches the Principal to
request.state. It never rejects a request: routes that require
permissions get a 401 from the guard when no principal is attached.

Expected token claims:
    {"sub": "<user id>", "role": "ADMIN" | "EDITOR" | "USER", "email": "..."}
"""

from typing import Any, Optional

import jwt
from fastapi import Request
from loguru import logger
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from permissions.schemas import Principal


def principal_from_claims(payload: dict) -> Optional[Principal]:
    """Build a Principal from decoded token claims, or None if unusable"""
    user_id = payload.get("sub")
    if not user_id:
        logger.warning("[PRINCIPAL] Token missing sub claim")
        return None
    try:
        return Principal(
            id=str(user_id),
            role=payload.get("role") or "USER",
            email=payload.get("email"),
        )
    except ValidationError as e:
        logger.warning(f"[PRINCIPAL] Invalid principal claims: {e}")
        return None


def decode_bearer_token(authorization: Optional[str], secret: str, algorithm: str) -> Optional[Principal]:
    if not authorization or not authorization.startswith("Bearer "):
        return None

    token = authorization[len("Bearer "):].strip()
    try:
        payload = jwt.decode(token, key=secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        logger.warning("[PRINCIPAL] Token expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"[PRINCIPAL] Invalid token: {e}")
        return None

    return principal_from_claims(payload)


class PrincipalMiddleware(BaseHTTPMiddleware):
    """Attach the authenticated Principal (or None) to request.state"""

    def __init__(self, app, secret: Optional[str], algorithm: str = "HS256"):
        super().__init__(app)
        self.secret = secret
        self.algorithm = algorithm
        if not secret:
            logger.warning("[PRINCIPAL] JWT_SECRET not set - all requests are anonymous")

    async def dispatch(self, request: Request, call_next):
        principal = None
        if self.secret:
            principal = decode_bearer_token(
                request.headers.get("authorization"),
                self.secret,
                self.algorithm
            )
        request.state.principal = principal
        return await call_next(request)


def resolve_request_principal(context: Any) -> Optional[Principal]:
    """
    PrincipalResolver for the authorization guard.

    Accepts a Request (reads request.state.principal) or a Principal.
    """
    if isinstance(context, Principal):
        return context
    state = getattr(context, "state", None)
    if state is None:
        return None
    return getattr(state, "principal", None)

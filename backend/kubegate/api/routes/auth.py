from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Header

from kubegate.core.security import TokenError, TokenFailure, TokenService
from kubegate.dependencies import get_token_service
from kubegate.exceptions import UnauthorizedError
from kubegate.schemas.auth import LoginRequest, TokenResponse, TokenStatus

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["auth"])

# The validation endpoint exists to tell the dashboard why its session is gone,
# so unlike the access gate it reports the failure class.
_VALIDATION_MESSAGES = {
    TokenFailure.MISSING_HEADER: "Authorization header required",
    TokenFailure.EMPTY_TOKEN: "Token required",
}


@router.post("/login", response_model=TokenResponse, summary="Exchange credentials for an access token")
async def login(body: LoginRequest, tokens: TokenService = Depends(get_token_service)) -> TokenResponse:
    if not tokens.check_credentials(body.username, body.password):
        logger.warning("auth.login_failed", username=body.username)
        raise UnauthorizedError("Invalid credentials")
    token = tokens.issue(body.username)
    logger.info("auth.login_succeeded", username=body.username)
    return TokenResponse(token=token)


@router.get("/validate-token", response_model=TokenStatus, summary="Check whether a token is still valid")
async def validate_token(
    authorization: str | None = Header(default=None),
    tokens: TokenService = Depends(get_token_service),
) -> TokenStatus:
    try:
        identity = tokens.verify_header(authorization)
    except TokenError as exc:
        raise UnauthorizedError(_VALIDATION_MESSAGES.get(exc.reason, "Invalid token")) from exc
    return TokenStatus(username=identity)

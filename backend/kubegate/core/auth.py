from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Union

import structlog
from fastapi import Depends, Request, Response
from fastapi.routing import APIRoute

from kubegate.core.security import TokenError, TokenFailure, TokenService
from kubegate.dependencies import get_token_service
from kubegate.exceptions import UnauthorizedError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Admitted:
    identity: str


@dataclass(frozen=True)
class Rejected:
    reason: TokenFailure


GateDecision = Union[Admitted, Rejected]


class AccessGate:
    """Decides whether a request may reach a protected handler."""

    def __init__(self, tokens: TokenService) -> None:
        self._tokens = tokens

    def check(self, authorization: str | None) -> GateDecision:
        try:
            return Admitted(self._tokens.verify_header(authorization))
        except TokenError as exc:
            return Rejected(exc.reason)


def get_access_gate(tokens: TokenService = Depends(get_token_service)) -> AccessGate:
    return AccessGate(tokens)


def _admit(request: Request, gate: AccessGate) -> str:
    decision = gate.check(request.headers.get("Authorization"))
    if isinstance(decision, Rejected):
        # Callers get one uniform message; the distinct reason is only logged.
        logger.info("auth.rejected", reason=decision.reason.value, path=request.url.path)
        raise UnauthorizedError()
    request.state.identity = decision.identity
    return decision.identity


class GatedRoute(APIRoute):
    """Route class that runs the access gate before the body is read or validated.

    Router dependencies resolve only after FastAPI has decoded the JSON body, so an
    unauthenticated request with a broken body would otherwise get a 400 instead of a 401.
    """

    def get_route_handler(self) -> Callable[[Request], Awaitable[Response]]:
        handler = super().get_route_handler()

        async def gated_handler(request: Request) -> Response:
            _admit(request, AccessGate(TokenService(request.app.state.settings)))
            return await handler(request)

        return gated_handler


async def require_identity(request: Request, gate: AccessGate = Depends(get_access_gate)) -> str:
    """Router-level dependency returning the admitted identity.

    Routes built with ``GatedRoute`` have already been admitted; anything else is checked here.
    """
    identity = getattr(request.state, "identity", None)
    if identity is not None:
        return identity
    return _admit(request, gate)

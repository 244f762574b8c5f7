from typing import Any, Dict, Optional
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base class for errors raised by the service layer with a fixed HTTP mapping."""

    status_code = 500
    code = "APP_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details or {}
        self.headers = headers or {}


class MalformedRequestError(AppException):
    status_code = 400
    code = "MALFORMED_REQUEST"


class UnauthorizedError(AppException):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Invalid or expired token", **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class NotFoundError(AppException):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(AppException):
    status_code = 409
    code = "CONFLICT"


class InternalError(AppException):
    status_code = 500
    code = "INTERNAL_ERROR"


class ClusterUnavailableError(AppException):
    """The Kubernetes API could not be configured or reached."""

    status_code = 503
    code = "CLUSTER_UNAVAILABLE"


def _build_error_payload(
    *,
    message: str,
    status_code: int,
    code: str = "APP_ERROR",
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    rid = request_id or str(uuid.uuid4())
    payload: Dict[str, Any] = {
        "success": False,
        "error": {
            "message": message,
            "code": code,
            **({"details": details} if details else {}),
        },
        "request_id": rid,
        "status_code": status_code,
    }
    return payload


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def register_exception_handlers(app: FastAPI) -> None:
    """Register global handlers so every error leaves in the same envelope."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        req_id = _request_id(request)
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        payload = _build_error_payload(
            message=message,
            status_code=exc.status_code,
            code="HTTP_ERROR",
            request_id=req_id,
        )
        logger.warning(
            "HTTPException: status=%s path=%s request_id=%s",
            exc.status_code,
            request.url.path,
            req_id,
        )
        headers = {"X-Request-ID": req_id, **(exc.headers or {})}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        req_id = _request_id(request)
        errors = exc.errors()
        # Only field locations and messages go back; input values may contain passwords.
        summary = [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in errors]
        payload = _build_error_payload(
            message="Invalid request body",
            status_code=400,
            code=MalformedRequestError.code,
            details={"errors": summary},
            request_id=req_id,
        )
        logger.info(
            "ValidationError: path=%s errors=%d request_id=%s",
            request.url.path,
            len(errors),
            req_id,
        )
        return JSONResponse(status_code=400, content=payload, headers={"X-Request-ID": req_id})

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):  # type: ignore[override]
        req_id = _request_id(request)
        payload = _build_error_payload(
            message=exc.message,
            status_code=exc.status_code,
            code=exc.code,
            details=exc.details,
            request_id=req_id,
        )
        logger.warning(
            "AppException: status=%s code=%s path=%s request_id=%s",
            exc.status_code,
            exc.code,
            request.url.path,
            req_id,
        )
        headers = {"X-Request-ID": req_id, **exc.headers}
        return JSONResponse(status_code=exc.status_code, content=payload, headers=headers)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):  # type: ignore[override]
        req_id = _request_id(request)
        logger.exception("UnhandledException: path=%s request_id=%s", request.url.path, req_id)
        payload = _build_error_payload(
            message="Internal server error",
            status_code=500,
            code=InternalError.code,
            request_id=req_id,
        )
        return JSONResponse(status_code=500, content=payload, headers={"X-Request-ID": req_id})

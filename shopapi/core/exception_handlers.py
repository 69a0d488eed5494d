import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import BaseAPIException, InternalServerError

logger = logging.getLogger("shopapi")


def _describe(request: Request) -> str:
    client = request.client.host if request.client else "-"
    return f"{request.method} {request.url} from {client}"


def _envelope(code: str, message: str, details: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details},
    }


def _log_status(tag: str, request: Request, status_code: int, detail: Any) -> None:
    line = f"[{tag}] {_describe(request)} -> {status_code}: {detail}"
    if status_code >= 500:
        logger.error(line)
    else:
        logger.warning(line)


async def handle_base_api_exception(request: Request, exc: BaseAPIException):
    _log_status("BaseAPIException", request, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.detail)  # type: ignore[arg-type]


async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    _log_status("HTTPException", request, exc.status_code, exc.detail)

    # 이미 envelope 형태면 그대로, 아니면 표준 형태로 감싼다
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = _envelope("HTTP_ERROR", str(exc.detail), {})
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def handle_validation_error(request: Request, exc: RequestValidationError):
    _log_status("ValidationError", request, 422, exc.errors())
    content = _envelope(
        "VALIDATION_001",
        "Validation failed",
        {"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(status_code=422, content=content)


async def handle_unexpected_error(request: Request, exc: Exception):
    # 스택 트레이스는 로그에만 남기고 응답에는 노출하지 않는다
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[Unhandled Error] {_describe(request)}\n"
        f"Exception Type: {type(exc).__name__}\n"
        f"Exception Message: {str(exc)}\n\n"
        f"Full Stack Trace:\n{tb_str}"
    )
    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.detail)  # type: ignore[arg-type]


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseAPIException, handle_base_api_exception)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)

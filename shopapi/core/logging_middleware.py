import logging
import time
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("shopapi")


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 한 줄 로그 - 상태 코드 대역에 따라 레벨 결정"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.perf_counter()
        client = request.client.host if request.client else "-"
        target = f"{request.method} {request.url.path} from {client}"

        logger.info(f"[Request] {target}")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"[Unhandled Error] {target}")
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        line = f"[Response] {target} -> {response.status_code} in {elapsed_ms:.1f}ms"
        if response.status_code >= 500:
            logger.error(line)
        elif response.status_code >= 400:
            logger.warning(line)
        else:
            logger.info(line)
        return response

import uuid
import logging
from contextvars import ContextVar
from fastapi import Request

logger = logging.getLogger(__name__)

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Stamps every record with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True


async def logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    token = request_id_ctx.set(request_id)

    logger.info(f"request_started {request.method} {request.url.path}")

    try:
        response = await call_next(request)
        logger.info(f"request_finished status={response.status_code}")
        response.headers["X-Request-ID"] = request_id
        return response
    except Exception:
        logger.exception(f"request_failed {request.method} {request.url.path}")
        raise
    finally:
        request_id_ctx.reset(token)

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from dental_saas.core.metrics import request_metrics
from dental_saas.core.request_context import clear_request_context, set_request_context

logger = logging.getLogger(__name__)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        status_code = 500
        endpoint = request.url.path
        method = request.method
        response = None

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            company_id, user_id = _extract_dentist(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 2)

            request_metrics.observe(
                endpoint=endpoint,
                method=method,
                status_code=status_code,
                duration_ms=duration_ms,
                company_id=company_id,
            )

            logger.info(
                "request completed",
                extra={
                    "request_id": request_id,
                    "company_id": company_id,
                    "user_id": user_id,
                    "endpoint": endpoint,
                    "method": method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )

            if response is not None:
                response.headers["X-Request-ID"] = request_id

            clear_request_context()


def _extract_dentist(request: Request) -> tuple[str | None, str | None]:
    # Preenchido por get_current_dentist nas rotas autenticadas.
    dentist = getattr(request.state, "dentist", None)
    if dentist is None:
        return None, None
    company_id = getattr(dentist, "company_id", None)
    user_id = getattr(dentist, "id", None)
    return (
        str(company_id) if company_id is not None else None,
        str(user_id) if user_id is not None else None,
    )

# somar/core/middleware.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time
import logging

from somar.core.errors import DispatchError
from somar.shared.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

def setup_middleware(app: FastAPI):
    """Configure all middleware for the application"""

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.4f}s"
        )

        return response


def setup_exception_handlers(app: FastAPI):
    """Errores de dominio → respuesta JSON con código estable"""

    @app.exception_handler(DispatchError)
    async def dispatch_error_handler(request: Request, exc: DispatchError):
        if exc.informational:
            logger.info(f"ℹ️ {exc.error_code} en {request.url.path}: {exc.message}")
        elif exc.status_code >= 500:
            logger.error(f"❌ {exc.error_code} en {request.url.path}: {exc.message}")
        else:
            logger.warning(f"⚠️ {exc.error_code} en {request.url.path}: {exc.message}")

        body = ErrorResponse(
            message=exc.message,
            error_code=exc.error_code,
            informational=exc.informational,
            details=exc.details or None
        )
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

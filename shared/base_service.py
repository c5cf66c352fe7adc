"""
FastAPI scaffold shared by compliance services.

A service subclasses ``BaseService``, adds its routes and may override
``_check_dependencies``. The scaffold supplies request correlation,
HTTP metrics, ``/health``, ``/metrics`` and JSON error responses.
"""

import os
import time
from typing import Dict

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from shared.config import get_config
from shared.errors import ComplianceException
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

VERSION = "1.0.0"
REQUEST_ID_HEADER = "x-request-id"


class BaseService:
    """FastAPI application with the ambient compliance stack wired in."""

    def __init__(self, service_name: str, port: int):
        self.service_name = service_name
        self.port = port
        self.config = get_config(service_name, port)
        configure_logging(service_name, self.config.log_level)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)
        self._start_time = time.time()

        docs = self.config.enable_docs and self.config.env == "local"
        self.app = FastAPI(
            title=f"{service_name.title()} Service",
            description=f"Course Compliance - {service_name.title()} Service",
            version=VERSION,
            docs_url="/docs" if docs else None,
            redoc_url="/redoc" if docs else None,
        )
        self.app.middleware("http")(self._observe_request)
        self.app.add_exception_handler(ComplianceException, self._handle_compliance_error)
        self.app.add_exception_handler(Exception, self._handle_unexpected_error)
        self.app.add_api_route("/health", self._health, methods=["GET"])
        self.app.add_api_route("/metrics", self._metrics_exposition, methods=["GET"])

    async def _observe_request(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
        try:
            response = await call_next(request)
        finally:
            clear_context()
        elapsed = time.perf_counter() - started

        self.metrics.record_http_request(request.method, request.url.path, response.status_code, elapsed)
        self.logger.info(
            "HTTP request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(elapsed * 1000, 2),
            request_id=request_id
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    async def _handle_compliance_error(self, request: Request, exc: ComplianceException):
        self.logger.warning("Request rejected", code=exc.code, message=exc.message, details=exc.details)
        self.metrics.record_error(exc.code)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response().model_dump(by_alias=True)
        )

    async def _handle_unexpected_error(self, request: Request, exc: Exception):
        self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
        self.metrics.record_error("INTERNAL_ERROR")
        return JSONResponse(
            status_code=500,
            content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}}
        )

    async def _health(self):
        """Health check; 503 when a dependency check raises."""
        try:
            dependencies = await self._check_dependencies()
        except Exception as e:
            self.logger.error("Health check failed", error=str(e))
            self.metrics.record_health_check("error")
            return JSONResponse(
                status_code=503,
                content={"service": self.service_name, "status": "error", "error": str(e)}
            )

        self.metrics.record_health_check("ok")
        return {
            "service": self.service_name,
            "status": "ok",
            "uptimeSeconds": time.time() - self._start_time,
            "dependencies": dependencies,
            "version": VERSION,
            "commit": os.getenv("GIT_COMMIT", "unknown")
        }

    async def _metrics_exposition(self):
        return Response(content=generate_latest(self.metrics.registry), media_type=CONTENT_TYPE_LATEST)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Override to report service-specific dependencies."""
        return {}

    def run(self):
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )

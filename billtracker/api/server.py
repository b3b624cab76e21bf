"""
HTTP API

POST /api/import-bills turns pasted notes into bill candidates.
It never saves anything; the client shows the candidates and saves
the ones the user keeps.

Error responses always have an "error" key. Raw model output is
never part of a response.

Run with:
    billtracker-api
or:
    uvicorn billtracker.api.server:create_api --factory
"""

from functools import lru_cache
from typing import Callable, Optional

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from billtracker import __version__
from billtracker.config import get_settings
from billtracker.errors import BillImportError, ValidationError
from billtracker.models.imports import ImportRequest, ImportResponse
from billtracker.orchestrator import BillImportFlow, create_app_components, create_flow


logger = structlog.get_logger(__name__)


@lru_cache()
def default_flow() -> BillImportFlow:
    """The process-wide import flow, built on first use."""
    components = create_app_components()
    # create_flow raises the settings error when the flow is unavailable
    return components.flow or create_flow(components.settings, components.audit_logger)


def _error(status_code: int, error: str, details=None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def create_api(
    flow_factory: Optional[Callable[[], BillImportFlow]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        flow_factory: Returns the BillImportFlow to use per request.
                      Defaults to one flow built from settings.
    """
    settings = get_settings().app
    flow_factory = flow_factory or default_flow

    app = FastAPI(
        title="Bill Tracker API",
        version=__version__,
        docs_url="/docs" if settings.debug_mode else None,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    def get_flow() -> BillImportFlow:
        return flow_factory()

    @app.exception_handler(RequestValidationError)
    async def invalid_input(request: Request, exc: RequestValidationError):
        details = [
            {
                "loc": list(err.get("loc", ())),
                "msg": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        return _error(400, "Invalid input", details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return _error(405, "Method not allowed")
        return _error(exc.status_code, str(exc.detail))

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.options("/api/import-bills")
    async def import_bills_options():
        # Preflights with Access-Control-Request-Method never get here
        return JSONResponse(content={}, headers={"Allow": "POST, OPTIONS"})

    @app.post("/api/import-bills", response_model=ImportResponse)
    async def import_bills(
        body: ImportRequest,
        flow: BillImportFlow = Depends(get_flow),
    ):
        try:
            bills = await flow.extract_bills(body.text)
        except ValidationError as e:
            return _error(400, "Invalid input", [{"loc": ["body", "text"], "msg": str(e)}])
        except BillImportError as e:
            logger.error("import_bills_failed", error_type=type(e).__name__, error=str(e))
            return _error(500, "Failed to parse bills", str(e))

        # Serialized here: re-validating would check categories without
        # the configured vocabulary
        return JSONResponse(
            ImportResponse(bills=bills).model_dump(mode="json", by_alias=True)
        )

    return app


def main() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(create_api(), host="0.0.0.0", port=8000)

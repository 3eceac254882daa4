import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError

from backend.config import settings
from backend.database import engine
from backend.errors import ApiError, error_code
from backend.logging import configure_logging, request_id_var
from backend import models  # noqa: F401
from backend.routers import auth, lab, lab_results
from backend.seed.lab_test_seed import seed_lab_tests

configure_logging()

app = FastAPI(title="Hospital Lab Workflow API", version="0.1.0")
logger = logging.getLogger(__name__)

allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
    request_id_var.set(request_id)
    response = await call_next(request)
    response.headers.setdefault("X-Request-Id", request_id)
    return response


def _assert_database_at_head() -> None:
    project_root = Path(__file__).resolve().parent.parent
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    script = ScriptDirectory.from_config(alembic_cfg)
    expected_heads = set(script.get_heads())

    with engine.connect() as connection:
        context = MigrationContext.configure(connection)
        current_heads = set(context.get_current_heads())

    if current_heads != expected_heads:
        raise RuntimeError(
            "Database schema is not at Alembic head. "
            "Run `alembic upgrade head` before starting the API. "
            f"Current revisions: {sorted(current_heads) or ['<none>']}, "
            f"expected: {sorted(expected_heads)}."
        )


@app.on_event("startup")
def startup_event():
    _assert_database_at_head()
    if settings.seed_catalog_on_startup:
        seed_lab_tests()


@app.get("/")
def root():
    return {"success": True, "message": "Success", "data": {"status": "ok", "service": "hospital-lab"}}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "service": "hospital-lab",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def _error_response(status_code: int, message: str, code: str, details: dict | None = None) -> JSONResponse:
    content = {
        "success": False,
        "message": message,
        "code": code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers={"X-Request-Id": request_id_var.get() or ""})


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException):
    code = exc.code if isinstance(exc, ApiError) else error_code(exc.status_code)
    return _error_response(exc.status_code, str(exc.detail) if exc.detail else "Request failed", code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError):
    return _error_response(
        400,
        "Invalid request payload",
        "VALIDATION_ERROR",
        # submitted values are not echoed back; they may not be JSON encodable
        details={"errors": jsonable_encoder([{k: v for k, v in err.items() if k != "input"} for err in exc.errors()])},
    )


@app.exception_handler(StaleDataError)
async def stale_data_handler(_: Request, exc: StaleDataError):
    logger.warning("Rejected concurrent lab order update: %s", exc)
    return _error_response(409, "Lab order was modified by another request. Please retry.", "CONFLICT")


@app.exception_handler(Exception)
async def unhandled_exception_handler(_: Request, exc: Exception):
    logger.exception("Unhandled server error: %s", exc)
    return _error_response(500, "An unexpected error occurred", "INTERNAL_ERROR")


app.include_router(auth.router)
app.include_router(lab.router)
app.include_router(lab_results.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backend.main:app", host=settings.app_host, port=settings.app_port)

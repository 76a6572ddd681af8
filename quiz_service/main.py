# quiz_service/main.py
from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.database import init_db, make_session_factory
from shared.logging import configure_logging, set_request_id

from . import models  # noqa: F401  (registers tables on Base.metadata)
from .errors import QuizServiceError, StorageError, ValidationError
from .routes import build_router

load_dotenv()

logger = logging.getLogger("quiz-service")


# -------------------------
# Config
# -------------------------

DEFAULT_DATABASE_URL = "sqlite:///./quiz.db"


def _parse_origins(raw: str) -> list[str]:
    raw = (raw or "").strip()
    if not raw or raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


# -------------------------
# Identity (headers attached by the API gateway after token verification)
# -------------------------

async def identity_middleware(request: Request, call_next):
    rid = set_request_id(request.headers.get("X-Request-ID"))

    uid = (request.headers.get("X-User-ID") or "").strip()
    if uid:
        request.state.user = {
            "sub": uid,
            "email": (request.headers.get("X-User-Email") or "").strip(),
            "role": (request.headers.get("X-User-Role") or "user").strip().lower(),
        }
    else:
        request.state.user = None

    response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    return response


async def quiz_error_handler(request: Request, exc: QuizServiceError):
    if isinstance(exc, StorageError):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    content: dict = {"detail": exc.detail}
    if isinstance(exc, ValidationError):
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(database_url: str | None = None) -> FastAPI:
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    engine, SessionLocal = make_session_factory(url)
    init_db(engine)

    app = FastAPI(title="Quiz Service", version="1.0.0")
    app.state.engine = engine
    app.state.session_factory = SessionLocal

    origins = _parse_origins(os.getenv("CORS_ORIGINS", "*"))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject "*" with credentials
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(identity_middleware)
    app.add_exception_handler(QuizServiceError, quiz_error_handler)
    app.include_router(build_router(SessionLocal), prefix="/quiz", tags=["Quiz"])

    @app.get("/health", operation_id="health_check", tags=["Health"])
    async def health_check():
        return {"status": "healthy", "service": "quiz-service"}

    return app


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8006"))
    uvicorn.run(create_app(), host="0.0.0.0", port=port)

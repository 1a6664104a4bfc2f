import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dental_saas.core.config import CORS_ORIGINS, DATABASE_URL
from dental_saas.core.database import Base, engine
from dental_saas.core.logging_setup import configure_logging
from dental_saas.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    validate_required_secrets,
)
from dental_saas.middleware.observability import ObservabilityMiddleware
import dental_saas.models  # garante que os models são importados antes do create_all

from dental_saas.routers.auth import router as auth_router
from dental_saas.routers.cep import router as cep_router
from dental_saas.routers.dentists import router as dentists_router
from dental_saas.routers.internal_metrics import router as internal_metrics_router
from dental_saas.routers.patients import router as patients_router
from dental_saas.routers.public_intake import router as public_intake_router
from dental_saas.routers.subscription import router as subscription_router
from dental_saas.routers.treatments import router as treatments_router
from dental_saas.routers.webhooks import router as webhooks_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield


app = FastAPI(
    title="Dental SaaS API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        validate_required_secrets()
        # Em SQLite (dev/testes) as tabelas são criadas direto; em produção, use migrations.
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error",
        extra={"endpoint": request.url.path, "method": request.method},
    )
    return JSONResponse(status_code=500, content={"detail": "Erro interno do servidor"})


# Routers
app.include_router(public_intake_router)
app.include_router(cep_router)
app.include_router(auth_router)
app.include_router(dentists_router)
app.include_router(patients_router)
app.include_router(treatments_router)
app.include_router(subscription_router)
app.include_router(webhooks_router)
app.include_router(internal_metrics_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}

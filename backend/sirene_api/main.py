"""
Point d'entrée principal de l'API Sirène d'École.
Démarrage : uvicorn sirene_api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import sirene_api.models  # noqa: F401  enregistre tous les modèles dans Base.metadata avant les routers
from sirene_api.config import settings
from sirene_api.exceptions import DomainError
from sirene_api.routers import (
    abonnements,
    auth,
    calendriers,
    ecoles,
    interventions,
    notifications,
    ordres_mission,
    paiements,
    pannes,
    programmations,
    referentiel,
    tokens,
)
from sirene_api.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cycle de vie de l'application : démarre et arrête le scheduler APScheduler s'il est activé."""
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Sirène d'École API",
    description="API de gestion des sirènes d'écoles : abonnements, tokens, pannes et interventions",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# allow_origin_regex est nécessaire pour les requêtes preflight POST avec Content-Type JSON.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=settings.CORS_ORIGIN_REGEX,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(auth.router)
app.include_router(referentiel.router)
app.include_router(ecoles.router)
app.include_router(abonnements.router)
app.include_router(paiements.router)
app.include_router(tokens.router)
app.include_router(pannes.router)
app.include_router(ordres_mission.router)
app.include_router(interventions.router)
app.include_router(calendriers.router)
app.include_router(programmations.router)
app.include_router(notifications.router)


def _error(status_code: int, message: str, errors=None) -> JSONResponse:
    content = {"success": False, "message": message, "data": None}
    if errors is not None:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Erreurs métier levées par les services : 404, 400 ou 422 selon leur type."""
    logger.info("%s %s refusé : %s", request.method, request.url.path, exc)
    return _error(exc.status_code, str(exc))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(422, "Données invalides.", errors=exc.errors())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return _error(500, "Une erreur interne est survenue.")


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Sirène d'École API", "version": "0.1.0"}

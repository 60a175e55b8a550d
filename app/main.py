import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Imports de l'application
from app.api.v2.api import api_router
from app.api.v2.errors import error_detail
from app.core.config import settings
from app.db import base  # noqa: F401  (enregistre tous les modèles)
from app.db.base_class import Base
from app.db.session import engine
from app.services.progression.errors import ProgressionError

# --- Configuration du logging ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# --- Initialisation de l'application FastAPI ---
app = FastAPI(
    title="Edifai API V2",
    openapi_url="/api/v2/openapi.json",
)


def _sanitize_origin(origin: str | None) -> str | None:
    if not origin:
        return None
    value = origin.strip()
    if not value:
        return None
    if not value.startswith("http"):
        value = f"https://{value}"
    return value.rstrip("/")


cors_origins = sorted({o for o in (_sanitize_origin(v) for v in settings.BACKEND_CORS_ORIGINS) if o})
logger.info("CORS origins configurés: %s", cors_origins)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Authorization", "Content-Type"],
)


@app.exception_handler(ProgressionError)
async def progression_error_handler(request: Request, exc: ProgressionError):
    return JSONResponse(status_code=exc.status_code, content={"detail": error_detail(exc)})


app.include_router(api_router, prefix="/api/v2")


# --- Événement de Démarrage ---
@app.on_event("startup")
def startup():
    logger.info("Vérification et création des tables de la base de données...")
    Base.metadata.create_all(bind=engine)
    logger.info("✅ Les tables de la base de données sont prêtes.")


# --- Route Racine ---
@app.get("/")
def read_root():
    return {"message": "Welcome to Edifai API V2!"}

"""
Outbound Attribution API.

Serves the agency dashboard and operator tooling: attribution runs, domain
review, and the reconciliation billing workflow. Every route lives under
/api/v1; /health and / are unversioned.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import attribution, reconciliation
from domain.attribution import ATTRIBUTION_WINDOW_DAYS
from services.settings import get_settings

SERVICE_NAME = "outbound-attribution-api"

app = FastAPI(
    title="Outbound Attribution API",
    description="Match outcomes to outbound emails and bill clients for attributed revenue",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Credentials are only allowed for an explicit origin list
_origins = list(get_settings().cors_allow_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=_origins != ["*"],
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["*"],
)

app.include_router(attribution.router, prefix="/api/v1", tags=["Attribution"])
app.include_router(reconciliation.router, prefix="/api/v1", tags=["Reconciliation"])


@app.get("/health", tags=["Health"])
def health_check():
    """Liveness check; does not touch Supabase."""
    return {
        "status": "healthy",
        "version": __version__,
        "service": SERVICE_NAME,
        "default_attribution_window_days": ATTRIBUTION_WINDOW_DAYS,
    }


@app.get("/", tags=["Root"])
def root():
    return {
        "message": "Outbound Attribution API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "attribution": "/api/v1/attribution",
            "reconciliation": "/api/v1/reconciliation",
        },
    }

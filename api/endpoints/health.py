# api/endpoints/health.py

import logging
from fastapi import APIRouter

log = logging.getLogger(__name__)

# --- Setup ---
health_router = APIRouter()


@health_router.get("/health")
@health_router.head("/health")
def health_check():
    """Server health check."""
    return {"status": "ok"}

import asyncio
import os
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api.dependencies import get_session_store
from api.metrics import ACTIVE_SESSIONS
from api.upstream_health import probe_upstream
from auth.provider import AUTH_URL
from gateway.backend_client import API_BASE_URL
from llm.providers.openai_compatible import LM_STUDIO_URL
from storage.session_store import SessionStore

router = APIRouter()
logger = logging.getLogger(__name__)

# Config
HEALTH_CHECK_UPSTREAMS = os.getenv("HEALTH_CHECK_UPSTREAMS", "true").lower() in {
    "1",
    "true",
    "yes",
}
HEALTH_PROBE_TIMEOUT_S = float(os.getenv("HEALTH_PROBE_TIMEOUT_S", "1.0"))


def _upstreams() -> dict:
    llm_url = os.getenv("LM_STUDIO_URL", LM_STUDIO_URL)
    return {
        "backend": f"{API_BASE_URL.rstrip('/')}/api/",
        "auth": f"{AUTH_URL.rstrip('/')}/auth/v1/health",
        "llm": llm_url.replace("/chat/completions", "/models"),
    }


@router.get("/health")
async def health_check(store: SessionStore = Depends(get_session_store)) -> dict:
    """Health check endpoint for container orchestration."""
    health = {
        "status": "healthy",
        "profile": os.getenv("DEPLOYMENT_PROFILE", "unknown"),
        "sessions": len(store),
    }

    if HEALTH_CHECK_UPSTREAMS:
        probes = await asyncio.gather(
            *(
                asyncio.to_thread(probe_upstream, name, url, HEALTH_PROBE_TIMEOUT_S)
                for name, url in _upstreams().items()
            )
        )
        health["upstreams"] = {
            p.name: {"reachable": p.reachable, "status_code": p.status_code}
            for p in probes
        }
        # The model is optional for most pages; only backend and auth degrade us
        if not all(p.reachable for p in probes if p.name != "llm"):
            health["status"] = "degraded"

    return health


@router.get("/metrics")
async def metrics(store: Optional[SessionStore] = Depends(get_session_store)) -> Response:
    """
    Prometheus scrape endpoint.
    """
    ACTIVE_SESSIONS.set(len(store))
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)

"""Health endpoint for botgate.

GET /health returns 503 until the lifespan has finished startup
(``app.state.ready``), then 200 with the effective classifier settings.
Polled by container/cloud health probes.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from botgate.classifier.providers import PROVIDERS
from botgate.config import Config

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check.

    Response body (200)::

        {
          "status": "ok",
          "providers": ["blackbox", "getipintel", "teoh", "proxycheck", "iphub"],
          "provider_timeout_s": 5.0,
          "deadline_s": 8.0,
          "enrichment": true
        }
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "botgate is starting up"},
        )

    config: Config = request.app.state.config
    return {
        "status": "ok",
        "providers": [name for name, _ in PROVIDERS],
        "provider_timeout_s": config.classifier.provider_timeout_s,
        "deadline_s": config.classifier.deadline_s,
        "enrichment": config.enrichment.enabled,
    }

"""Visitor redirect handler for botgate.

Per request:
  1. resolve the client address from headers / peer (fallback IP if none)
  2. run the consensus classifier against it
  3. look up ISP / country for the log line (informational)
  4. 302 to ``redirect.block_url`` when automated, else ``redirect.allow_url``

Key design properties:
  - Shared httpx.AsyncClient at app.state.http_client, never created per-request
  - Stateless: nothing is kept between requests
  - Recoverable failures are absorbed inside the resolver, the provider checks
    and the enrichment lookup. Anything that escapes is turned into a 500 by
    the global exception handler in main.py, and no redirect is issued.
"""

from __future__ import annotations

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from botgate.classifier.consensus import classify
from botgate.config import Config
from botgate.constants import (
    DEFAULT_PROVIDER_TIMEOUT_S,
    POOL_KEEPALIVE_EXPIRY,
    POOL_MAX_CONNECTIONS,
    POOL_MAX_KEEPALIVE,
    REDIRECT_STATUS_CODE,
)
from botgate.enrichment import lookup_ip_info
from botgate.resolver.address import resolve_client_ip
from botgate.utils.logger import clear_request_id, get_logger, set_request_id
from botgate.utils.ulid import generate_ulid

logger = get_logger(__name__)

router = APIRouter(tags=["redirect"])

REQUEST_ID_HEADER = "X-Botgate-Request-ID"


def create_http_client() -> httpx.AsyncClient:
    """Create the shared httpx.AsyncClient used for all outbound lookups.

    Created once at lifespan startup and stored in app.state.http_client.
    Per-call timeouts passed by the providers override the client default.
    """
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=POOL_MAX_CONNECTIONS,
            max_keepalive_connections=POOL_MAX_KEEPALIVE,
            keepalive_expiry=POOL_KEEPALIVE_EXPIRY,
        ),
        timeout=httpx.Timeout(DEFAULT_PROVIDER_TIMEOUT_S),
        follow_redirects=True,
        headers={"Accept": "application/json, text/plain;q=0.9"},
    )


@router.api_route("/{path:path}", methods=["GET", "HEAD", "POST"])
async def redirect_handler(request: Request, path: str) -> RedirectResponse:
    """Classify the visitor and redirect to the matching destination."""
    config: Config = request.app.state.config
    client: httpx.AsyncClient = request.app.state.http_client

    request_id = generate_ulid()
    set_request_id(request_id)
    try:
        peer_address = request.client.host if request.client else None
        ip = resolve_client_ip(request.headers, peer_address)
        if not ip:
            ip = config.classifier.fallback_ip
            logger.info(
                "No client address resolved, using fallback identity",
                peer_address=peer_address,
                fallback_ip=ip,
            )
        else:
            logger.debug("Resolved client address", ip=ip, peer_address=peer_address)

        classification = await classify(ip, client, config.classifier)
        ip_info = await lookup_ip_info(client, ip, config.enrichment)

        target = (
            config.redirect.block_url
            if classification.automated
            else config.redirect.allow_url
        )
        logger.info(
            "Visitor redirected",
            ip=ip,
            isp=ip_info.isp,
            country=ip_info.country,
            automated=classification.automated,
            blocked_by=classification.blocked_by,
            path=f"/{path}",
            target=target,
        )

        response = RedirectResponse(url=target, status_code=REDIRECT_STATUS_CODE)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        clear_request_id()

"""ISP / country enrichment for visitor log lines.

Purely informational: the result is logged next to the verdict and never feeds
the redirect decision. Any failure yields ``IpInfo()`` ("Unknown" fields).
"""

from __future__ import annotations

from typing import Optional

import httpx

from botgate.config import EnrichmentConfig
from botgate.constants import IPINFO_URL, UNKNOWN
from botgate.models.payloads import IpInfoResponse, ProviderParseError, decode_json
from botgate.models.verdict import IpInfo
from botgate.utils.logger import get_logger

logger = get_logger(__name__)


async def lookup_ip_info(
    client: httpx.AsyncClient,
    ip: str,
    settings: Optional[EnrichmentConfig] = None,
) -> IpInfo:
    """Look up ISP and country for ``ip``. Never raises."""
    settings = settings or EnrichmentConfig()
    if not settings.enabled:
        return IpInfo()

    try:
        response = await client.get(IPINFO_URL.format(ip=ip), timeout=settings.timeout_s)
        response.raise_for_status()
        payload = decode_json("ipinfo", response, IpInfoResponse)
    except (httpx.HTTPError, ProviderParseError) as exc:
        logger.debug("Enrichment lookup failed", ip=ip, error_type=type(exc).__name__)
        return IpInfo()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Unexpected enrichment failure", ip=ip, error_type=type(exc).__name__, error=str(exc))
        return IpInfo()

    return IpInfo(
        isp=payload.org or UNKNOWN,
        country=payload.country or UNKNOWN,
    )

"""Reputation provider checks — one coroutine per external signal.

FAIL-OPEN INVARIANTS:
  - Every check ALWAYS returns a ``Verdict``; it NEVER raises.
  - Network errors, timeouts, non-2xx responses, malformed bodies and schema
    mismatches all resolve to ``Verdict.ALLOW`` for that provider only.
  - ``asyncio.CancelledError`` is not swallowed, so the classifier deadline can
    still cancel a hung lookup.

Each check builds its own request, uses the injected ``httpx.AsyncClient`` and
the per-provider timeout from ``ClassifierConfig``. No state is shared between
checks.
"""

from __future__ import annotations

import functools
import random
import re
from typing import Awaitable, Callable, Optional

import httpx

from botgate.config import ClassifierConfig
from botgate.constants import (
    BLACKBOX_PROXY_SENTINEL,
    BLACKBOX_URL,
    GETIPINTEL_BLOCK_THRESHOLD,
    GETIPINTEL_URL,
    IPHUB_BLOCK_VALUE,
    IPHUB_URL,
    PROXYCHECK_OK_STATUS,
    PROXYCHECK_PROXY_FLAG,
    PROXYCHECK_URL,
    TEOH_BLOCK_RISK,
    TEOH_URL,
)
from botgate.models.payloads import (
    IpHubResponse,
    ProviderParseError,
    ProxyCheckResponse,
    TeohResponse,
    decode_json,
)
from botgate.models.verdict import Verdict
from botgate.utils.logger import get_logger

logger = get_logger(__name__)

ProviderCheck = Callable[[httpx.AsyncClient, str, ClassifierConfig], Awaitable[Verdict]]

# Leading decimal literal, mirroring how getipintel clients read the body
# ("0.995", "1", "-3", "0.99\n").
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def fail_open(name: str) -> Callable[[ProviderCheck], ProviderCheck]:
    """Wrap a provider check so that any failure resolves to ALLOW."""

    def decorator(check: ProviderCheck) -> ProviderCheck:
        @functools.wraps(check)
        async def wrapper(
            client: httpx.AsyncClient, ip: str, settings: ClassifierConfig
        ) -> Verdict:
            try:
                verdict = await check(client, ip, settings)
            except httpx.TimeoutException as exc:
                logger.warning("Provider timed out, ALLOW", provider=name, ip=ip, error_type=type(exc).__name__)
                return Verdict.ALLOW
            except httpx.HTTPStatusError as exc:
                logger.warning(
                    "Provider returned non-2xx, ALLOW",
                    provider=name,
                    ip=ip,
                    status_code=exc.response.status_code,
                )
                return Verdict.ALLOW
            except httpx.HTTPError as exc:
                logger.warning("Provider request failed, ALLOW", provider=name, ip=ip, error_type=type(exc).__name__, error=str(exc))
                return Verdict.ALLOW
            except ProviderParseError as exc:
                logger.warning("Provider payload unparseable, ALLOW", provider=name, ip=ip, reason=exc.reason)
                return Verdict.ALLOW
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Unexpected provider failure, ALLOW",
                    provider=name,
                    ip=ip,
                    error_type=type(exc).__name__,
                    error=str(exc),
                    exc_info=True,
                )
                return Verdict.ALLOW

            logger.debug("Provider verdict", provider=name, ip=ip, verdict=verdict.value)
            return verdict

        return wrapper

    return decorator


# ─── P1: blackbox.ipinfo.app ──────────────────────────────────────────────────


@fail_open("blackbox")
async def check_blackbox(client: httpx.AsyncClient, ip: str, settings: ClassifierConfig) -> Verdict:
    """Plain-text proxy lookup; body ``Y`` means proxy."""
    response = await client.get(BLACKBOX_URL.format(ip=ip), timeout=settings.provider_timeout_s)
    response.raise_for_status()
    return Verdict.BLOCK if response.text == BLACKBOX_PROXY_SENTINEL else Verdict.ALLOW


# ─── P2: getipintel.net ───────────────────────────────────────────────────────


@fail_open("getipintel")
async def check_getipintel(client: httpx.AsyncClient, ip: str, settings: ClassifierConfig) -> Verdict:
    """Probability score endpoint; BLOCK at or above 0.99.

    Negative scores are getipintel error codes and never reach the threshold.
    """
    response = await client.get(
        GETIPINTEL_URL,
        params={"ip": ip, "contact": _getipintel_contact(settings.getipintel_contact)},
        timeout=settings.provider_timeout_s,
    )
    response.raise_for_status()
    score = parse_score(response.text)
    if score is None:
        raise ProviderParseError("getipintel", "body is not numeric")
    return Verdict.BLOCK if score >= GETIPINTEL_BLOCK_THRESHOLD else Verdict.ALLOW


def parse_score(text: str) -> Optional[float]:
    """Parse the leading decimal number of ``text``; None when there is none."""
    match = _LEADING_FLOAT.match(text)
    if match is None:
        return None
    return float(match.group(1))


def _getipintel_contact(configured: Optional[str]) -> str:
    if configured:
        return configured
    return f"test{random.randrange(1_000_000)}@domain.com"


# ─── P3: ip.teoh.io ───────────────────────────────────────────────────────────


@fail_open("teoh")
async def check_teoh(client: httpx.AsyncClient, ip: str, settings: ClassifierConfig) -> Verdict:
    response = await client.get(TEOH_URL.format(ip=ip), timeout=settings.provider_timeout_s)
    response.raise_for_status()
    payload = decode_json("teoh", response, TeohResponse)
    return Verdict.BLOCK if payload.risk == TEOH_BLOCK_RISK else Verdict.ALLOW


# ─── P4: proxycheck.io ────────────────────────────────────────────────────────


@fail_open("proxycheck")
async def check_proxycheck(client: httpx.AsyncClient, ip: str, settings: ClassifierConfig) -> Verdict:
    """BLOCK only when the query succeeded AND the address entry says proxy."""
    response = await client.get(
        PROXYCHECK_URL.format(ip=ip),
        params={"risk": 1, "vpn": 1},
        timeout=settings.provider_timeout_s,
    )
    response.raise_for_status()
    payload = decode_json("proxycheck", response, ProxyCheckResponse)
    if payload.status != PROXYCHECK_OK_STATUS:
        return Verdict.ALLOW
    entry = payload.address(ip)
    if entry is not None and entry.proxy == PROXYCHECK_PROXY_FLAG:
        return Verdict.BLOCK
    return Verdict.ALLOW


# ─── P5: iphub.info ───────────────────────────────────────────────────────────


@fail_open("iphub")
async def check_iphub(client: httpx.AsyncClient, ip: str, settings: ClassifierConfig) -> Verdict:
    response = await client.get(
        IPHUB_URL.format(ip=ip),
        params={"c": repr(random.random())},  # cache buster
        timeout=settings.provider_timeout_s,
    )
    response.raise_for_status()
    payload = decode_json("iphub", response, IpHubResponse)
    return Verdict.BLOCK if payload.block == IPHUB_BLOCK_VALUE else Verdict.ALLOW


# Dispatch order P1..P5. Completion order is irrelevant to the verdict.
PROVIDERS: tuple[tuple[str, ProviderCheck], ...] = (
    ("blackbox", check_blackbox),
    ("getipintel", check_getipintel),
    ("teoh", check_teoh),
    ("proxycheck", check_proxycheck),
    ("iphub", check_iphub),
)

"""Consensus classifier — OR-combination of the reputation provider verdicts.

ATOMIC INVARIANTS:
  - ``classify()`` / ``is_automated()`` ALWAYS complete with exactly one
    decision; they NEVER raise (providers are fail-open, see providers.py).
  - All providers are dispatched before any is awaited; no provider gates
    another.
  - The decision is BLOCK iff at least one provider verdict is BLOCK. No
    weighting, quorum or retry.

Deadline: when ``ClassifierConfig.deadline_s`` is set, providers that have not
settled by then are cancelled and counted as ALLOW. Verdicts that did settle
are kept, so an early BLOCK still decides.
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional, Sequence

import httpx

from botgate.classifier.providers import PROVIDERS, ProviderCheck
from botgate.config import ClassifierConfig
from botgate.models.verdict import Classification, Verdict
from botgate.utils.logger import get_logger

logger = get_logger(__name__)


async def classify(
    ip: str,
    client: httpx.AsyncClient,
    settings: Optional[ClassifierConfig] = None,
    providers: Sequence[tuple[str, ProviderCheck]] = PROVIDERS,
) -> Classification:
    """Run every provider against ``ip`` concurrently and combine the results.

    Args:
        ip:        Resolved client address (never None; the caller substitutes
                   the configured fallback address).
        client:    Shared HTTP client passed through to each provider.
        settings:  Timeouts and provider options. Defaults when omitted.
        providers: ``(name, check)`` pairs in dispatch order.

    Returns:
        Classification holding every provider's verdict; ``automated`` is the
        OR over them.
    """
    settings = settings or ClassifierConfig()
    t0 = time.perf_counter()

    tasks: dict[str, asyncio.Task[Verdict]] = {
        name: asyncio.create_task(check(client, ip, settings), name=f"provider:{name}")
        for name, check in providers
    }
    if not tasks:
        return Classification(ip=ip)

    _, pending = await asyncio.wait(tasks.values(), timeout=settings.deadline_s)

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.warning(
            "Classifier deadline reached, pending providers count as ALLOW",
            ip=ip,
            deadline_s=settings.deadline_s,
            pending=sorted(name for name, task in tasks.items() if task in pending),
        )

    verdicts = {name: _settled_verdict(name, task, pending) for name, task in tasks.items()}
    classification = Classification(ip=ip, verdicts=verdicts)

    logger.info(
        "Classification complete",
        ip=ip,
        automated=classification.automated,
        blocked_by=classification.blocked_by,
        duration_ms=round((time.perf_counter() - t0) * 1000, 1),
    )
    return classification


async def is_automated(
    ip: str,
    client: httpx.AsyncClient,
    settings: Optional[ClassifierConfig] = None,
) -> bool:
    """Return True when any provider classifies ``ip`` as automated."""
    classification = await classify(ip, client, settings)
    return classification.automated


def _settled_verdict(name: str, task: asyncio.Task[Verdict], pending: set) -> Verdict:
    if task in pending or task.cancelled():
        return Verdict.ALLOW
    exc = task.exception()
    if exc is not None:
        # Providers are fail-open; this only fires if that contract is broken.
        logger.error("Provider raised past its boundary, ALLOW", provider=name, error=str(exc))
        return Verdict.ALLOW
    result = task.result()
    return result if isinstance(result, Verdict) else Verdict.ALLOW

"""Verdict contracts shared by the classifier and the redirect handler."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from botgate.constants import UNKNOWN


class Verdict(str, Enum):
    """Outcome of a single reputation provider check."""

    ALLOW = "ALLOW"
    BLOCK = "BLOCK"


@dataclass(frozen=True)
class Classification:
    """Per-provider verdicts for one address plus the combined decision.

    ``verdicts`` maps provider name to verdict in dispatch order.
    ``automated`` is True iff any provider returned BLOCK.
    """

    ip: str
    verdicts: dict[str, Verdict] = field(default_factory=dict)

    @property
    def automated(self) -> bool:
        return Verdict.BLOCK in self.verdicts.values()

    @property
    def blocked_by(self) -> list[str]:
        return [name for name, verdict in self.verdicts.items() if verdict is Verdict.BLOCK]


@dataclass(frozen=True)
class IpInfo:
    """Informational ISP/country metadata; never used for the decision."""

    isp: str = UNKNOWN
    country: str = UNKNOWN

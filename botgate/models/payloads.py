"""Response schemas for the structured reputation providers.

Each provider's JSON body is decoded into an explicit pydantic model with
optional, defaulted fields. Unknown keys are ignored. Anything that fails to
decode is surfaced as :class:`ProviderParseError` so the provider boundary can
map it to ALLOW.
"""

from __future__ import annotations

from typing import Any, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt, StrictStr, ValidationError

_M = TypeVar("_M", bound=BaseModel)


class ProviderParseError(ValueError):
    """A provider response body could not be decoded into its schema."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason


class TeohResponse(BaseModel):
    """ip.teoh.io VPN lookup."""

    model_config = ConfigDict(extra="ignore")

    risk: Optional[StrictStr] = None


class ProxyCheckAddress(BaseModel):
    """Per-address entry of a proxycheck.io v2 response."""

    model_config = ConfigDict(extra="ignore")

    proxy: Optional[StrictStr] = None
    type: Optional[StrictStr] = None


class ProxyCheckResponse(BaseModel):
    """proxycheck.io v2 response.

    The per-address entries are keyed by the queried IP itself, so they land
    in ``model_extra`` and are decoded on demand by :meth:`address`.
    """

    model_config = ConfigDict(extra="allow")

    status: Optional[StrictStr] = None

    def address(self, ip: str) -> Optional[ProxyCheckAddress]:
        entry = (self.model_extra or {}).get(ip)
        if entry is None:
            return None
        try:
            return ProxyCheckAddress.model_validate(entry)
        except ValidationError as exc:
            raise ProviderParseError("proxycheck", f"address entry: {exc.error_count()} errors") from exc


class IpHubResponse(BaseModel):
    """iphub.info guest lookup. ``block`` is 0 (residential), 1 (non-residential) or 2."""

    model_config = ConfigDict(extra="ignore")

    block: Optional[Union[StrictInt, StrictFloat]] = None


class IpInfoResponse(BaseModel):
    """ipinfo.io JSON lookup, used for enrichment only."""

    model_config = ConfigDict(extra="ignore")

    org: Optional[StrictStr] = None
    country: Optional[StrictStr] = None


def decode_json(provider: str, response: httpx.Response, model: type[_M]) -> _M:
    """Decode ``response`` into ``model``.

    Raises:
        ProviderParseError: Body is not JSON, not an object, or fails validation.
    """
    try:
        data: Any = response.json()
    except ValueError as exc:
        raise ProviderParseError(provider, "body is not valid JSON") from exc
    if not isinstance(data, dict):
        raise ProviderParseError(provider, f"expected JSON object, got {type(data).__name__}")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ProviderParseError(provider, f"{exc.error_count()} validation errors") from exc

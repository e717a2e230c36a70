"""Shared constants for botgate.

Provider endpoints, verdict thresholds and default timeouts live here so the
classifier and config modules never carry magic numbers.
"""

# ─── Redirect destinations (overridable via config / env) ────────────────────

DEFAULT_ALLOW_URL: str = "https://example.com/"
DEFAULT_BLOCK_URL: str = "https://www.facebook.com"

# HTTP status used for both destinations (temporary redirect).
REDIRECT_STATUS_CODE: int = 302

# ─── Address resolution ──────────────────────────────────────────────────────

# Identity used for classification when no address can be resolved at all.
# A well-known public resolver keeps the pipeline live for unknown-origin traffic.
DEFAULT_FALLBACK_IP: str = "8.8.8.8"

# ─── Provider endpoints ──────────────────────────────────────────────────────

BLACKBOX_URL: str = "https://blackbox.ipinfo.app/lookup/{ip}"
GETIPINTEL_URL: str = "http://check.getipintel.net/check.php"
TEOH_URL: str = "https://ip.teoh.io/api/vpn/{ip}"
PROXYCHECK_URL: str = "http://proxycheck.io/v2/{ip}"
IPHUB_URL: str = "https://v2.api.iphub.info/guest/ip/{ip}"

# Enrichment (informational only).
IPINFO_URL: str = "https://ipinfo.io/{ip}/json"

# ─── Verdict thresholds ──────────────────────────────────────────────────────

# Body returned by blackbox when the address is a known proxy.
BLACKBOX_PROXY_SENTINEL: str = "Y"

# getipintel probability at or above which the visitor is treated as automated.
GETIPINTEL_BLOCK_THRESHOLD: float = 0.99

TEOH_BLOCK_RISK: str = "high"
PROXYCHECK_OK_STATUS: str = "ok"
PROXYCHECK_PROXY_FLAG: str = "yes"
IPHUB_BLOCK_VALUE: int = 1

# Placeholder for enrichment fields the lookup could not fill.
UNKNOWN: str = "Unknown"

# ─── Timeouts (seconds) ──────────────────────────────────────────────────────

# Per-provider request timeout.
DEFAULT_PROVIDER_TIMEOUT_S: float = 5.0

# Bound on the five-way fan-in. Providers still pending are counted as ALLOW.
DEFAULT_CLASSIFIER_DEADLINE_S: float = 8.0

DEFAULT_ENRICHMENT_TIMEOUT_S: float = 3.0

# ─── Shared HTTP client pool ─────────────────────────────────────────────────

POOL_MAX_CONNECTIONS: int = 100
POOL_MAX_KEEPALIVE: int = 20
POOL_KEEPALIVE_EXPIRY: float = 30.0

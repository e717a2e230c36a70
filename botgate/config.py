"""Config loading for botgate.

Reads ``.botgate/config.yaml`` (or ``~/.botgate/config.yaml``).
Raises SystemExit on parse errors, a missing ``version`` field or invalid values.
If no config file is found, returns default values (safe to run without config).

Config search order:
  1. ``config_path`` argument (if provided, for testing or explicit override)
  2. BOTGATE_CONFIG environment variable (if set)
  3. ``.botgate/config.yaml`` (working directory)
  4. ``~/.botgate/config.yaml`` (home directory)

Environment variable overrides (applied after the file):
  BOTGATE_PORT        — server.port
  BOTGATE_ALLOW_URL   — redirect.allow_url
  BOTGATE_BLOCK_URL   — redirect.block_url
  BOTGATE_FALLBACK_IP — classifier.fallback_ip

Example::

    version: 1
    redirect:
      allow_url: https://example.com/landing
      block_url: https://www.facebook.com
    classifier:
      fallback_ip: 8.8.8.8
      provider_timeout_s: 5
      deadline_s: 8        # null disables the fan-in deadline
      getipintel_contact: ops@example.com
    enrichment:
      enabled: true
    server:
      host: 127.0.0.1
      port: 8080
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, NoReturn, Optional

import yaml

from botgate.constants import (
    DEFAULT_ALLOW_URL,
    DEFAULT_BLOCK_URL,
    DEFAULT_CLASSIFIER_DEADLINE_S,
    DEFAULT_ENRICHMENT_TIMEOUT_S,
    DEFAULT_FALLBACK_IP,
    DEFAULT_PROVIDER_TIMEOUT_S,
)
from botgate.utils.logger import get_logger

logger = get_logger(__name__)

SUPPORTED_CONFIG_VERSION = 1

SUPPORTED_VERSIONS: frozenset[int] = frozenset({1})

_URL_SCHEMES: tuple[str, ...] = ("http://", "https://")

DEFAULT_CONFIG_PATHS = [
    ".botgate/config.yaml",
    os.path.expanduser("~/.botgate/config.yaml"),
]


# ─── Dataclasses ─────────────────────────────────────────────────────────────


@dataclass
class RedirectConfig:
    """The two redirect destinations.

    allow_url: where human visitors are sent.
    block_url: where visitors classified as automated are sent.
    """

    allow_url: str = DEFAULT_ALLOW_URL
    block_url: str = DEFAULT_BLOCK_URL


@dataclass
class ClassifierConfig:
    """Consensus classifier settings."""

    fallback_ip: str = DEFAULT_FALLBACK_IP
    provider_timeout_s: float = DEFAULT_PROVIDER_TIMEOUT_S
    deadline_s: Optional[float] = DEFAULT_CLASSIFIER_DEADLINE_S
    getipintel_contact: Optional[str] = None  # randomized per call when unset


@dataclass
class EnrichmentConfig:
    enabled: bool = True
    timeout_s: float = DEFAULT_ENRICHMENT_TIMEOUT_S


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass
class Config:
    """Root configuration object populated from .botgate/config.yaml.

    All fields have safe defaults; botgate can start without any config file.
    """

    version: int = SUPPORTED_CONFIG_VERSION
    redirect: RedirectConfig = field(default_factory=RedirectConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    path: Optional[str] = None

    @classmethod
    def defaults(cls) -> "Config":
        return cls()

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[str] = None) -> "Config":
        """Construct Config from a parsed YAML dict.

        Merges user-supplied values onto defaults; unknown keys are ignored.

        Raises:
            SystemExit(1): On an invalid URL, timeout, port or boolean value.
        """
        redirect_raw = _section(raw, "redirect")
        redirect = RedirectConfig(
            allow_url=_validate_url(
                "redirect.allow_url", redirect_raw.get("allow_url", DEFAULT_ALLOW_URL)
            ),
            block_url=_validate_url(
                "redirect.block_url", redirect_raw.get("block_url", DEFAULT_BLOCK_URL)
            ),
        )

        classifier_raw = _section(raw, "classifier")
        deadline_raw = classifier_raw.get("deadline_s", DEFAULT_CLASSIFIER_DEADLINE_S)
        classifier = ClassifierConfig(
            fallback_ip=str(classifier_raw.get("fallback_ip", DEFAULT_FALLBACK_IP)),
            provider_timeout_s=_validate_seconds(
                "classifier.provider_timeout_s",
                classifier_raw.get("provider_timeout_s", DEFAULT_PROVIDER_TIMEOUT_S),
            ),
            deadline_s=(
                None
                if deadline_raw is None
                else _validate_seconds("classifier.deadline_s", deadline_raw)
            ),
            getipintel_contact=classifier_raw.get("getipintel_contact"),
        )

        enrichment_raw = _section(raw, "enrichment")
        enrichment = EnrichmentConfig(
            enabled=_validate_bool("enrichment.enabled", enrichment_raw.get("enabled", True)),
            timeout_s=_validate_seconds(
                "enrichment.timeout_s",
                enrichment_raw.get("timeout_s", DEFAULT_ENRICHMENT_TIMEOUT_S),
            ),
        )

        server_raw = _section(raw, "server")
        server = ServerConfig(
            host=server_raw.get("host", "127.0.0.1"),
            port=_validate_port("server.port", server_raw.get("port", 8080)),
        )

        return cls(
            version=raw.get("version", SUPPORTED_CONFIG_VERSION),
            redirect=redirect,
            classifier=classifier,
            enrichment=enrichment,
            server=server,
            path=path,
        )


# ─── Config loading ───────────────────────────────────────────────────────────


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate botgate configuration.

    If no file is found at any search path, returns the default Config (not an
    error). If a file is found but invalid, writes the error to stderr and
    raises SystemExit(1). Environment overrides are applied in both cases.

    Raises:
        SystemExit(1): On YAML parse error, missing ``version`` field,
                       unsupported version, invalid value or invalid env override.
    """
    search_paths: list[str] = []
    if config_path:
        search_paths.append(config_path)
    env_config = os.environ.get("BOTGATE_CONFIG")
    if env_config:
        search_paths.append(env_config)
    search_paths.extend(DEFAULT_CONFIG_PATHS)

    found_path: Optional[str] = None
    for candidate in search_paths:
        expanded = os.path.expanduser(candidate)
        if os.path.isfile(expanded):
            found_path = expanded
            break

    if found_path is None:
        logger.info("No config file found, using defaults", searched=search_paths)
        config = Config.defaults()
        _apply_env_overrides(config)
        return config

    logger.info("Loading config", path=found_path)

    try:
        with open(found_path) as fh:
            raw = yaml.safe_load(fh)
    except yaml.YAMLError as exc:
        _fail(
            f"CONFIG ERROR: Failed to parse {found_path}: {exc}\n"
            "botgate refuses to start with an invalid config."
        )
    except OSError as exc:
        _fail(f"CONFIG ERROR: Could not read {found_path}: {exc}")

    if not isinstance(raw, dict):
        if raw is None:
            _fail(
                f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
                "Add 'version: 1' to the top of your config file."
            )
        _fail(
            f"CONFIG ERROR: {found_path} is not a valid YAML mapping.\n"
            "The config file must be a YAML dictionary at the top level."
        )

    version = raw.get("version")
    if version is None:
        _fail(
            f"CONFIG ERROR: {found_path} is missing the required 'version' field.\n"
            "Add 'version: 1' to the top of your config file."
        )

    if version not in SUPPORTED_VERSIONS:
        _fail(
            f"CONFIG ERROR: Unsupported config version: {version}. "
            f"Supported versions: {sorted(SUPPORTED_VERSIONS)}."
        )

    config = Config.from_dict(raw, path=found_path)
    _apply_env_overrides(config)

    if config.classifier.deadline_s is None:
        logger.warning(
            "classifier.deadline_s is disabled; a hung provider stalls the redirect "
            "until its own timeout fires"
        )

    logger.info(
        "Config loaded",
        path=found_path,
        version=config.version,
        allow_url=config.redirect.allow_url,
        block_url=config.redirect.block_url,
    )
    return config


def _apply_env_overrides(config: Config) -> None:
    """Apply environment variable overrides to a Config object in-place.

    Raises:
        SystemExit(1): If an override value is invalid.
    """
    env_port = os.environ.get("BOTGATE_PORT")
    if env_port is not None:
        try:
            config.server.port = _validate_port("BOTGATE_PORT", int(env_port))
        except ValueError:
            _fail(
                "CONFIG ERROR: BOTGATE_PORT environment variable is not a valid "
                f"integer: '{env_port}'"
            )

    env_allow = os.environ.get("BOTGATE_ALLOW_URL")
    if env_allow:
        config.redirect.allow_url = _validate_url("BOTGATE_ALLOW_URL", env_allow)

    env_block = os.environ.get("BOTGATE_BLOCK_URL")
    if env_block:
        config.redirect.block_url = _validate_url("BOTGATE_BLOCK_URL", env_block)

    env_fallback = os.environ.get("BOTGATE_FALLBACK_IP")
    if env_fallback:
        config.classifier.fallback_ip = env_fallback.strip()


# ─── Validation helpers ──────────────────────────────────────────────────────


def _fail(msg: str) -> NoReturn:
    print(msg, file=sys.stderr)
    raise SystemExit(1)


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        _fail(f"CONFIG ERROR: '{name}' must be a mapping, got {type(value).__name__}.")
    return value


def _validate_url(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.startswith(_URL_SCHEMES):
        _fail(f"CONFIG ERROR: {name} must be an http(s) URL, got {value!r}.")
    return value


def _validate_seconds(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        _fail(f"CONFIG ERROR: {name} must be a positive number of seconds, got {value!r}.")
    return float(value)


def _validate_bool(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        _fail(f"CONFIG ERROR: {name} must be true or false, got {value!r}.")
    return value


def _validate_port(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 < value < 65536:
        _fail(f"CONFIG ERROR: {name} must be a TCP port (1-65535), got {value!r}.")
    return value

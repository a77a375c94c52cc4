"""Configuration models and factories for the UniProt clients.

Configuration is read from YAML and validated with Pydantic.  Environment
variables prefixed with ``UNIPROT_REST__`` override values from the file; the
remainder of the name is the configuration path with components separated by
double underscores, e.g. ``UNIPROT_REST__UNIPROT__TIMEOUT_SEC=60``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .entry import UniProtEntry
from .http_client import CacheConfig, HttpTransport, USER_AGENT
from .id_mapping import UniProtIdMapping
from .query import DEFAULT_BASE_URL
from .search import DEFAULT_HOP_DELAY, UniProtSearch

LOGGER = logging.getLogger(__name__)

ENV_PREFIX = "UNIPROT_REST__"

__all__ = [
    "CacheSettings",
    "ClientConfig",
    "ConfigError",
    "PaginationSettings",
    "UniProtSettings",
    "build_entry",
    "build_id_mapping",
    "build_search",
    "build_transport",
    "load_config",
]


class ConfigError(ValueError):
    """Raised when a configuration file parses but fails validation."""


class CacheSettings(BaseModel):
    """Optional persistent HTTP cache."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = False
    path: str | None = None
    ttl_sec: float = Field(default=0.0, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _normalise_ttl(cls, data: Any) -> Any:
        """Accept ``ttl`` and ``ttl_seconds`` as aliases of ``ttl_sec``."""

        if isinstance(data, Mapping) and "ttl_sec" not in data:
            normalised = dict(data)
            for alias in ("ttl", "ttl_seconds"):
                if alias in normalised:
                    normalised["ttl_sec"] = normalised.pop(alias)
                    break
            return normalised
        return data

    @field_validator("path")
    @classmethod
    def _non_empty_path(cls, value: str | None) -> str | None:
        if value is not None and not str(value).strip():
            msg = "Cache path must not be blank"
            raise ValueError(msg)
        return value

    def to_cache_config(self) -> CacheConfig:
        return CacheConfig(enabled=self.enabled, path=self.path, ttl_seconds=self.ttl_sec)


class UniProtSettings(BaseModel):
    """API endpoint and network behaviour."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = DEFAULT_BASE_URL
    timeout_sec: float = Field(default=30.0, gt=0)
    retries: int = Field(default=3, ge=0)
    backoff_sec: float = Field(default=1.0, ge=0)
    rps: float = Field(default=0.0, ge=0)
    user_agent: str = USER_AGENT

    @model_validator(mode="before")
    @classmethod
    def _merge_network_settings(cls, data: Any) -> Any:
        """Flatten nested ``network`` and ``rate_limit`` subsections."""

        if isinstance(data, Mapping):
            payload = dict(data)
            network = payload.pop("network", None)
            if isinstance(network, Mapping):
                for source, target in (
                    ("timeout_sec", "timeout_sec"),
                    ("max_retries", "retries"),
                    ("backoff_sec", "backoff_sec"),
                ):
                    if source in network:
                        payload.setdefault(target, network[source])
            rate_limit = payload.pop("rate_limit", None)
            if isinstance(rate_limit, Mapping) and "rps" in rate_limit:
                payload.setdefault("rps", rate_limit["rps"])
            return payload
        return data

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value or not value.strip():
            msg = "base_url must not be blank"
            raise ValueError(msg)
        if not value.startswith(("http://", "https://")):
            msg = "base_url must be an http(s) URL"
            raise ValueError(msg)
        return value.strip().rstrip("/")


class PaginationSettings(BaseModel):
    """Offset walk behaviour."""

    model_config = ConfigDict(extra="forbid")

    hop_delay_sec: float = Field(default=DEFAULT_HOP_DELAY, ge=0)


class ClientConfig(BaseModel):
    """Root configuration object."""

    model_config = ConfigDict(extra="ignore")

    uniprot: UniProtSettings = Field(default_factory=UniProtSettings)
    pagination: PaginationSettings = Field(default_factory=PaginationSettings)
    http_cache: CacheSettings | None = None


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Update ``data`` in place from ``UNIPROT_REST__`` environment variables."""

    env = os.environ if environ is None else environ
    for raw_key, value in env.items():
        if not raw_key.startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in raw_key[len(ENV_PREFIX) :].split("__") if part]
        if not path:
            continue
        ref: Any = data
        for part in path[:-1]:
            if not isinstance(ref, dict):
                break
            child = ref.get(part)
            if child is None:
                child = ref[part] = {}
            ref = child
        else:
            if isinstance(ref, dict):
                LOGGER.debug("Config override from %s", raw_key)
                ref[path[-1]] = value
    return data


def _format_validation_error(source: str, error: ValidationError) -> str:
    parts = [
        f"{'.'.join(str(item) for item in entry['loc'])}: {entry['msg']}"
        for entry in error.errors()
    ]
    return f"Invalid configuration in {source}: {'; '.join(parts)}"


def load_config(
    config_path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> ClientConfig:
    """Load configuration from YAML, applying environment overrides.

    Parameters
    ----------
    config_path:
        YAML file to read.  ``None`` starts from the defaults so that the
        environment alone can configure the clients.
    environ:
        Mapping used instead of :data:`os.environ`.

    Raises
    ------
    ConfigError
        If the file is not a mapping or does not validate.
    FileNotFoundError
        If ``config_path`` does not exist.
    """

    source = "<defaults>"
    loaded: Any = {}
    if config_path is not None:
        path = Path(config_path)
        source = str(path)
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Failed to parse YAML in {path}: {exc}") from exc
        if not isinstance(loaded, Mapping):
            raise ConfigError(f"Root of {path} must be a mapping")

    sections: dict[str, Any] = {}
    for key in ("uniprot", "pagination", "http_cache"):
        value = loaded.get(key)
        if value is None:
            continue
        if not isinstance(value, Mapping):
            raise ConfigError(f"Section '{key}' in {source} must be a mapping")
        sections[key] = dict(value)

    apply_env_overrides(sections, environ)
    try:
        return ClientConfig.model_validate(sections)
    except ValidationError as error:
        raise ConfigError(_format_validation_error(source, error)) from error


def build_transport(config: ClientConfig) -> HttpTransport:
    settings = config.uniprot
    return HttpTransport(
        timeout=settings.timeout_sec,
        max_retries=settings.retries,
        rps=settings.rps,
        backoff_multiplier=settings.backoff_sec,
        cache_config=config.http_cache.to_cache_config() if config.http_cache else None,
        user_agent=settings.user_agent,
    )


def build_search(config: ClientConfig, transport: HttpTransport | None = None) -> UniProtSearch:
    return UniProtSearch(
        transport or build_transport(config),
        base_url=config.uniprot.base_url,
        hop_delay=config.pagination.hop_delay_sec,
    )


def build_entry(config: ClientConfig, transport: HttpTransport | None = None) -> UniProtEntry:
    return UniProtEntry(transport or build_transport(config), base_url=config.uniprot.base_url)


def build_id_mapping(
    config: ClientConfig, transport: HttpTransport | None = None
) -> UniProtIdMapping:
    return UniProtIdMapping(
        transport or build_transport(config), base_url=config.uniprot.base_url
    )

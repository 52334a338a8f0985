"""Runtime settings."""

import os
from dataclasses import dataclass, fields, replace

from kyoboscout.errors import ConfigurationError
from kyoboscout.selectors import MAX_SEARCH_RESULTS

ENV_PREFIX = "KYOBOSCOUT_"


@dataclass(frozen=True)
class Settings:
    """Settings shared by the client, the caches and the service.

    Durations are in seconds.
    """

    timeout: float = 10.0
    retries: int = 3
    min_request_interval: float = 1.0
    max_results: int = 20
    enable_detail_fetch: bool = False
    detail_concurrency: int = 2
    toc_api_first: bool = False
    search_cache_size: int = 100
    search_cache_ttl: float = 30 * 60
    book_cache_size: int = 200
    book_cache_ttl: float = 60 * 60
    cache_sweep_interval: float = 5 * 60

    def validate(self) -> "Settings":
        """Raise ConfigurationError if any value is out of range."""
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout}", setting="timeout")
        if self.retries < 1:
            raise ConfigurationError(f"retries must be at least 1, got {self.retries}", setting="retries")
        if self.min_request_interval < 0:
            raise ConfigurationError(
                f"min_request_interval cannot be negative, got {self.min_request_interval}",
                setting="min_request_interval",
            )
        if not 1 <= self.max_results <= MAX_SEARCH_RESULTS:
            raise ConfigurationError(
                f"max_results must be between 1 and {MAX_SEARCH_RESULTS}, got {self.max_results}",
                setting="max_results",
            )
        if self.detail_concurrency < 1:
            raise ConfigurationError(
                f"detail_concurrency must be at least 1, got {self.detail_concurrency}",
                setting="detail_concurrency",
            )
        for name in ("search_cache_size", "book_cache_size"):
            if getattr(self, name) < 1:
                raise ConfigurationError(f"{name} must be at least 1", setting=name)
        for name in ("search_cache_ttl", "book_cache_ttl", "cache_sweep_interval"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive", setting=name)
        return self

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with the given non-None values replaced."""
        changes = {key: value for key, value in changes.items() if value is not None}
        return replace(self, **changes).validate()

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        """Build settings from ``KYOBOSCOUT_<FIELD>`` environment variables."""
        environ = os.environ if environ is None else environ
        values = {}
        for field in fields(cls):
            raw = environ.get(ENV_PREFIX + field.name.upper())
            if raw is None or raw.strip() == "":
                continue
            values[field.name] = _coerce(field.name, field.type, raw.strip())
        return cls(**values).validate()


def _coerce(name: str, type_name, raw: str):
    type_name = getattr(type_name, "__name__", type_name)
    try:
        if type_name == "bool":
            lowered = raw.lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(raw)
        if type_name == "int":
            return int(raw)
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid value for {ENV_PREFIX}{name.upper()}: {raw!r}", setting=name, cause=e
        ) from e

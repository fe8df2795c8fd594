"""TOML config loading and profiles."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

# Default config search path (project root or cwd)
_CONFIG_DIR = Path(__file__).resolve().parent.parent.parent.parent / "config"
_CWD_CONFIG = Path.cwd() / "config"


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base. Override values take precedence."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _find_config_dir(config_dir: Path | None = None) -> Path:
    if config_dir is not None:
        return config_dir
    if _CWD_CONFIG.exists():
        return _CWD_CONFIG
    return _CONFIG_DIR


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Load merged config from default.toml and optional profile overlay."""
    directory = _find_config_dir(config_dir)
    default_path = directory / "default.toml"
    if not default_path.exists():
        return {}
    base = _load_toml(default_path)
    if profile:
        profile_path = directory / f"{profile}.toml"
        if profile_path.exists():
            overlay = _load_toml(profile_path)
            base = _deep_merge(base, overlay)
    return base


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    """Return Settings instance from merged config."""
    raw = load_config(profile, config_dir)
    return Settings.from_dict(raw)


class Settings:
    """Application settings from TOML config."""

    def __init__(
        self,
        *,
        storage: dict[str, Any] | None = None,
        policy: dict[str, Any] | None = None,
        aggregator: dict[str, Any] | None = None,
        evidence: dict[str, Any] | None = None,
        ledger: dict[str, Any] | None = None,
        monitor: dict[str, Any] | None = None,
        logging: dict[str, Any] | None = None,
    ):
        self.storage = storage or {}
        self.policy = policy or {}
        self.aggregator = aggregator or {}
        self.evidence = evidence or {}
        self.ledger = ledger or {}
        self.monitor = monitor or {}
        self.logging = logging or {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        return cls(
            storage=raw.get("storage"),
            policy=raw.get("policy"),
            aggregator=raw.get("aggregator"),
            evidence=raw.get("evidence"),
            ledger=raw.get("ledger"),
            monitor=raw.get("monitor"),
            logging=raw.get("logging"),
        )

    # Convenience accessors with defaults
    @property
    def db_path(self) -> str:
        return self.storage.get("db_path", "data/predictlink.duckdb")

    # --- policy ---
    @property
    def publish_threshold(self) -> float:
        return float(self.policy.get("publish_threshold", 0.5))

    @property
    def dispute_threshold(self) -> float:
        return float(self.policy.get("dispute_threshold", 0.8))

    @property
    def liveness_sec(self) -> int:
        return int(self.policy.get("liveness_sec", 7200))

    @property
    def liveness_by_category(self) -> dict[str, int]:
        return {k: int(v) for k, v in (self.policy.get("liveness_by_category") or {}).items()}

    @property
    def bond_amount(self) -> int:
        return int(self.policy.get("bond_amount", 1_000_000))

    @property
    def bond_multipliers(self) -> dict[str, float]:
        return {k: float(v) for k, v in (self.policy.get("bond_multipliers") or {}).items()}

    # --- aggregator ---
    @property
    def aggregator_timeout_sec(self) -> float:
        return float(self.aggregator.get("timeout_sec", 20.0))

    @property
    def evaluation_model(self) -> str:
        return self.aggregator.get("model", "gpt-4o-mini")

    @property
    def evaluation_temperature(self) -> float:
        return float(self.aggregator.get("temperature", 0.1))

    @property
    def evaluation_base_url(self) -> str | None:
        return self.aggregator.get("base_url") or None

    @property
    def openai_api_key(self) -> str:
        return os.environ.get("OPENAI_API_KEY", "")

    @property
    def newsapi_base(self) -> str:
        return self.aggregator.get("newsapi_base", "https://newsapi.org/v2")

    @property
    def newsapi_key(self) -> str:
        return os.environ.get("NEWSAPI_KEY", "")

    @property
    def static_sources(self) -> list[str]:
        return list(self.aggregator.get("static_sources") or [])

    # --- evidence ---
    @property
    def evidence_backend(self) -> str:
        return self.evidence.get("backend", "duckdb")

    @property
    def evidence_gateway_url(self) -> str:
        return self.evidence.get("gateway_url", "https://arweave.net")

    @property
    def evidence_upload_url(self) -> str:
        return self.evidence.get("upload_url", "https://arweave.net/tx")

    @property
    def evidence_app_name(self) -> str:
        return self.evidence.get("app_name", "PredictLink-Oracle")

    @property
    def evidence_read_retry_sec(self) -> float:
        return float(self.evidence.get("read_retry_sec", 5.0))

    @property
    def evidence_timeout_sec(self) -> float:
        return float(self.evidence.get("timeout_sec", 20.0))

    # --- ledger ---
    @property
    def ledger_backend(self) -> str:
        return self.ledger.get("backend", "local")

    @property
    def ledger_rpc_url(self) -> str:
        return self.ledger.get("rpc_url", "http://127.0.0.1:8899")

    @property
    def program_id(self) -> str:
        return self.ledger.get("program_id", "Fg6PaFpoGXkYsidMpWTK6W2BeZ7FEfcYkg476zPFsLnS")

    @property
    def authority(self) -> str:
        return self.ledger.get("authority", "oracle-authority")

    @property
    def proposer(self) -> str:
        return self.ledger.get("proposer", "ai-proposer")

    # --- monitor ---
    @property
    def monitor_interval_sec(self) -> float:
        return float(self.monitor.get("interval_sec", 300))

    @property
    def monitor_max_concurrency(self) -> int:
        return int(self.monitor.get("max_concurrency", 4))

    @property
    def disputer(self) -> str:
        return self.monitor.get("disputer", "dispute-bot")

    # --- logging ---
    @property
    def logging_level(self) -> str:
        return self.logging.get("level", "INFO").upper()

    @property
    def logging_format(self) -> str:
        return self.logging.get("format", "console")

    @property
    def logging_level_num(self) -> int:
        return getattr(logging, self.logging_level, logging.INFO)


def configure_logging(settings: Settings) -> None:
    """Configure structlog with settings. Call once at application entry."""
    import structlog

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if settings.logging_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.logging_level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

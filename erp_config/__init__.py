"""
erp_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the only way to obtain configuration at runtime through
    ``load_engine_config()`` / ``get_engine_config()``.  Services receive
    the resulting ``EngineConfig`` by constructor injection and never read
    files or environment variables themselves.

Architecture position:
    Configuration.  Sits above ``erp_kernel`` and below ``erp_modules``.
    The kernel never imports from ``erp_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every load emits an ``engine_config_loaded`` log entry carrying the
    source path and content checksum.
"""

from pathlib import Path

from erp_config.loader import load_yaml_file, parse_engine_config
from erp_config.schema import EngineConfig, InvoicingConfig, MoneyConfig, NumberingConfig
from erp_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

_active: EngineConfig | None = None


def load_engine_config(path: Path | None = None) -> EngineConfig:
    """Load and validate an engine configuration file (defaults if path is None)."""
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_engine_config(load_yaml_file(source))
    logger.info(
        "engine_config_loaded",
        extra={
            "source": str(source),
            "checksum": config.checksum,
            "default_vat_rate_percent": config.invoicing.default_vat_rate_percent,
            "payment_terms_days": config.invoicing.payment_terms_days,
        },
    )
    return config


def get_engine_config() -> EngineConfig:
    """Process-wide configuration, loaded from the packaged defaults on first use."""
    global _active
    if _active is None:
        _active = load_engine_config()
    return _active


def set_engine_config(config: EngineConfig | None) -> None:
    """Replace (or with None, reset) the process-wide configuration."""
    global _active
    _active = config


__all__ = [
    "EngineConfig",
    "InvoicingConfig",
    "MoneyConfig",
    "NumberingConfig",
    "DEFAULT_CONFIG_PATH",
    "get_engine_config",
    "load_engine_config",
    "set_engine_config",
]

"""
SLP Data - Configuration.

============================================================
STARTUP CONFIGURATION
============================================================

Backend URLs and credentials are read ONCE at process start and
passed to every client and service instance. Nothing below the
service layer reads the environment.

Configuration can be loaded from:
- Default values
- Environment variables (.env supported)
- YAML config file

============================================================
"""

import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from dotenv import load_dotenv

from slp_data.exceptions import ConfigurationError
from slp_data.models import AddressIndexerKind, BackendKind, Network


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SLPDB_USER = "BITBOX"
DEFAULT_SLPDB_PASS = "BITBOX"
DEFAULT_BLOCKBOOK_URL = "https://127.0.0.1:9131/"
DEFAULT_NINSIGHT_URL = "https://bch-explorer.api.bitcoin.com/v1/"


def _with_trailing_slash(url: str) -> str:
    if url and not url.endswith("/"):
        return url + "/"
    return url


def _parse(key: str, value: Any, parser: Callable[[Any], T]) -> T:
    """Parse one setting; bad values surface as ConfigurationError."""
    try:
        return parser(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Invalid {key}: {value!r}",
            config_key=key,
            original_error=e,
        )


def _indexer_kind(value: Any) -> AddressIndexerKind:
    return AddressIndexerKind(str(value).strip().upper())


def _network(value: Any) -> Network:
    return Network(str(value).strip().lower())


@dataclass(frozen=True)
class SlpDataConfig:
    """
    Backend configuration for the SLP data layer.

    When `slp_indexer_url` is set the REST indexer backend is used,
    otherwise SLPDB.
    """
    slpdb_url: str = ""
    slpdb_user: str = DEFAULT_SLPDB_USER
    slpdb_pass: str = DEFAULT_SLPDB_PASS
    slp_indexer_url: str = ""

    # BCH address balance indexer
    indexer: AddressIndexerKind = AddressIndexerKind.NINSIGHT
    blockbook_url: str = DEFAULT_BLOCKBOOK_URL
    ninsight_url: str = DEFAULT_NINSIGHT_URL

    network: Network = Network.MAINNET

    # Per-request timeouts (seconds)
    slpdb_timeout: float = 30.0
    indexer_timeout: float = 15.0

    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def backend(self) -> BackendKind:
        """Backend selected by this configuration."""
        if self.slp_indexer_url:
            return BackendKind.SLP_INDEXER
        return BackendKind.SLPDB

    def validate(self) -> None:
        """Validate settings required by the selected backend."""
        if self.backend == BackendKind.SLPDB and not self.slpdb_url:
            raise ConfigurationError(
                "SLPDB_URL must be set when SLP_INDEXER_URL is not configured",
                config_key="SLPDB_URL",
            )
        if self.slpdb_timeout <= 0 or self.indexer_timeout <= 0:
            raise ConfigurationError("Timeouts must be positive", config_key="timeout")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SlpDataConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - SLPDB_URL, SLPDB_PASS
        - SLP_INDEXER_URL
        - INDEXER (NINSIGHT | BLOCKBOOK)
        - BLOCKBOOK_URL, NINSIGHT_URL
        - NETWORK (mainnet | testnet)
        - SLPDB_TIMEOUT, INDEXER_TIMEOUT
        - LOG_LEVEL, LOG_FORMAT
        """
        load_dotenv(env_file)

        return cls(
            slpdb_url=_with_trailing_slash(os.getenv("SLPDB_URL", "").strip()),
            slpdb_pass=os.getenv("SLPDB_PASS") or DEFAULT_SLPDB_PASS,
            slp_indexer_url=_with_trailing_slash(os.getenv("SLP_INDEXER_URL", "").strip()),
            indexer=_parse("INDEXER", os.getenv("INDEXER", "NINSIGHT"), _indexer_kind),
            blockbook_url=_with_trailing_slash(os.getenv("BLOCKBOOK_URL") or DEFAULT_BLOCKBOOK_URL),
            ninsight_url=_with_trailing_slash(os.getenv("NINSIGHT_URL") or DEFAULT_NINSIGHT_URL),
            network=_parse("NETWORK", os.getenv("NETWORK", "mainnet"), _network),
            slpdb_timeout=_parse("SLPDB_TIMEOUT", os.getenv("SLPDB_TIMEOUT", "30"), float),
            indexer_timeout=_parse("INDEXER_TIMEOUT", os.getenv("INDEXER_TIMEOUT", "15"), float),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "SlpDataConfig":
        """Load configuration from YAML file."""
        import yaml

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Failed to load YAML config from {path}",
                original_error=e,
            )

        return cls(
            slpdb_url=_with_trailing_slash(data.get("slpdb_url", "")),
            slpdb_pass=data.get("slpdb_pass") or DEFAULT_SLPDB_PASS,
            slp_indexer_url=_with_trailing_slash(data.get("slp_indexer_url", "")),
            indexer=_parse("indexer", data.get("indexer", "NINSIGHT"), _indexer_kind),
            blockbook_url=_with_trailing_slash(data.get("blockbook_url") or DEFAULT_BLOCKBOOK_URL),
            ninsight_url=_with_trailing_slash(data.get("ninsight_url") or DEFAULT_NINSIGHT_URL),
            network=_parse("network", data.get("network", "mainnet"), _network),
            slpdb_timeout=_parse("slpdb_timeout", data.get("slpdb_timeout", 30.0), float),
            indexer_timeout=_parse("indexer_timeout", data.get("indexer_timeout", 15.0), float),
            log_level=str(data.get("log_level", "INFO")).upper(),
            log_format=str(data.get("log_format", "text")).lower(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (secret masked)."""
        return {
            "backend": self.backend.value,
            "slpdb_url": self.slpdb_url,
            "slpdb_user": self.slpdb_user,
            "slpdb_pass": "***" if self.slpdb_pass else "",
            "slp_indexer_url": self.slp_indexer_url,
            "indexer": self.indexer.value,
            "blockbook_url": self.blockbook_url,
            "ninsight_url": self.ninsight_url,
            "network": self.network.value,
            "slpdb_timeout": self.slpdb_timeout,
            "indexer_timeout": self.indexer_timeout,
        }


def setup_logging(log_level: str = "INFO", log_format: str = "text") -> logging.Logger:
    """Configure root logging to stdout in text or JSON form."""
    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("slp_data")


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[SlpDataConfig] = None


def get_config() -> SlpDataConfig:
    """Get the process configuration, loading it from the environment once."""
    global _default_config
    if _default_config is None:
        _default_config = SlpDataConfig.from_env()
    return _default_config


def set_config(config: Optional[SlpDataConfig]) -> None:
    """Set (or reset) the process configuration."""
    global _default_config
    _default_config = config

"""Central configuration for the CLOB gateway.

Upstream hosts, endpoint conventions, thresholds and storage paths as frozen
dataclasses with environment variable overrides.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

CANCEL_MODES = ("per_id", "bulk")


@dataclass(frozen=True)
class CLOBConfig:
    base_url: str = "https://clob.polymarket.com"
    timeout: int = 10
    orders_paths: tuple[str, ...] = ("/data/orders", "/orders")
    trades_path: str = "/data/trades"
    order_path: str = "/order"
    # per_id: DELETE {cancel_order_path}/{id}, no body, path-only signature
    # bulk:   DELETE {cancel_orders_path} with {"orderIds": [...]}, path+body signature
    cancel_mode: str = "per_id"
    cancel_order_path: str = "/order"
    cancel_orders_path: str = "/orders"
    cancel_workers: int = 8
    create_key_path: str = "/auth/api-key"
    derive_key_path: str = "/auth/derive-api-key"


@dataclass(frozen=True)
class DataAPIConfig:
    base_url: str = "https://data-api.polymarket.com"
    timeout: int = 15
    size_threshold: float = 0.01


@dataclass(frozen=True)
class BuilderConfig:
    url: str = "https://builder-signer.domeapi.io/builder-signer/sign"
    timeout: int = 10
    attach_to_direct: bool = False


@dataclass(frozen=True)
class ActivityFeedConfig:
    base_url: str = "https://api.domeapi.io/v1"
    orders_path: str = "/polymarket/orders"
    api_key: str = ""
    timeout: int = 20


@dataclass(frozen=True)
class GammaConfig:
    base_url: str = "https://gamma-api.polymarket.com"
    site_url: str = "https://polymarket.com"
    timeout: int = 15
    cache_ttl: float = 3600.0
    cache_size: int = 1024


@dataclass(frozen=True)
class WhaleConfig:
    threshold: float = 5000.0
    page_limit: int = 500
    max_pages: int = 10
    assume_chronological: bool = True
    display_limit: int = 200
    platform: str = "polymarket"


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: tuple[str, ...] = ("*",)


@dataclass
class AppConfig:
    clob: CLOBConfig = field(default_factory=CLOBConfig)
    data_api: DataAPIConfig = field(default_factory=DataAPIConfig)
    builder: BuilderConfig = field(default_factory=BuilderConfig)
    feed: ActivityFeedConfig = field(default_factory=ActivityFeedConfig)
    gamma: GammaConfig = field(default_factory=GammaConfig)
    whales: WhaleConfig = field(default_factory=WhaleConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    db_path: Path = Path("data/gateway.db")
    log_level: str = "INFO"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_file: Path | None = None) -> AppConfig:
    """Load configuration from environment variables + defaults.

    Args:
        env_file: Path to .env file. If None, searches project root.

    Raises:
        ValueError: If CANCEL_MODE is not one of the supported conventions.
    """
    if env_file and env_file.exists():
        load_dotenv(env_file)
    else:
        for candidate in [Path(".env"), Path(__file__).parent.parent / ".env"]:
            if candidate.exists():
                load_dotenv(candidate)
                break

    cancel_mode = os.environ.get("CANCEL_MODE", "per_id").strip().lower()
    if cancel_mode not in CANCEL_MODES:
        raise ValueError(f"CANCEL_MODE must be one of {CANCEL_MODES}, got {cancel_mode!r}")

    clob = CLOBConfig(
        base_url=os.environ.get("CLOB_HOST", CLOBConfig.base_url),
        cancel_mode=cancel_mode,
    )
    builder = BuilderConfig(
        url=os.environ.get("BUILDER_SIGNER_URL", BuilderConfig.url),
        attach_to_direct=_env_bool("BUILDER_ATTACH_DIRECT", False),
    )
    feed = ActivityFeedConfig(
        base_url=os.environ.get("DOME_API_URL", ActivityFeedConfig.base_url),
        api_key=os.environ.get("DOME_API_KEY", ""),
    )
    whales = WhaleConfig(
        threshold=float(os.environ.get("WHALE_THRESHOLD", WhaleConfig.threshold)),
        max_pages=int(os.environ.get("WHALE_MAX_PAGES", WhaleConfig.max_pages)),
        assume_chronological=_env_bool("WHALE_ASSUME_CHRONOLOGICAL", True),
    )
    server = ServerConfig(
        host=os.environ.get("API_HOST", ServerConfig.host),
        port=int(os.environ.get("API_PORT", ServerConfig.port)),
    )

    return AppConfig(
        clob=clob,
        builder=builder,
        feed=feed,
        whales=whales,
        server=server,
        db_path=Path(os.environ.get("DB_PATH", "data/gateway.db")),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
    )

"""TOML configuration for the relay."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import httpx

from pushrelay.errors import ConfigError
from pushrelay.logger import DEFAULT_LEVEL, DEFAULT_PREFIX, parse_log_level

DEFAULT_REDIS_PORT = 6379
DEFAULT_REDIS_DIAL_TIMEOUT = 5.0


@dataclass(frozen=True)
class LoggerConfig:
    """Configuration for the process logger."""

    log_prefix: str = DEFAULT_PREFIX
    """Prefix written at the start of every log line."""

    log_level: str = DEFAULT_LEVEL
    """Minimum severity: debug, info, warn, error or fatal."""

    @property
    def level(self) -> int:
        return parse_log_level(self.log_level)


@dataclass(frozen=True)
class DatabaseConfig:
    """Configuration for the Redis connection."""

    redis_addr: str
    """Redis address as ``host:port``."""

    redis_password: str = ""
    """Redis password. Empty means no AUTH."""

    redis_db: int = 0
    """Redis database index."""

    dial_timeout: float = DEFAULT_REDIS_DIAL_TIMEOUT
    """Seconds allowed to connect to Redis."""

    @property
    def host(self) -> str:
        host, _, _ = self.redis_addr.rpartition(":")
        return host or self.redis_addr

    @property
    def port(self) -> int:
        host, _, port = self.redis_addr.rpartition(":")
        return int(port) if host else DEFAULT_REDIS_PORT


@dataclass(frozen=True)
class HTTPClientConfig:
    """Configuration for the shared outbound HTTP client."""

    max_idle_conns: int = 100
    """Maximum keep-alive connections kept across all hosts."""

    max_idle_conns_per_host: int = 2
    """Maximum keep-alive connections kept per downstream host."""

    dial_timeout: float = 30.0
    """Seconds allowed to establish the TCP connection."""

    tls_handshake_timeout: float = 10.0
    """Seconds allowed for the TLS handshake."""

    idle_conn_timeout: float = 90.0
    """Seconds an idle keep-alive connection is kept open."""

    request_timeout: float = 60.0
    """Seconds allowed for each read, write and pool wait."""


@dataclass(frozen=True)
class ChannelConfig:
    """Binding of one topic to its downstream endpoint."""

    name: str
    """Topic (Redis channel) to subscribe to."""

    concurrency: int
    """Maximum deliveries in flight for this topic."""

    api_endpoint: str
    """URL every message of the topic is POSTed to."""


@dataclass(frozen=True)
class RelayConfig:
    """Complete relay configuration."""

    database: DatabaseConfig
    channels: tuple[ChannelConfig, ...]
    logger: LoggerConfig = field(default_factory=LoggerConfig)
    http_client: HTTPClientConfig = field(default_factory=HTTPClientConfig)


def load_config(path: str | Path) -> RelayConfig:
    """Read and validate a TOML configuration file.

    Raises ConfigError if the file cannot be read or parsed, or if any
    required key is missing or invalid.
    """
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        msg = f"loading config file {str(path)!r} failed: {e}"
        raise ConfigError(msg) from e
    except tomllib.TOMLDecodeError as e:
        msg = f"config file {str(path)!r} is not valid TOML: {e}"
        raise ConfigError(msg) from e

    return parse_config(data)


def parse_config(data: dict[str, Any]) -> RelayConfig:
    """Build a RelayConfig from already-decoded TOML data."""
    channels = _parse_channels(data.get("channels"))

    logger_table = _table(data, "logger")
    logger = LoggerConfig(
        log_prefix=_get(logger_table, "logger.log_prefix", str, DEFAULT_PREFIX),
        log_level=_get(logger_table, "logger.log_level", str, DEFAULT_LEVEL),
    )
    try:
        parse_log_level(logger.log_level)
    except ValueError as e:
        raise ConfigError(f"logger.log_level: {e}") from e

    db_table = _table(data, "database")
    database = DatabaseConfig(
        redis_addr=_require(db_table, "database.redis_addr", str),
        redis_password=_get(db_table, "database.redis_password", str, ""),
        redis_db=_get(db_table, "database.redis_db", int, 0),
        dial_timeout=_seconds(
            db_table, "database.dial_timeout", DEFAULT_REDIS_DIAL_TIMEOUT
        ),
    )
    _check_redis_addr(database.redis_addr)

    http_table = _table(data, "http_client")
    defaults = HTTPClientConfig()
    http_client = HTTPClientConfig(
        max_idle_conns=_positive(
            http_table, "http_client.max_idle_conns", defaults.max_idle_conns
        ),
        max_idle_conns_per_host=_positive(
            http_table,
            "http_client.max_idle_conns_per_host",
            defaults.max_idle_conns_per_host,
        ),
        dial_timeout=_seconds(
            http_table, "http_client.dial_timeout", defaults.dial_timeout
        ),
        tls_handshake_timeout=_seconds(
            http_table,
            "http_client.tls_handshake_timeout",
            defaults.tls_handshake_timeout,
        ),
        idle_conn_timeout=_seconds(
            http_table, "http_client.idle_conn_timeout", defaults.idle_conn_timeout
        ),
        request_timeout=_seconds(
            http_table, "http_client.request_timeout", defaults.request_timeout
        ),
    )

    return RelayConfig(
        database=database,
        channels=channels,
        logger=logger,
        http_client=http_client,
    )


def _parse_channels(raw: Any) -> tuple[ChannelConfig, ...]:
    if raw is None:
        raise ConfigError("config [[channels]] missing")
    if not isinstance(raw, list) or not raw:
        raise ConfigError("config [[channels]] must be a non-empty array of tables")

    channels: list[ChannelConfig] = []
    for index, entry in enumerate(raw):
        where = f"channels[{index}]"
        if not isinstance(entry, dict):
            raise ConfigError(f"{where} must be a table")

        name = _require(entry, f"{where}.name", str)
        if not name:
            raise ConfigError(f"{where}.name must not be empty")

        concurrency = _require(entry, f"{where}.concurrency", int)
        if concurrency <= 0:
            msg = f"{where}.concurrency must be greater than 0, got {concurrency}"
            raise ConfigError(msg)

        endpoint = _require(entry, f"{where}.api_endpoint", str)
        _check_endpoint(f"{where}.api_endpoint", endpoint)

        channels.append(
            ChannelConfig(name=name, concurrency=concurrency, api_endpoint=endpoint)
        )
    return tuple(channels)


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    table = data.get(key, {})
    if not isinstance(table, dict):
        raise ConfigError(f"[{key}] must be a table")
    return table


def _check_type(key: str, value: Any, expected: type) -> Any:
    # bool is an int subclass; TOML booleans are never valid numbers here.
    if isinstance(value, bool) or not isinstance(value, expected):
        msg = f"{key} must be of type {expected.__name__}, got {value!r}"
        raise ConfigError(msg)
    return value


def _require(table: dict[str, Any], key: str, expected: type) -> Any:
    name = key.rsplit(".", 1)[-1]
    if name not in table:
        raise ConfigError(f"config key {key} missing")
    return _check_type(key, table[name], expected)


def _get(table: dict[str, Any], key: str, expected: type, default: Any) -> Any:
    name = key.rsplit(".", 1)[-1]
    if name not in table:
        return default
    return _check_type(key, table[name], expected)


def _positive(table: dict[str, Any], key: str, default: int) -> int:
    value = _get(table, key, int, default)
    if value <= 0:
        raise ConfigError(f"{key} must be greater than 0, got {value}")
    return value


def _seconds(table: dict[str, Any], key: str, default: float) -> float:
    name = key.rsplit(".", 1)[-1]
    value = table.get(name, default)
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise ConfigError(f"{key} must be a positive number of seconds, got {value!r}")
    return float(value)


def _check_redis_addr(addr: str) -> None:
    host, sep, port = addr.rpartition(":")
    if not addr or (sep and (not host or not port.isdigit())):
        raise ConfigError(f"database.redis_addr must be host:port, got {addr!r}")


def _check_endpoint(key: str, endpoint: str) -> None:
    msg = f"{key} must be an http(s) URL, got {endpoint!r}"
    try:
        parts = urlsplit(endpoint)
        # .port raises for ports outside 0-65535.
        host, port = parts.hostname, parts.port
        httpx.URL(endpoint)
    except (ValueError, httpx.InvalidURL) as e:
        raise ConfigError(f"{msg}: {e}") from e
    if parts.scheme not in ("http", "https") or not host or port == 0:
        raise ConfigError(msg)

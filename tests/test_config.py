"""Tests for configuration loading."""

import logging
from pathlib import Path

import pytest

from pushrelay.config import ChannelConfig, HTTPClientConfig, load_config, parse_config
from pushrelay.errors import ConfigError

FULL_CONFIG = """
[logger]
log_prefix = "[relay] "
log_level = "warn"

[database]
redis_addr = "10.0.0.5:6380"
redis_password = "s3cret"

[http_client]
max_idle_conns = 50
max_idle_conns_per_host = 10

[[channels]]
name = "push:ios"
concurrency = 20
api_endpoint = "http://api.test/push/ios"

[[channels]]
name = "push:android"
concurrency = 5
api_endpoint = "https://api.test/push/android"
"""

MINIMAL_CONFIG = """
[database]
redis_addr = "localhost:6379"

[[channels]]
name = "events"
concurrency = 1
api_endpoint = "http://localhost:8080/events"
"""


def write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.toml"
    path.write_text(text)
    return path


def minimal(**overrides: object) -> dict:
    data: dict = {
        "database": {"redis_addr": "localhost:6379"},
        "channels": [
            {
                "name": "events",
                "concurrency": 1,
                "api_endpoint": "http://localhost:8080/events",
            }
        ],
    }
    data.update(overrides)
    return data


class TestLoadConfig:
    def test_full_config(self, tmp_path: Path) -> None:
        config = load_config(write(tmp_path, FULL_CONFIG))

        assert config.logger.log_prefix == "[relay] "
        assert config.logger.log_level == "warn"
        assert config.logger.level == logging.WARNING
        assert config.database.redis_addr == "10.0.0.5:6380"
        assert config.database.host == "10.0.0.5"
        assert config.database.port == 6380
        assert config.database.redis_password == "s3cret"
        assert config.http_client.max_idle_conns == 50
        assert config.http_client.max_idle_conns_per_host == 10
        assert config.channels == (
            ChannelConfig("push:ios", 20, "http://api.test/push/ios"),
            ChannelConfig("push:android", 5, "https://api.test/push/android"),
        )

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(write(tmp_path, MINIMAL_CONFIG))

        assert config.logger.log_prefix == "[push] "
        assert config.logger.level == logging.INFO
        assert config.database.redis_password == ""
        assert config.database.redis_db == 0
        assert config.database.dial_timeout == 5.0
        assert config.http_client == HTTPClientConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="loading config file"):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not valid TOML"):
            load_config(write(tmp_path, "[database\nredis_addr = "))

    def test_missing_channels(self, tmp_path: Path) -> None:
        text = MINIMAL_CONFIG.split("[[channels]]")[0]
        with pytest.raises(ConfigError, match=r"\[\[channels\]\] missing"):
            load_config(write(tmp_path, text))


class TestValidation:
    def test_empty_channels(self) -> None:
        with pytest.raises(ConfigError, match="non-empty"):
            parse_config(minimal(channels=[]))

    def test_missing_redis_addr(self) -> None:
        with pytest.raises(ConfigError, match="database.redis_addr missing"):
            parse_config(minimal(database={}))

    @pytest.mark.parametrize("addr", [":6379", "host:port", "host:"])
    def test_malformed_redis_addr(self, addr: str) -> None:
        with pytest.raises(ConfigError, match="host:port"):
            parse_config(minimal(database={"redis_addr": addr}))

    def test_redis_addr_without_port(self) -> None:
        config = parse_config(minimal(database={"redis_addr": "redis"}))
        assert config.database.host == "redis"
        assert config.database.port == 6379

    @pytest.mark.parametrize("concurrency", [0, -3])
    def test_concurrency_must_be_positive(self, concurrency: int) -> None:
        channel = {"name": "t", "concurrency": concurrency, "api_endpoint": "http://x"}
        with pytest.raises(ConfigError, match="greater than 0"):
            parse_config(minimal(channels=[channel]))

    @pytest.mark.parametrize("concurrency", ["10", 2.5, True])
    def test_concurrency_must_be_int(self, concurrency: object) -> None:
        channel = {"name": "t", "concurrency": concurrency, "api_endpoint": "http://x"}
        with pytest.raises(ConfigError, match="type int"):
            parse_config(minimal(channels=[channel]))

    @pytest.mark.parametrize("key", ["name", "concurrency", "api_endpoint"])
    def test_channel_keys_required(self, key: str) -> None:
        channel = {"name": "t", "concurrency": 1, "api_endpoint": "http://x"}
        del channel[key]
        with pytest.raises(ConfigError, match=rf"channels\[0\]\.{key} missing"):
            parse_config(minimal(channels=[channel]))

    @pytest.mark.parametrize(
        "endpoint",
        [
            "ftp://x/y",
            "localhost:8080",
            "http://",
            "http://[::1/push",
            "http://127.0.0.1:99999/push",
        ],
    )
    def test_endpoint_must_be_http_url(self, endpoint: str) -> None:
        channel = {"name": "t", "concurrency": 1, "api_endpoint": endpoint}
        with pytest.raises(ConfigError, match="http\\(s\\) URL"):
            parse_config(minimal(channels=[channel]))

    def test_unparsable_log_level(self) -> None:
        with pytest.raises(ConfigError, match="invalid log level"):
            parse_config(minimal(logger={"log_level": "verbose"}))

    def test_pool_sizes_must_be_positive(self) -> None:
        with pytest.raises(ConfigError, match="max_idle_conns must be greater"):
            parse_config(minimal(http_client={"max_idle_conns": 0}))

    def test_redis_dial_timeout(self) -> None:
        database = {"redis_addr": "redis:6379", "dial_timeout": 2}
        config = parse_config(minimal(database=database))
        assert config.database.dial_timeout == 2.0

    def test_timeouts_accept_integers(self) -> None:
        config = parse_config(minimal(http_client={"dial_timeout": 5}))
        assert config.http_client.dial_timeout == 5.0

    def test_duplicate_topics_allowed(self) -> None:
        channel = {"name": "t", "concurrency": 1, "api_endpoint": "http://x"}
        other = {**channel, "api_endpoint": "http://y"}
        config = parse_config(minimal(channels=[channel, other]))
        assert [c.api_endpoint for c in config.channels] == ["http://x", "http://y"]

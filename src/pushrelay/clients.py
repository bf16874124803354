"""Construction of the shared Redis and HTTP clients."""

from collections.abc import Iterable
from urllib.parse import urlsplit

import httpx
from redis.asyncio import Redis

from pushrelay.config import DatabaseConfig, HTTPClientConfig


def build_redis_client(config: DatabaseConfig) -> Redis:
    """Create the bus connection.

    Payloads are kept as bytes; nothing is decoded by the client. Connecting
    gives up after ``config.dial_timeout`` seconds.
    """
    return Redis(
        host=config.host,
        port=config.port,
        password=config.redis_password or None,
        db=config.redis_db,
        socket_connect_timeout=config.dial_timeout,
        decode_responses=False,
    )


def keepalive_limit(config: HTTPClientConfig, endpoints: Iterable[str] = ()) -> int:
    """Size of the keep-alive pool for the given downstream endpoints.

    httpx pools connections across hosts, so the per-host cap is applied by
    bounding the pool to ``per_host * hosts`` when that is the smaller value.
    """
    hosts = {urlsplit(endpoint).netloc for endpoint in endpoints}
    limit = config.max_idle_conns
    if hosts:
        limit = min(limit, config.max_idle_conns_per_host * len(hosts))
    return limit


def build_http_client(
    config: HTTPClientConfig,
    endpoints: Iterable[str] = (),
) -> httpx.AsyncClient:
    """Create the outbound client shared by every delivery.

    Proxies are taken from the environment. The connect timeout covers both
    the TCP dial and the TLS handshake.
    """
    limits = httpx.Limits(
        max_connections=None,
        max_keepalive_connections=keepalive_limit(config, endpoints),
        keepalive_expiry=config.idle_conn_timeout,
    )
    timeout = httpx.Timeout(
        config.request_timeout,
        connect=config.dial_timeout + config.tls_handshake_timeout,
    )
    return httpx.AsyncClient(limits=limits, timeout=timeout, trust_env=True)

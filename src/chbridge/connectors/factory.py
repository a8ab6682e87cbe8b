from typing import Any, Mapping, Optional, Union
from pydantic import ValidationError
from ..config import AppConfig, ConnectionProfile
from ..domain.models import ConnectionSpec
from ..exceptions import ConfigurationError
from .clickhouse import ClickHouseConnector

# Ports ClickHouse serves over TLS
SECURE_PORTS = frozenset({8443, 9440})

def _split_scheme(host: str, port: int):
    """
    Returns (interface, bare_host). A scheme already present in the host
    wins over the one derived from the port.
    """
    for scheme in ("https", "http"):
        prefix = f"{scheme}://"
        if host.lower().startswith(prefix):
            return scheme, host[len(prefix):].rstrip("/")
    return ("https" if port in SECURE_PORTS else "http"), host

def get_connector(
    spec: Union[ConnectionSpec, ConnectionProfile, Mapping[str, Any]],
    alias: str = "unknown",
    config: Optional[AppConfig] = None,
    **handle_options: Any,
) -> ClickHouseConnector:
    """
    Factory function to build a ClickHouse handle.
    Accepts a ConnectionSpec, a configured ConnectionProfile, or raw
    parameters (e.g. straight from a request body).
    """
    if isinstance(spec, ConnectionProfile):
        alias = spec.alias
        spec = {
            "host": spec.host,
            "port": spec.port,
            "username": spec.username,
            "password": spec.password,
        }

    if not isinstance(spec, ConnectionSpec):
        try:
            spec = ConnectionSpec(**dict(spec))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid connection parameters: {e}")

    if not spec.host:
        raise ConfigurationError("Host is required")
    if not spec.password:
        raise ConfigurationError("Password is required")

    interface, host = _split_scheme(spec.host, spec.port)
    if not host:
        raise ConfigurationError("Host is required")

    config = config or AppConfig()
    options = {
        "connect_timeout": config.connect_timeout,
        "query_timeout": config.query_timeout,
        "insert_timeout": config.insert_timeout,
        "verify": config.verify_tls,
        "compression": config.compression,
        "async_insert": config.async_insert,
    }
    options.update(handle_options)

    return ClickHouseConnector(
        host=host,
        port=spec.port,
        username=spec.username,
        password=spec.password,
        interface=interface,
        db_alias=alias,
        **options,
    )

"""Console configuration for chainview."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from chainview._constants import DEFAULT_TILE_URL_DARK, DEFAULT_TILE_URL_LIGHT
from chainview.exceptions import ConfigError

_BROKER_PROTOCOLS = frozenset({"tcp", "ssl", "ws", "wss"})


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class ConsoleConfig:
    """Console configuration.

    Parameters
    ----------
    broker_host : str
        Broker host name or address.
    broker_port : int
        Broker port. Defaults to the websocket listener used by the
        chain services.
    broker_protocol : str
        One of ``tcp``, ``ssl``, ``ws`` or ``wss``. The ``ws``/``wss``
        variants use paho's websocket transport; ``ssl``/``wss`` enable TLS.
    broker_path : str
        Websocket path (ignored for ``tcp``/``ssl``).
    client_id : str
        MQTT client identifier. Empty lets the broker assign one.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    reload_delay : float
        Seconds between a chain-selection conflict and the full resync.
    preferences_path : str or None
        JSON file backing layer opacity/visibility preferences. ``None``
        keeps preferences in memory only.
    day_mode : bool
        Selects the light base map tiles when ``True``.
    tile_url_light : str
        Tile URL template used in day mode.
    tile_url_dark : str
        Tile URL template used in night mode.
    """

    broker_host: str = "localhost"
    broker_port: int = 9001
    broker_protocol: str = "ws"
    broker_path: str = "/mqtt"
    client_id: str = ""
    mqtt_keepalive: int = 60
    reload_delay: float = 1.5
    preferences_path: str | None = None
    day_mode: bool = False
    tile_url_light: str = DEFAULT_TILE_URL_LIGHT
    tile_url_dark: str = DEFAULT_TILE_URL_DARK

    def __post_init__(self) -> None:
        if self.broker_protocol not in _BROKER_PROTOCOLS:
            raise ConfigError(
                f"broker_protocol must be one of {sorted(_BROKER_PROTOCOLS)}, got {self.broker_protocol!r}"
            )
        if not 0 < self.broker_port < 65536:
            raise ConfigError(f"broker_port out of range: {self.broker_port}")
        if self.reload_delay < 0:
            raise ConfigError("reload_delay must be non-negative")

    @property
    def uses_tls(self) -> bool:
        return self.broker_protocol in {"ssl", "wss"}

    @property
    def uses_websockets(self) -> bool:
        return self.broker_protocol in {"ws", "wss"}

    @classmethod
    def from_env(cls, **overrides: Any) -> ConsoleConfig:
        """Create configuration from environment variables.

        Reads optional ``CHAINVIEW_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        ConsoleConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "CHAINVIEW_BROKER_HOST": "broker_host",
            "CHAINVIEW_BROKER_PROTOCOL": "broker_protocol",
            "CHAINVIEW_BROKER_PATH": "broker_path",
            "CHAINVIEW_CLIENT_ID": "client_id",
            "CHAINVIEW_PREFERENCES_PATH": "preferences_path",
            "CHAINVIEW_TILE_URL_LIGHT": "tile_url_light",
            "CHAINVIEW_TILE_URL_DARK": "tile_url_dark",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        try:
            port_env = env.get("CHAINVIEW_BROKER_PORT")
            if port_env is not None and "broker_port" not in overrides:
                config_kwargs["broker_port"] = int(port_env)

            keepalive_env = env.get("CHAINVIEW_MQTT_KEEPALIVE")
            if keepalive_env is not None and "mqtt_keepalive" not in overrides:
                config_kwargs["mqtt_keepalive"] = int(keepalive_env)

            delay_env = env.get("CHAINVIEW_RELOAD_DELAY")
            if delay_env is not None and "reload_delay" not in overrides:
                config_kwargs["reload_delay"] = float(delay_env)
        except ValueError as exc:
            raise ConfigError(f"Invalid numeric environment value: {exc}") from exc

        if "day_mode" not in overrides:
            config_kwargs["day_mode"] = _env_bool(env.get("CHAINVIEW_DAY_MODE"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

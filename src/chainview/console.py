"""High-level operator console: broker, model, layers and publishing wired together."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from chainview.config import ConsoleConfig
from chainview.exceptions import ChainViewError
from chainview.gateway import PublishGateway
from chainview.geo import GeoPoint
from chainview.keys import LayerKey
from chainview.layers.registry import LayerRegistry
from chainview.models.controls import Control, edit_control
from chainview.preferences import JsonPreferenceStore, MemoryPreferenceStore, OpacityLevel, PreferenceStore
from chainview.render import InMemorySurface, RenderSurface
from chainview.router import TopicRouter
from chainview.scheduling import AsyncioScheduler, Scheduler
from chainview.state.model import Chain, SubSystem
from chainview.state.store import ModelStore
from chainview.transport import BrokerTransport, PahoBrokerTransport

_logger = logging.getLogger(__name__)


class ChainConsole:
    """Operator console for processing chains.

    Use as an async context manager::

        async with ChainConsole(ConsoleConfig.from_env()) as console:
            ...

    Entering connects to the broker and starts discovery; leaving tears down
    every layer timer and disconnects.
    """

    def __init__(
        self,
        config: ConsoleConfig | None = None,
        *,
        surface: RenderSurface | None = None,
        transport: BrokerTransport | None = None,
        scheduler: Scheduler | None = None,
        preferences: PreferenceStore | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or ConsoleConfig()
        self.surface: RenderSurface = surface or InMemorySurface()
        self._transport: BrokerTransport = transport or PahoBrokerTransport(self._config)
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()
        if preferences is None:
            path = self._config.preferences_path
            preferences = JsonPreferenceStore(path) if path else MemoryPreferenceStore()
        self.preferences = preferences
        self.store = ModelStore(clock=clock)
        self.layers = LayerRegistry(
            self.surface,
            self._scheduler,
            preferences,
            clock=clock,
            tile_url_light=self._config.tile_url_light,
            tile_url_dark=self._config.tile_url_dark,
        )
        self.router = TopicRouter(
            self._transport,
            self.store,
            self.layers,
            self._scheduler,
            self.surface,
            reload_delay=self._config.reload_delay,
            on_reload=self.resync,
        )
        self.gateway = PublishGateway(self._transport, self.store, self.layers)
        self._day_mode = self._config.day_mode
        self._transport.set_message_handler(self.router.handle_message)

    @property
    def config(self) -> ConsoleConfig:
        return self._config

    @property
    def day_mode(self) -> bool:
        return self._day_mode

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> ChainConsole:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()

    def start(self) -> None:
        self.layers.ensure_world_map(self._day_mode)
        self.router.start()
        self._transport.start()
        _logger.info("Console started host=%s port=%s", self._config.broker_host, self._config.broker_port)

    def close(self) -> None:
        self.router.stop()
        self.layers.dispose_all()
        self._transport.stop()
        _logger.info("Console closed")

    def resync(self) -> None:
        """Rebuild everything from the broker's retained state."""
        self.router.resync()
        self.layers.ensure_world_map(self._day_mode)

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    def _require_chain(self, chain_id: str) -> Chain:
        chain = self.store.chain(chain_id)
        if chain is None:
            raise ChainViewError(f"Unknown chain: {chain_id}")
        return chain

    def add_chain(self) -> str:
        chain = self.store.add_chain()
        _logger.debug("Chain added id=%s", chain.id)
        return chain.id

    def remove_chain(self, chain_id: str) -> None:
        """Remove a chain locally; the broker is updated on the next save."""
        self._require_chain(chain_id)
        self.layers.dispose_chain(chain_id)
        self.store.remove_chain(chain_id)
        if self.store.selected_chain_id == chain_id:
            self.store.selected_chain_id = self.store.chain_ids[0]

    def edit_chain(
        self,
        chain_id: str,
        *,
        label: str | None = None,
        origin: GeoPoint | None = None,
        range_m: float | None = None,
    ) -> Chain:
        self._require_chain(chain_id)
        return self.store.update_chain(chain_id, label=label, origin=origin, range_m=range_m)

    def select_chain(self, chain_id: str) -> None:
        """Publish a new selection; the broker echo triggers the resync."""
        self._require_chain(chain_id)
        self.gateway.publish_selected(chain_id, False)

    def set_running(self, is_running: bool) -> None:
        chain_id = self.store.selected_chain_id
        if chain_id is None:
            raise ChainViewError("No chain selected")
        self.gateway.publish_selected(chain_id, is_running)

    def save_settings(self) -> None:
        """Publish the local model, then resync once the broker has settled."""
        self.router.suspend()
        self.gateway.save_settings()
        self.router.request_reload()

    # ------------------------------------------------------------------
    # Subsystems
    # ------------------------------------------------------------------

    def add_subsystem(self, chain_id: str, subsystem_id: str) -> SubSystem:
        self._require_chain(chain_id)
        if self.store.available(subsystem_id) is None:
            raise ChainViewError(f"Subsystem is not broadcasting: {subsystem_id}")
        return self.store.add_subsystem(chain_id, subsystem_id)

    def remove_subsystem(self, chain_id: str, subsystem_id: str) -> bool:
        self.layers.dispose_subsystem(chain_id, subsystem_id)
        return self.store.unbind_subsystem(chain_id, subsystem_id)

    def move_subsystem_up(self, chain_id: str, subsystem_id: str) -> bool:
        return self.store.move_up(chain_id, subsystem_id)

    def move_subsystem_down(self, chain_id: str, subsystem_id: str) -> bool:
        return self.store.move_down(chain_id, subsystem_id)

    def select_topic(self, chain_id: str, subsystem_id: str, topic: str) -> bool:
        return self.store.select_topic(chain_id, subsystem_id, topic)

    def edit_control(
        self,
        chain_id: str,
        subsystem_id: str,
        control_id: str,
        value: Any,
        *,
        index: int | None = None,
    ) -> Control:
        """Apply an edit to a control and publish it immediately."""
        subsystem = self.store.subsystem(chain_id, subsystem_id)
        if subsystem is None or control_id not in subsystem.controls:
            raise ChainViewError(f"Unknown control: {chain_id}/{subsystem_id}/{control_id}")
        control = edit_control(subsystem.controls[control_id], value, index=index)
        self.gateway.publish_control(chain_id, subsystem_id, control_id, control)
        return control

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def set_layer_opacity(self, key: LayerKey, level: OpacityLevel | int) -> None:
        self.layers.set_opacity(key, level)

    def set_layer_visible(self, key: LayerKey, visible: bool) -> None:
        self.layers.set_visible(key, visible)

    def set_day_mode(self, day_mode: bool) -> None:
        self._day_mode = bool(day_mode)
        self.layers.set_day_mode(self._day_mode)

"""Topic router: turns broker messages into model, layer and subscription changes.

Messages may arrive in any order and may repeat. Every handler is
idempotent, subscriptions are deduplicated, and payloads that do not decode
are dropped with a DEBUG log. A conflicting chain selection is never
repaired incrementally: the router requests one full resync instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import StrEnum

from chainview._constants import (
    AVAILABLE_CHAINS_TOPIC,
    AVAILABLE_SUBSYSTEM_DEFINITION_PATTERN,
    AVAILABLE_SUBSYSTEM_STATUS_PATTERN,
    DEFAULT_RELOAD_DELAY,
    SELECTED_CHAIN_TOPIC,
    STATUS_REFRESH_INTERVAL,
)
from chainview.exceptions import ChainViewError, PayloadError, TopicError
from chainview.keys import LayerKey
from chainview.layers.base import UNSET_ORIGIN
from chainview.layers.registry import LayerRegistry
from chainview.models.chain import ChainSetup, OperationalState, SelectedChain
from chainview.models.controls import parse_control
from chainview.models.interpretation import STREAM_DISPLAYS, DisplayType, Interpretation
from chainview.models.subsystem import Endpoint, IncomingEndpoint, RateReport, SubSystemDefinition
from chainview.normalize import decode_json, decode_text, split_records, unquote
from chainview.render import RenderSurface
from chainview.scheduling import PollHandle, Scheduler
from chainview.schema import decode_schema
from chainview.state.store import LayerChange, ModelStore
from chainview.topics import (
    ParsedTopic,
    TopicKind,
    chain_setup_pattern,
    controls_pattern,
    definition_topic,
    incoming_topic,
    interpretation_pattern,
    is_valid_id,
    outgoing_topic,
    parse_topic,
    rates_topic,
    records_topic,
    status_topic,
)
from chainview.transport import BrokerTransport

_logger = logging.getLogger(__name__)


class RouterPhase(StrEnum):
    DISCOVERING = "discovering"
    CHAIN_SELECTED = "chain_selected"
    SUBSYSTEMS_BOUND = "subsystems_bound"
    STREAMING = "streaming"


def _id_list(payload: bytes | str) -> list[str]:
    data = decode_json(payload)
    if not isinstance(data, list):
        raise PayloadError("expected a JSON array of ids")
    return [item for item in data if isinstance(item, str) and is_valid_id(item)]


class TopicRouter:
    """Dispatches inbound broker messages onto the model store and layers."""

    def __init__(
        self,
        transport: BrokerTransport,
        store: ModelStore,
        layers: LayerRegistry,
        scheduler: Scheduler,
        surface: RenderSurface,
        *,
        reload_delay: float = DEFAULT_RELOAD_DELAY,
        on_reload: Callable[[], None] | None = None,
    ) -> None:
        self._transport = transport
        self._store = store
        self._layers = layers
        self._scheduler = scheduler
        self._surface = surface
        self._reload_delay = reload_delay
        self._on_reload = on_reload
        self._subscriptions: set[str] = set()
        self._reload_handle: PollHandle | None = None
        self._sweep_handle: PollHandle | None = None
        self.phase = RouterPhase.DISCOVERING
        self.reload_count = 0
        self._handlers: dict[TopicKind, Callable[[ParsedTopic, bytes | str], None]] = {
            TopicKind.AVAILABLE_CHAINS: self._on_available_chains,
            TopicKind.SELECTED_CHAIN: self._on_selected_chain,
            TopicKind.SUBSYSTEM_STATUS: self._on_status,
            TopicKind.SUBSYSTEM_DEFINITION: self._on_definition,
            TopicKind.CHAIN_SETUP: self._on_chain_setup,
            TopicKind.CHAIN_SUBSYSTEMS: self._on_chain_subsystems,
            TopicKind.OUTGOING: self._on_outgoing,
            TopicKind.INCOMING: self._on_incoming,
            TopicKind.RATES: self._on_rates,
            TopicKind.CONTROL: self._on_control,
            TopicKind.INTERPRETATION: self._on_interpretation,
            TopicKind.RECORDS: self._on_records,
        }

    @property
    def subscriptions(self) -> frozenset[str]:
        return frozenset(self._subscriptions)

    @property
    def reload_pending(self) -> bool:
        return self._reload_handle is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin discovery and arm the heartbeat sweep."""
        self._subscribe(AVAILABLE_CHAINS_TOPIC)
        if self._sweep_handle is None:
            self._sweep_handle = self._scheduler.schedule(self.sweep_heartbeats, STATUS_REFRESH_INTERVAL)

    def stop(self) -> None:
        for handle in (self._sweep_handle, self._reload_handle):
            if handle is not None:
                handle.cancel()
        self._sweep_handle = None
        self._reload_handle = None

    def request_reload(self) -> bool:
        """Schedule one full resync; return ``False`` if one is already pending."""
        if self._reload_handle is not None:
            return False
        _logger.info("Resync requested delay=%.1fs", self._reload_delay)
        self._reload_handle = self._scheduler.call_later(self._reload_delay, self._fire_reload)
        return True

    def _fire_reload(self) -> None:
        self._reload_handle = None
        self.reload_count += 1
        if self._on_reload is not None:
            self._on_reload()
        else:
            self.resync()

    def resync(self) -> None:
        """Drop every subscription, layer and model entry, then rediscover."""
        _logger.info("Resync started")
        self.stop()
        self._transport.unsubscribe_all()
        self._subscriptions.clear()
        self._layers.dispose_all()
        self._store.reset()
        self.phase = RouterPhase.DISCOVERING
        self.start()

    def suspend(self) -> None:
        """Stop receiving broker messages until the next resync."""
        self._transport.unsubscribe_all()
        self._subscriptions.clear()

    def sweep_heartbeats(self) -> list[str]:
        expired = self._store.sweep_heartbeats()
        if expired:
            _logger.debug("Subsystem heartbeat expired ids=%s", expired)
        return expired

    def _subscribe(self, pattern: str) -> bool:
        if pattern in self._subscriptions:
            return False
        self._subscriptions.add(pattern)
        self._transport.subscribe(pattern)
        _logger.debug("Subscribed pattern=%s", pattern)
        return True

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def handle_message(self, topic: str, payload: bytes | str) -> bool:
        """Route one broker message; return ``False`` when it was dropped."""
        try:
            parsed = parse_topic(topic)
        except TopicError:
            _logger.debug("Dropping message on unknown topic=%s", topic)
            return False
        try:
            self._handlers[parsed.kind](parsed, payload)
        except (ValueError, ChainViewError):
            _logger.debug("Dropping malformed payload topic=%s", topic, exc_info=True)
            return False
        return True

    def _on_available_chains(self, _parsed: ParsedTopic, payload: bytes | str) -> None:
        added = self._store.set_available_chains(_id_list(payload))
        self._subscribe(SELECTED_CHAIN_TOPIC)
        if self.phase is not RouterPhase.DISCOVERING:
            for chain_id in added:
                self._subscribe(chain_setup_pattern(chain_id))

    def _on_selected_chain(self, _parsed: ParsedTopic, payload: bytes | str) -> None:
        selected = SelectedChain.model_validate(decode_json(payload))
        self._subscribe(AVAILABLE_SUBSYSTEM_STATUS_PATTERN)
        self._subscribe(AVAILABLE_SUBSYSTEM_DEFINITION_PATTERN)

        current = self._store.selected_chain_id
        if current is None:
            self._store.select_chain(selected.id, selected.is_running)
            self.phase = RouterPhase.CHAIN_SELECTED
            _logger.info("Chain selected id=%s running=%s", selected.id, selected.is_running)
            chain_ids = self._store.chain_ids
            if selected.id not in chain_ids:
                chain_ids.append(selected.id)
            for chain_id in chain_ids:
                self._subscribe(chain_setup_pattern(chain_id))
        elif current == selected.id:
            self._store.set_running(selected.id, selected.is_running)
        else:
            _logger.info("Selected chain changed from=%s to=%s", current, selected.id)
            self.request_reload()

    def _on_chain_setup(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        chain_id = str(parsed.chain_id)
        text = decode_text(payload).strip()
        if not text:
            self._on_chain_deleted(chain_id)
            return

        setup = ChainSetup.model_validate(decode_json(text))
        changed = self._store.apply_setup(chain_id, setup)
        if not self._store.is_selected(chain_id):
            return

        rosette = LayerKey.rosette(chain_id)
        if not changed and rosette in self._layers:
            return
        origin = setup.origin.to_point()
        if origin.is_finite:
            self._surface.recenter(origin, setup.range)
        self._store.register_overlay(rosette, DisplayType.ROSETTE)
        self._layers.ensure_rosette(chain_id, origin, setup.range)
        self._layers.set_sensor_origin(chain_id, origin)

    def _on_chain_deleted(self, chain_id: str) -> None:
        _logger.info("Chain deleted upstream id=%s", chain_id)
        self._layers.dispose_chain(chain_id)
        self._store.forget_chain(chain_id)
        if self._store.is_selected(chain_id):
            self.request_reload()

    def _on_chain_subsystems(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        chain_id = str(parsed.chain_id)
        bound, dropped = self._store.set_subsystem_order(chain_id, _id_list(payload))
        for key in dropped:
            self._layers.dispose_subsystem(key.chain_id, key.subsystem_id)

        selected = self._store.is_selected(chain_id)
        for subsystem in bound:
            self._subscribe(outgoing_topic(chain_id, subsystem.id))
            self._subscribe(controls_pattern(chain_id, subsystem.id))
            self._subscribe(status_topic(subsystem.id))
            self._subscribe(definition_topic(subsystem.id))
            if selected:
                self._subscribe(rates_topic(chain_id, subsystem.id))
                self._subscribe(incoming_topic(chain_id, subsystem.id))
        if selected and self.phase is RouterPhase.CHAIN_SELECTED:
            self.phase = RouterPhase.SUBSYSTEMS_BOUND

    def _on_status(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        text = unquote(decode_text(payload))
        if not text:
            raise PayloadError("empty status")
        subsystem_id = str(parsed.subsystem_id)
        changed = self._store.apply_status(subsystem_id, OperationalState(text))
        if changed:
            _logger.debug("Chain state changed subsystem=%s chains=%s", subsystem_id, changed)

    def _on_definition(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        definition = SubSystemDefinition.model_validate(decode_json(payload))
        self._store.apply_definition(str(parsed.subsystem_id), definition)

    def _on_outgoing(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        chain_id, subsystem_id = str(parsed.chain_id), str(parsed.subsystem_id)
        endpoint = Endpoint.model_validate(decode_json(payload))
        if self._store.set_endpoint(chain_id, subsystem_id, endpoint) is None:
            _logger.debug("Outgoing for unbound subsystem chain=%s subsystem=%s", chain_id, subsystem_id)
            return
        self._subscribe(interpretation_pattern(chain_id, subsystem_id))

    def _on_incoming(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        incoming = IncomingEndpoint.model_validate(decode_json(payload))
        if not self._store.set_incoming(str(parsed.chain_id), str(parsed.subsystem_id), incoming):
            _logger.debug("Incoming endpoint ignored protocol=%s source=%s", incoming.protocol, incoming.source)

    def _on_rates(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        report = RateReport.model_validate(decode_json(payload))
        self._store.set_rate_mask(str(parsed.chain_id), str(parsed.subsystem_id), report.total)

    def _on_control(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        chain_id = str(parsed.chain_id)
        if not self._store.is_selected(chain_id):
            return
        control = parse_control(decode_json(payload))
        self._store.set_control(chain_id, str(parsed.subsystem_id), str(parsed.control_id), control)

    def _on_interpretation(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        chain_id, subsystem_id = str(parsed.chain_id), str(parsed.subsystem_id)
        stream_key = str(parsed.stream_key)
        interpretation = Interpretation.model_validate(decode_json(payload))
        key = LayerKey(chain_id, subsystem_id, stream_key)
        if interpretation.data_types:
            self._store.set_stream_layout(key, interpretation.data_types)
        if interpretation.display not in STREAM_DISPLAYS:
            raise PayloadError(f"display {interpretation.display} cannot carry records")
        schema = decode_schema(interpretation.header, interpretation.display)

        _record, change = self._store.register_layer(key, interpretation, schema)
        if change is LayerChange.CONFLICT:
            _logger.debug("Ignoring schema change for existing layer=%s", key.layer_id)
            return
        if not self._store.is_selected(chain_id) or key in self._layers:
            return

        chain = self._store.chain(chain_id)
        origin = chain.origin if chain is not None else UNSET_ORIGIN
        self._layers.ensure_stream(key, interpretation, schema, origin)
        self._subscribe(records_topic(chain_id, subsystem_id, stream_key))
        self.phase = RouterPhase.STREAMING

    def _on_records(self, parsed: ParsedTopic, payload: bytes | str) -> None:
        key = LayerKey(str(parsed.chain_id), str(parsed.subsystem_id), str(parsed.stream_key))
        if key not in self._layers:
            _logger.debug("Records for inactive layer=%s", key.layer_id)
            return
        accepted = sum(1 for line in split_records(payload) if self._layers.enqueue(key, line))
        _logger.debug("Records ingested layer=%s accepted=%d", key.layer_id, accepted)

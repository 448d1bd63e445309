"""Deterministic in-memory model store.

This is the only component allowed to mutate the chain/subsystem/layer
model. The router feeds it decoded broker messages, the console feeds it
local edits, and the gateway reads it back when publishing.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Iterable
from enum import StrEnum

from chainview._constants import (
    DEFAULT_ENDPOINT_HOST,
    DEFAULT_ENDPOINT_PORT,
    DEFAULT_ENDPOINT_PROTOCOL,
    EMPTY_RATE_MASK,
    STATUS_TIMEOUT,
)
from chainview.geo import GeoPoint
from chainview.keys import LayerKey, SubSystemKey
from chainview.models.chain import ChainSetup, OperationalState
from chainview.models.controls import Control
from chainview.models.interpretation import DisplayType, Interpretation
from chainview.models.subsystem import Endpoint, IncomingEndpoint, SubSystemDefinition
from chainview.schema import RecordSchema
from chainview.state.model import AvailableSubSystem, Chain, LayerRecord, SubSystem, SubSystemPurge
from chainview.state.policy import heartbeat_expired, rollup_chain_state


class LayerChange(StrEnum):
    CREATED = "created"
    REFRESHED = "refreshed"
    CONFLICT = "conflict"


def new_chain_id() -> str:
    """32-hex-character chain identifier."""
    return uuid.uuid4().hex


def _dedupe(ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


class ModelStore:
    """In-memory store for chains, subsystems and layers.

    Given the same sequence of calls it produces the same model; the only
    time source is the injected ``clock`` used for heartbeats.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        status_timeout: float = STATUS_TIMEOUT,
    ) -> None:
        self._clock = clock
        self._status_timeout = status_timeout
        self.reset()

    def reset(self) -> None:
        """Forget everything, including the selected chain."""
        self._chains: dict[str, Chain] = {}
        self._chain_order: list[str] = []
        self._available: dict[str, AvailableSubSystem] = {}
        self._subsystems: dict[SubSystemKey, SubSystem] = {}
        self._layers: dict[LayerKey, LayerRecord] = {}
        self._purged_chains: list[str] = []
        self._purged_subsystems: dict[SubSystemKey, SubSystemPurge] = {}
        self.selected_chain_id: str | None = None

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    @property
    def chain_ids(self) -> list[str]:
        return list(self._chain_order)

    def chains(self) -> list[Chain]:
        return [self._chains[chain_id] for chain_id in self._chain_order if chain_id in self._chains]

    def chain(self, chain_id: str) -> Chain | None:
        return self._chains.get(chain_id)

    def _chain(self, chain_id: str) -> Chain:
        chain = self._chains.get(chain_id)
        if chain is None:
            chain = Chain(id=chain_id)
            self._chains[chain_id] = chain
        return chain

    @property
    def selected_chain(self) -> Chain | None:
        if self.selected_chain_id is None:
            return None
        return self._chains.get(self.selected_chain_id)

    def is_selected(self, chain_id: str | None) -> bool:
        return chain_id is not None and chain_id == self.selected_chain_id

    def set_available_chains(self, chain_ids: Iterable[str]) -> list[str]:
        """Replace the chain list; return ids that were not listed before."""
        ordered = _dedupe(chain_ids)
        added = [chain_id for chain_id in ordered if chain_id not in self._chain_order]
        self._chain_order = ordered
        for chain_id in ordered:
            self._chain(chain_id)
        return added

    def apply_setup(self, chain_id: str, setup: ChainSetup) -> bool:
        """Apply a chain setup; return whether any displayed value changed."""
        chain = self._chain(chain_id)
        origin = setup.origin.to_point()
        before = (chain.label, chain.origin, chain.range_m, chain.has_setup)
        chain.label = setup.label
        chain.origin = origin
        chain.range_m = setup.range
        chain.has_setup = True
        return before != (chain.label, chain.origin, chain.range_m, chain.has_setup)

    def update_chain(
        self,
        chain_id: str,
        *,
        label: str | None = None,
        origin: GeoPoint | None = None,
        range_m: float | None = None,
    ) -> Chain:
        """Apply a local chain-header edit."""
        chain = self._chain(chain_id)
        if label is not None:
            chain.label = label
        if origin is not None:
            chain.origin = origin
        if range_m is not None:
            chain.range_m = range_m
        return chain

    def add_chain(self, chain_id: str | None = None) -> Chain:
        chain_id = chain_id or new_chain_id()
        chain = self._chain(chain_id)
        if chain_id not in self._chain_order:
            self._chain_order.append(chain_id)
        if chain_id in self._purged_chains:
            self._purged_chains.remove(chain_id)
        return chain

    def _drop_chain(self, chain_id: str) -> list[SubSystemKey]:
        chain = self._chains.pop(chain_id, None)
        if chain_id in self._chain_order:
            self._chain_order.remove(chain_id)
        removed = [SubSystemKey(chain_id, sid) for sid in (chain.subsystem_ids if chain else [])]
        for key in [key for key in self._subsystems if key.chain_id == chain_id]:
            self._subsystems.pop(key, None)
        for key in [key for key in self._layers if key.chain_id == chain_id]:
            self._layers.pop(key, None)
        return removed

    def forget_chain(self, chain_id: str) -> list[SubSystemKey]:
        """Drop a chain deleted upstream (its topics are already gone)."""
        return self._drop_chain(chain_id)

    def remove_chain(self, chain_id: str) -> list[SubSystemKey]:
        """Delete a chain locally, cascading to its subsystems and layers.

        The chain and its subsystems are queued for clearing on the next save.
        When the last chain is removed a fresh empty chain takes its place.
        """
        chain = self._chains.get(chain_id)
        if chain is not None:
            for subsystem_id in list(chain.subsystem_ids):
                self.unbind_subsystem(chain_id, subsystem_id)
        removed = self._drop_chain(chain_id)
        if chain_id not in self._purged_chains:
            self._purged_chains.append(chain_id)
        if not self._chain_order:
            self.add_chain()
        return removed

    def select_chain(self, chain_id: str, is_running: bool) -> Chain:
        self.selected_chain_id = chain_id
        chain = self._chain(chain_id)
        chain.is_running = is_running
        return chain

    def set_running(self, chain_id: str, is_running: bool) -> None:
        self._chain(chain_id).is_running = is_running

    # ------------------------------------------------------------------
    # Subsystems
    # ------------------------------------------------------------------

    def subsystem(self, chain_id: str, subsystem_id: str) -> SubSystem | None:
        return self._subsystems.get(SubSystemKey(chain_id, subsystem_id))

    def subsystems_of(self, chain_id: str) -> list[SubSystem]:
        chain = self._chains.get(chain_id)
        if chain is None:
            return []
        return [
            self._subsystems[SubSystemKey(chain_id, sid)]
            for sid in chain.subsystem_ids
            if SubSystemKey(chain_id, sid) in self._subsystems
        ]

    def bind_subsystem(self, chain_id: str, subsystem_id: str) -> SubSystem:
        """Get-or-create the chain's subsystem, appending it to the ordering."""
        chain = self._chain(chain_id)
        key = SubSystemKey(chain_id, subsystem_id)
        subsystem = self._subsystems.get(key)
        if subsystem is None:
            subsystem = SubSystem(chain_id=chain_id, id=subsystem_id)
            self._subsystems[key] = subsystem
        if subsystem_id not in chain.subsystem_ids:
            chain.subsystem_ids.append(subsystem_id)
        self.ensure_available(subsystem_id)
        self._purged_subsystems.pop(key, None)
        return subsystem

    def set_subsystem_order(self, chain_id: str, subsystem_ids: Iterable[str]) -> tuple[list[SubSystem], list[SubSystemKey]]:
        """Replace the chain's ordering with a published one.

        Returns the bound subsystems in order and the keys that were dropped
        because the published list no longer names them.
        """
        chain = self._chain(chain_id)
        ordered = _dedupe(subsystem_ids)
        dropped = [SubSystemKey(chain_id, sid) for sid in chain.subsystem_ids if sid not in ordered]
        for key in dropped:
            self._subsystems.pop(key, None)
            for layer_key in [lk for lk in self._layers if lk.subsystem == key]:
                self._layers.pop(layer_key, None)
        chain.subsystem_ids = []
        bound = [self.bind_subsystem(chain_id, sid) for sid in ordered]
        self.rollup(chain_id)
        return bound, dropped

    def add_subsystem(self, chain_id: str, subsystem_id: str) -> SubSystem:
        """Bind an available subsystem locally with a default broker endpoint."""
        subsystem = self.bind_subsystem(chain_id, subsystem_id)
        if subsystem.endpoint.protocol is None:
            available = self._available[subsystem_id]
            subsystem.endpoint = Endpoint(
                protocol=DEFAULT_ENDPOINT_PROTOCOL,
                ip=DEFAULT_ENDPOINT_HOST,
                port=DEFAULT_ENDPOINT_PORT,
                topics=list(available.streams),
            )
        self.rollup(chain_id)
        return subsystem

    def unbind_subsystem(self, chain_id: str, subsystem_id: str) -> bool:
        """Remove a subsystem from its chain and queue its topics for clearing."""
        chain = self._chains.get(chain_id)
        key = SubSystemKey(chain_id, subsystem_id)
        subsystem = self._subsystems.pop(key, None)
        if chain is not None and subsystem_id in chain.subsystem_ids:
            chain.subsystem_ids.remove(subsystem_id)
        if subsystem is None:
            return False
        layer_keys = [lk for lk in self._layers if lk.subsystem == key]
        stream_keys = set(subsystem.stream_keys) | {lk.stream_key for lk in layer_keys}
        for layer_key in layer_keys:
            self._layers.pop(layer_key, None)
        self._purged_subsystems[key] = SubSystemPurge(
            key=key,
            control_ids=tuple(sorted(subsystem.controls)),
            stream_keys=tuple(sorted(stream_keys)),
        )
        self.rollup(chain_id)
        return True

    def move_subsystem(self, chain_id: str, subsystem_id: str, offset: int) -> bool:
        """Swap a subsystem with its neighbour; ``offset`` is ``-1`` (up) or ``+1`` (down)."""
        chain = self._chains.get(chain_id)
        if chain is None or subsystem_id not in chain.subsystem_ids:
            return False
        index = chain.subsystem_ids.index(subsystem_id)
        target = index + offset
        if not 0 <= target < len(chain.subsystem_ids):
            return False
        ids = chain.subsystem_ids
        ids[index], ids[target] = ids[target], ids[index]
        return True

    def move_up(self, chain_id: str, subsystem_id: str) -> bool:
        return self.move_subsystem(chain_id, subsystem_id, -1)

    def move_down(self, chain_id: str, subsystem_id: str) -> bool:
        return self.move_subsystem(chain_id, subsystem_id, 1)

    def set_endpoint(self, chain_id: str, subsystem_id: str, endpoint: Endpoint) -> SubSystem | None:
        subsystem = self.subsystem(chain_id, subsystem_id)
        if subsystem is None:
            return None
        if endpoint.selected_topic is None:
            selected = subsystem.endpoint.selected_topic
            if selected not in endpoint.topics:
                selected = self._downstream_topic(chain_id, subsystem_id)
            if selected in endpoint.topics:
                endpoint = endpoint.model_copy(update={"selected_topic": selected})
        subsystem.endpoint = endpoint
        return subsystem

    def _downstream_topic(self, chain_id: str, subsystem_id: str) -> str | None:
        """Topic a bound subsystem's ``Incoming`` reads from *subsystem_id*."""
        for other in self.subsystems_of(chain_id):
            incoming = other.incoming
            if incoming is not None and incoming.source == subsystem_id and incoming.topics:
                return incoming.topics[0]
        return None

    def select_topic(self, chain_id: str, subsystem_id: str, topic: str) -> bool:
        subsystem = self.subsystem(chain_id, subsystem_id)
        if subsystem is None or topic not in subsystem.endpoint.topics:
            return False
        subsystem.endpoint = subsystem.endpoint.model_copy(update={"selected_topic": topic})
        return True

    def set_incoming(self, chain_id: str, subsystem_id: str, incoming: IncomingEndpoint) -> bool:
        """Store a published ``Incoming`` and restore the source's selected topic.

        Outgoing payloads carry no selection, so the upstream subsystem's
        ``selected_topic`` is recovered from ``incoming.topics[0]``.
        """
        subsystem = self.subsystem(chain_id, subsystem_id)
        if subsystem is None or not incoming.is_acceptable:
            return False
        subsystem.incoming = incoming
        topic = incoming.topics[0] if incoming.topics else None
        source = self.subsystem(chain_id, str(incoming.source))
        if topic and source is not None and topic in source.endpoint.topics:
            source.endpoint = source.endpoint.model_copy(update={"selected_topic": topic})
            subsystem.data_stream(topic).incoming = incoming
        return True

    def set_stream_layout(self, key: LayerKey, layout: list[str]) -> bool:
        """Cache the declared field types of one output stream."""
        subsystem = self._subsystems.get(key.subsystem)
        if subsystem is None:
            return False
        subsystem.data_stream(key.stream_key).layout = list(layout)
        return True

    def stream_layout(self, chain_id: str, subsystem_id: str, stream_key: str | None) -> list[str] | None:
        subsystem = self.subsystem(chain_id, subsystem_id)
        if subsystem is None or stream_key is None:
            return None
        stream = subsystem.data_streams.get(stream_key)
        return stream.layout if stream is not None else None

    def set_control(self, chain_id: str, subsystem_id: str, control_id: str, control: Control) -> bool:
        subsystem = self.subsystem(chain_id, subsystem_id)
        if subsystem is None:
            return False
        subsystem.controls[control_id] = control
        return True

    def set_rate_mask(self, chain_id: str, subsystem_id: str, mask: tuple[int, ...]) -> bool:
        subsystem = self.subsystem(chain_id, subsystem_id)
        if subsystem is None:
            return False
        subsystem.rate_mask = mask
        return True

    # ------------------------------------------------------------------
    # Broadcasting subsystems
    # ------------------------------------------------------------------

    def available(self, subsystem_id: str) -> AvailableSubSystem | None:
        return self._available.get(subsystem_id)

    def available_subsystems(self) -> list[AvailableSubSystem]:
        return list(self._available.values())

    def ensure_available(self, subsystem_id: str) -> AvailableSubSystem:
        entry = self._available.get(subsystem_id)
        if entry is None:
            entry = AvailableSubSystem(id=subsystem_id)
            self._available[subsystem_id] = entry
        return entry

    def _chains_with(self, subsystem_id: str) -> list[str]:
        return [chain.id for chain in self._chains.values() if subsystem_id in chain.subsystem_ids]

    def apply_status(self, subsystem_id: str, state: OperationalState) -> list[str]:
        """Record a heartbeat; return chains whose aggregate state changed."""
        entry = self.ensure_available(subsystem_id)
        entry.state = state
        entry.last_heard = self._clock()
        return [chain_id for chain_id in self._chains_with(subsystem_id) if self._rollup_changed(chain_id)]

    def apply_definition(self, subsystem_id: str, definition: SubSystemDefinition) -> AvailableSubSystem:
        entry = self.ensure_available(subsystem_id)
        entry.label = definition.label
        entry.streams = list(definition.streams)
        return entry

    def sweep_heartbeats(self) -> list[str]:
        """Expire silent subsystems to ``UNKNOWN``; return the expired ids."""
        now = self._clock()
        expired: list[str] = []
        for entry in self._available.values():
            if entry.state is OperationalState.UNKNOWN:
                continue
            if heartbeat_expired(now, entry.last_heard, self._status_timeout):
                entry.state = OperationalState.UNKNOWN
                expired.append(entry.id)
        for subsystem_id in expired:
            for key, subsystem in self._subsystems.items():
                if key.subsystem_id == subsystem_id:
                    subsystem.rate_mask = EMPTY_RATE_MASK
            for chain_id in self._chains_with(subsystem_id):
                self.rollup(chain_id)
        return expired

    def rollup(self, chain_id: str) -> OperationalState:
        chain = self._chain(chain_id)
        states = [
            entry.state if (entry := self._available.get(sid)) is not None else OperationalState.UNKNOWN
            for sid in chain.subsystem_ids
        ]
        chain.state = rollup_chain_state(states)
        return chain.state

    def _rollup_changed(self, chain_id: str) -> bool:
        chain = self._chain(chain_id)
        before = chain.state
        return self.rollup(chain_id) is not before

    # ------------------------------------------------------------------
    # Layers
    # ------------------------------------------------------------------

    def layer(self, key: LayerKey) -> LayerRecord | None:
        return self._layers.get(key)

    def layers(self) -> list[LayerRecord]:
        return list(self._layers.values())

    def layers_of(self, chain_id: str) -> list[LayerRecord]:
        return [record for key, record in self._layers.items() if key.chain_id == chain_id]

    def register_layer(
        self,
        key: LayerKey,
        interpretation: Interpretation,
        schema: RecordSchema,
    ) -> tuple[LayerRecord, LayerChange]:
        """Register a stream layer; its schema is fixed by the first declaration."""
        record = self._layers.get(key)
        if record is None:
            record = LayerRecord(key=key, display=schema.display, interpretation=interpretation, schema=schema)
            self._layers[key] = record
            subsystem = self._subsystems.get(key.subsystem)
            if subsystem is not None:
                subsystem.stream_keys.add(key.stream_key)
            return record, LayerChange.CREATED
        if record.schema != schema:
            return record, LayerChange.CONFLICT
        record.interpretation = interpretation
        return record, LayerChange.REFRESHED

    def register_overlay(self, key: LayerKey, display: DisplayType) -> LayerRecord:
        record = self._layers.get(key)
        if record is None:
            record = LayerRecord(key=key, display=display)
            self._layers[key] = record
        return record

    # ------------------------------------------------------------------
    # Pending clears
    # ------------------------------------------------------------------

    @property
    def purged_chains(self) -> list[str]:
        return list(self._purged_chains)

    @property
    def purged_subsystems(self) -> list[SubSystemPurge]:
        return list(self._purged_subsystems.values())

    def clear_purges(self) -> None:
        self._purged_chains.clear()
        self._purged_subsystems.clear()

"""Publish gateway: writes the local model back to the broker."""

from __future__ import annotations

import json
import logging
from typing import Any

from chainview._constants import AVAILABLE_CHAINS_TOPIC, PUBLISH_QOS, PUBLISH_RETAIN, SELECTED_CHAIN_TOPIC
from chainview.layers.registry import LayerRegistry
from chainview.models.controls import Control
from chainview.models.subsystem import Endpoint
from chainview.state.model import SubSystem
from chainview.state.store import ModelStore
from chainview.topics import (
    chain_setup_topic,
    chain_subsystems_topic,
    control_topic,
    incoming_topic,
    interpretation_topic,
    outgoing_topic,
)
from chainview.transport import BrokerTransport

_logger = logging.getLogger(__name__)


def outgoing_payload(endpoint: Endpoint) -> dict[str, Any]:
    """Outgoing endpoint as published.

    Broker protocols advertise every topic; point-to-point protocols only the
    selected one. An endpoint without a protocol is published as ``{}``.
    """
    if not endpoint.protocol:
        return {}
    topics = list(endpoint.topics) if endpoint.is_broker else [endpoint.selected_topic or ""]
    return {
        "protocol": endpoint.protocol,
        "ip": endpoint.ip,
        "port": endpoint.port,
        "topics": topics,
    }


def incoming_payload(previous: SubSystem | None) -> dict[str, Any]:
    """Incoming endpoint derived from the upstream subsystem's outgoing one.

    ``layout`` is the declared field types of the selected upstream stream,
    when its interpretation has been seen.
    """
    if previous is None or not previous.endpoint.protocol:
        return {}
    endpoint = previous.endpoint
    payload: dict[str, Any] = {
        "protocol": endpoint.protocol,
        "ip": endpoint.ip,
        "port": endpoint.port,
        "topics": [endpoint.selected_topic or ""],
        "source": previous.id,
    }
    stream = previous.data_streams.get(endpoint.selected_topic or "")
    if stream is not None and stream.layout is not None:
        payload["layout"] = list(stream.layout)
    return payload


def encode_payload(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, separators=(",", ":"))


class PublishGateway:
    """Publishes chain configuration, control edits and chain selection.

    All messages are retained at QoS 1 so late joiners see the latest state.
    Clearing a topic publishes an empty retained payload.
    """

    def __init__(
        self,
        transport: BrokerTransport,
        store: ModelStore,
        layers: LayerRegistry | None = None,
    ) -> None:
        self._transport = transport
        self._store = store
        self._layers = layers

    def publish(self, topic: str, payload: Any) -> None:
        self._transport.publish(topic, encode_payload(payload), qos=PUBLISH_QOS, retain=PUBLISH_RETAIN)

    def clear(self, topic: str) -> None:
        self.publish(topic, "")

    def save_settings(self) -> None:
        """Publish the whole local model, clearing topics of removed items first."""
        store = self._store

        for chain_id in store.purged_chains:
            self.clear(chain_setup_topic(chain_id))
            self.clear(chain_subsystems_topic(chain_id))
        for purge in store.purged_subsystems:
            chain_id, subsystem_id = purge.key
            for control_id in purge.control_ids:
                self.clear(control_topic(chain_id, subsystem_id, control_id))
            for stream_key in purge.stream_keys:
                self.clear(interpretation_topic(chain_id, subsystem_id, stream_key))
            self.clear(incoming_topic(chain_id, subsystem_id))
            self.clear(outgoing_topic(chain_id, subsystem_id))
        store.clear_purges()

        chains = store.chains()
        self.publish(AVAILABLE_CHAINS_TOPIC, [chain.id for chain in chains])
        for chain in chains:
            self.publish(chain_setup_topic(chain.id), chain.to_setup().to_payload())

        for chain in chains:
            subsystems = store.subsystems_of(chain.id)
            for subsystem in subsystems:
                self.publish(outgoing_topic(chain.id, subsystem.id), outgoing_payload(subsystem.endpoint))
            previous: SubSystem | None = None
            for subsystem in subsystems:
                self.publish(incoming_topic(chain.id, subsystem.id), incoming_payload(previous))
                previous = subsystem
            self.publish(chain_subsystems_topic(chain.id), [subsystem.id for subsystem in subsystems])

        if store.selected_chain_id is not None:
            self.publish_selected(store.selected_chain_id, False)

        if self._layers is not None:
            self._layers.persist_preferences()
        _logger.info("Settings saved chains=%d", len(chains))

    def publish_control(self, chain_id: str, subsystem_id: str, control_id: str, control: Control) -> None:
        self._store.set_control(chain_id, subsystem_id, control_id, control)
        self.publish(control_topic(chain_id, subsystem_id, control_id), control.to_payload())

    def publish_selected(self, chain_id: str, is_running: bool) -> None:
        self.publish(SELECTED_CHAIN_TOPIC, {"id": chain_id, "isRunning": is_running})

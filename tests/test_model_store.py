from __future__ import annotations

import pytest

from chainview._constants import EMPTY_RATE_MASK
from chainview.keys import LayerKey, SubSystemKey
from chainview.models.chain import OperationalState
from chainview.models.controls import TextBoxControl
from chainview.models.interpretation import DisplayType, Interpretation
from chainview.models.subsystem import Endpoint, IncomingEndpoint, SubSystemDefinition
from chainview.schema import decode_schema
from chainview.state.policy import rollup_chain_state
from chainview.state.store import LayerChange, ModelStore, new_chain_id

OP = OperationalState.OPERATIONAL
CAUTION = OperationalState.CAUTION
FAILURE = OperationalState.FAILURE
UNKNOWN = OperationalState.UNKNOWN


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.parametrize(
    ("states", "expected"),
    [
        ([], UNKNOWN),
        ([UNKNOWN, UNKNOWN], UNKNOWN),
        ([OP, OP], OP),
        ([OP, FAILURE, UNKNOWN], FAILURE),
        ([OP, UNKNOWN], CAUTION),
        ([OP, CAUTION], CAUTION),
    ],
)
def test_rollup_policy(states: list[OperationalState], expected: OperationalState) -> None:
    assert rollup_chain_state(states) is expected


def test_apply_status_reports_changed_chains() -> None:
    store = ModelStore(clock=_Clock())
    store.set_available_chains(["A", "B"])
    store.set_subsystem_order("A", ["S1", "S2"])
    store.set_subsystem_order("B", ["S2"])

    assert store.apply_status("S1", OP) == ["A"]
    assert store.chain("A").state is CAUTION  # type: ignore[union-attr]
    assert store.chain("B").state is UNKNOWN  # type: ignore[union-attr]

    changed = store.apply_status("S2", OP)
    assert sorted(changed) == ["A", "B"]
    assert store.chain("A").state is OP  # type: ignore[union-attr]

    assert store.apply_status("S2", OP) == []


def test_chain_enabled_when_healthy_or_running() -> None:
    store = ModelStore()
    store.set_subsystem_order("A", ["S1"])
    chain = store.chain("A")
    assert chain is not None
    assert not chain.is_enabled

    store.set_running("A", True)
    assert chain.is_enabled

    store.set_running("A", False)
    store.apply_status("S1", FAILURE)
    assert not chain.is_enabled
    store.apply_status("S1", CAUTION)
    assert chain.is_enabled


def test_heartbeat_sweep_expires_after_timeout() -> None:
    clock = _Clock()
    store = ModelStore(clock=clock)
    store.set_available_chains(["A"])
    store.set_subsystem_order("A", ["S1"])
    store.apply_status("S1", OP)
    store.set_rate_mask("A", "S1", (1, 2, 3, 4, 5, 6))

    clock.now = 3.0
    assert store.sweep_heartbeats() == []

    clock.now = 3.5
    assert store.sweep_heartbeats() == ["S1"]
    assert store.available("S1").state is UNKNOWN  # type: ignore[union-attr]
    assert store.subsystem("A", "S1").rate_mask == EMPTY_RATE_MASK  # type: ignore[union-attr]
    assert store.chain("A").state is UNKNOWN  # type: ignore[union-attr]

    clock.now = 10.0
    assert store.sweep_heartbeats() == []


def test_set_available_chains_dedupes_and_reports_new_ids() -> None:
    store = ModelStore()
    assert store.set_available_chains(["A", "B", "A"]) == ["A", "B"]
    assert store.set_available_chains(["B", "C"]) == ["C"]
    assert store.chain_ids == ["B", "C"]


def test_subsystem_order_dedupes_and_reports_dropped() -> None:
    store = ModelStore()
    bound, dropped = store.set_subsystem_order("A", ["S1", "S2", "S1"])
    assert [s.id for s in bound] == ["S1", "S2"]
    assert dropped == []

    schema = decode_schema("Latitude,Longitude", DisplayType.PLOT)
    interp = Interpretation(display=DisplayType.PLOT, header="Latitude,Longitude")
    store.register_layer(LayerKey("A", "S2", "T1"), interp, schema)

    bound, dropped = store.set_subsystem_order("A", ["S1"])
    assert [s.id for s in bound] == ["S1"]
    assert dropped == [SubSystemKey("A", "S2")]
    assert store.layer(LayerKey("A", "S2", "T1")) is None
    # broadcasting entries outlive the binding
    assert store.available("S2") is not None


def test_add_subsystem_gets_default_endpoint() -> None:
    store = ModelStore()
    store.add_chain("A")
    store.apply_definition("S1", SubSystemDefinition(label="Radar", streams=["T1", "T2"]))

    subsystem = store.add_subsystem("A", "S1")

    assert subsystem.endpoint == Endpoint(protocol="MQTT", ip="127.0.0.1", port="1883", topics=["T1", "T2"])
    assert store.chain("A").subsystem_ids == ["S1"]  # type: ignore[union-attr]


def test_unbind_subsystem_queues_purge() -> None:
    store = ModelStore()
    store.set_subsystem_order("A", ["S1"])
    store.set_control("A", "S1", "gain", TextBoxControl(value="3"))
    store.set_control("A", "S1", "band", TextBoxControl(value="x"))
    schema = decode_schema("Latitude,Longitude", DisplayType.PLOT)
    store.register_layer(
        LayerKey("A", "S1", "T1"),
        Interpretation(display=DisplayType.PLOT, header="Latitude,Longitude"),
        schema,
    )

    assert store.unbind_subsystem("A", "S1")
    assert not store.unbind_subsystem("A", "S1")

    [purge] = store.purged_subsystems
    assert purge.key == SubSystemKey("A", "S1")
    assert purge.control_ids == ("band", "gain")
    assert purge.stream_keys == ("T1",)

    # re-binding cancels the pending clear
    store.bind_subsystem("A", "S1")
    assert store.purged_subsystems == []


def test_remove_last_chain_adds_a_fresh_one() -> None:
    store = ModelStore()
    store.set_available_chains(["A"])
    store.set_subsystem_order("A", ["S1"])

    store.remove_chain("A")

    assert store.purged_chains == ["A"]
    assert len(store.purged_subsystems) == 1
    [fresh] = store.chain_ids
    assert fresh != "A"
    assert len(fresh) == 32

    store.clear_purges()
    assert store.purged_chains == []
    assert store.purged_subsystems == []


def test_move_subsystem_clamps_at_ends() -> None:
    store = ModelStore()
    store.set_subsystem_order("A", ["S1", "S2", "S3"])

    assert not store.move_up("A", "S1")
    assert not store.move_down("A", "S3")
    assert store.move_down("A", "S1")
    assert store.chain("A").subsystem_ids == ["S2", "S1", "S3"]  # type: ignore[union-attr]
    assert store.move_up("A", "S3")
    assert store.chain("A").subsystem_ids == ["S2", "S3", "S1"]  # type: ignore[union-attr]
    assert not store.move_up("A", "missing")


def test_set_endpoint_keeps_selected_topic_while_still_offered() -> None:
    store = ModelStore()
    store.set_subsystem_order("A", ["S1"])
    store.set_endpoint("A", "S1", Endpoint(protocol="TCP", topics=["a", "b"]))
    assert store.select_topic("A", "S1", "b")
    assert not store.select_topic("A", "S1", "zz")

    store.set_endpoint("A", "S1", Endpoint(protocol="TCP", topics=["b", "c"]))
    assert store.subsystem("A", "S1").endpoint.selected_topic == "b"  # type: ignore[union-attr]

    store.set_endpoint("A", "S1", Endpoint(protocol="TCP", topics=["c"]))
    assert store.subsystem("A", "S1").endpoint.selected_topic is None  # type: ignore[union-attr]

    assert store.set_endpoint("A", "missing", Endpoint()) is None


def test_register_layer_schema_is_fixed_by_first_declaration() -> None:
    store = ModelStore()
    store.set_subsystem_order("A", ["S1"])
    key = LayerKey("A", "S1", "T1")
    first = Interpretation(display=DisplayType.PLOT, header="Latitude,Longitude")
    second = Interpretation(display=DisplayType.PLOT, header="Latitude,Longitude", refresh_period=2.0)
    other = Interpretation(display=DisplayType.PLOT, header="Azimuth,Range")

    record, change = store.register_layer(key, first, decode_schema(first.header, first.display))
    assert change is LayerChange.CREATED
    assert store.subsystem("A", "S1").stream_keys == {"T1"}  # type: ignore[union-attr]

    record, change = store.register_layer(key, second, decode_schema(second.header, second.display))
    assert change is LayerChange.REFRESHED
    assert record.interpretation == second

    record, change = store.register_layer(key, other, decode_schema(other.header, other.display))
    assert change is LayerChange.CONFLICT
    assert record.interpretation == second


def test_new_chain_ids_are_unique_hex() -> None:
    ids = {new_chain_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) == 32 and int(i, 16) >= 0 for i in ids)


def test_set_incoming_selects_only_offered_upstream_topic() -> None:
    store = ModelStore()
    store.set_subsystem_order("A", ["S1", "S2"])
    store.set_endpoint("A", "S1", Endpoint(protocol="MQTT", topics=["T1", "T2"]))

    assert store.set_incoming("A", "S2", IncomingEndpoint(protocol="MQTT", topics=["zz"], source="S1"))
    assert store.subsystem("A", "S1").endpoint.selected_topic is None  # type: ignore[union-attr]

    incoming = IncomingEndpoint(protocol="MQTT", topics=["T1"], source="S1")
    assert store.set_incoming("A", "S2", incoming)
    assert store.subsystem("A", "S1").endpoint.selected_topic == "T1"  # type: ignore[union-attr]
    assert store.subsystem("A", "S2").data_streams["T1"].incoming == incoming  # type: ignore[union-attr]


def test_stream_layout_cached_per_stream() -> None:
    store = ModelStore()
    store.set_subsystem_order("A", ["S1"])

    assert store.set_stream_layout(LayerKey("A", "S1", "T1"), ["int", "double"])
    assert not store.set_stream_layout(LayerKey("A", "S9", "T1"), ["int"])

    assert store.stream_layout("A", "S1", "T1") == ["int", "double"]
    assert store.stream_layout("A", "S1", "T2") is None
    assert store.stream_layout("A", "S1", None) is None

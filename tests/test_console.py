from __future__ import annotations

import json

import pytest

from chainview.config import ConsoleConfig
from chainview.console import ChainConsole
from chainview.exceptions import ChainViewError
from chainview.keys import LayerKey
from chainview.preferences import MemoryPreferenceStore
from chainview.render import InMemorySurface
from conftest import FakeTransport, ManualScheduler


def _console(transport: FakeTransport, scheduler: ManualScheduler) -> ChainConsole:
    return ChainConsole(
        ConsoleConfig(reload_delay=1.5),
        surface=InMemorySurface(),
        transport=transport,
        scheduler=scheduler,
        preferences=MemoryPreferenceStore(),
        clock=scheduler.clock,
    )


def _discover(transport: FakeTransport, chains: list[str], selected: str) -> None:
    transport.deliver("AvailableChains", json.dumps(chains))
    transport.deliver("SelectedChain", json.dumps({"id": selected, "isRunning": False}))


@pytest.mark.asyncio
async def test_context_manager_starts_and_stops(transport: FakeTransport, scheduler: ManualScheduler) -> None:
    async with _console(transport, scheduler) as console:
        assert transport.started
        assert transport.subscribed == ["AvailableChains"]
        assert LayerKey.world_map() in console.layers

    assert transport.stopped
    assert len(console.layers) == 0


def test_save_settings_suspends_publishes_and_reloads(transport: FakeTransport, scheduler: ManualScheduler) -> None:
    console = _console(transport, scheduler)
    console.start()
    _discover(transport, ["A"], "A")
    transport.deliver("Chains/A/Setup/SubSystems", json.dumps(["S1"]))

    console.save_settings()

    assert transport.unsubscribe_all_calls == 1
    assert console.router.subscriptions == frozenset()
    assert transport.topics() == [
        "AvailableChains",
        "Chains/A/Setup",
        "Chains/A/SubSystems/S1/Outgoing",
        "Chains/A/SubSystems/S1/Incoming",
        "Chains/A/Setup/SubSystems",
        "SelectedChain",
    ]

    scheduler.advance(1.5)
    assert console.router.reload_count == 1
    assert transport.unsubscribe_all_calls == 2
    assert console.store.chain_ids == []
    assert console.router.subscriptions == {"AvailableChains"}
    assert LayerKey.world_map() in console.layers


def test_add_and_remove_chains(transport: FakeTransport, scheduler: ManualScheduler) -> None:
    console = _console(transport, scheduler)
    console.start()
    _discover(transport, ["A"], "A")

    new_id = console.add_chain()
    assert console.store.chain_ids == ["A", new_id]

    console.remove_chain("A")
    assert console.store.chain_ids == [new_id]
    assert console.store.selected_chain_id == new_id
    assert console.store.purged_chains == ["A"]

    with pytest.raises(ChainViewError):
        console.remove_chain("missing")


def test_select_chain_and_running_publish_selection(transport: FakeTransport, scheduler: ManualScheduler) -> None:
    console = _console(transport, scheduler)
    console.start()

    with pytest.raises(ChainViewError):
        console.set_running(True)

    _discover(transport, ["A", "B"], "A")
    console.set_running(True)
    console.select_chain("B")

    assert [(m.topic, json.loads(m.payload)) for m in transport.published] == [
        ("SelectedChain", {"id": "A", "isRunning": True}),
        ("SelectedChain", {"id": "B", "isRunning": False}),
    ]
    # the local selection only changes through the broker echo
    assert console.store.selected_chain_id == "A"


def test_add_subsystem_requires_broadcasting_subsystem(transport: FakeTransport, scheduler: ManualScheduler) -> None:
    console = _console(transport, scheduler)
    console.start()
    _discover(transport, ["A"], "A")

    with pytest.raises(ChainViewError):
        console.add_subsystem("A", "S1")

    transport.deliver("AvailableSubSystems/S1/Definition", json.dumps({"label": "Radar", "streams": ["T1"]}))
    subsystem = console.add_subsystem("A", "S1")
    assert subsystem.endpoint.topics == ["T1"]

    assert console.select_topic("A", "S1", "T1")
    assert console.remove_subsystem("A", "S1")
    assert console.store.subsystems_of("A") == []


def test_edit_control_publishes_immediately(transport: FakeTransport, scheduler: ManualScheduler) -> None:
    console = _console(transport, scheduler)
    console.start()
    _discover(transport, ["A"], "A")
    transport.deliver("Chains/A/Setup/SubSystems", json.dumps(["S1"]))
    transport.deliver(
        "Chains/A/SubSystems/S1/Controls/gain",
        json.dumps({"type": "Slider", "label": "Gain", "min": 0, "max": 10, "value": 2}),
    )

    control = console.edit_control("A", "S1", "gain", 42)

    assert control.value == 10  # type: ignore[union-attr]
    [message] = transport.published
    assert message.topic == "Chains/A/SubSystems/S1/Controls/gain"
    assert json.loads(message.payload)["value"] == 10

    with pytest.raises(ChainViewError):
        console.edit_control("A", "S1", "missing", 1)


def test_day_mode_switches_tile_source(transport: FakeTransport, scheduler: ManualScheduler) -> None:
    surface = InMemorySurface()
    console = ChainConsole(
        ConsoleConfig(tile_url_light="light", tile_url_dark="dark"),
        surface=surface,
        transport=transport,
        scheduler=scheduler,
    )
    console.start()
    pane = surface.panes["Base.Setup.WorldMap.tileViews"]
    assert pane.tile_url == "dark"

    console.set_day_mode(True)
    assert pane.tile_url == "light"
    assert console.day_mode

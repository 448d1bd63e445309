"""Deterministic state rollup policy.

This module contains *no* payload parsing; callers hand it already-decoded
states and timestamps.
"""

from __future__ import annotations

from collections.abc import Iterable

from chainview.models.chain import OperationalState


def rollup_chain_state(states: Iterable[OperationalState]) -> OperationalState:
    """Combine subsystem states into the chain's aggregate state.

    Policy, first match wins:
    - no subsystems, or all unknown: ``UNKNOWN``
    - all operational: ``OPERATIONAL``
    - any failure: ``FAILURE``
    - otherwise: ``CAUTION``
    """
    values = list(states)
    if all(state is OperationalState.UNKNOWN for state in values):
        return OperationalState.UNKNOWN
    if all(state is OperationalState.OPERATIONAL for state in values):
        return OperationalState.OPERATIONAL
    if any(state is OperationalState.FAILURE for state in values):
        return OperationalState.FAILURE
    return OperationalState.CAUTION


def is_chain_enabled(state: OperationalState, is_running: bool) -> bool:
    """A chain can be toggled when it is healthy enough or already running."""
    return state in (OperationalState.OPERATIONAL, OperationalState.CAUTION) or is_running


def heartbeat_expired(now: float, last_heard: float | None, timeout: float) -> bool:
    if last_heard is None:
        return True
    return now - last_heard > timeout

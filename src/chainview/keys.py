"""Composite identifiers for subsystems and layers."""

from __future__ import annotations

from typing import NamedTuple

from chainview._constants import (
    BASE_CHAIN_KEY,
    ROSETTE_STREAM_KEY,
    SETUP_SUBSYSTEM_KEY,
    WORLD_MAP_STREAM_KEY,
)


class SubSystemKey(NamedTuple):
    chain_id: str
    subsystem_id: str


class LayerKey(NamedTuple):
    """Identity of one layer: ``(chain id, subsystem id, stream key)``."""

    chain_id: str
    subsystem_id: str
    stream_key: str

    @property
    def layer_id(self) -> str:
        """Dotted form used for pane names and preference keys."""
        return f"{self.chain_id}.{self.subsystem_id}.{self.stream_key}"

    @property
    def subsystem(self) -> SubSystemKey:
        return SubSystemKey(self.chain_id, self.subsystem_id)

    @classmethod
    def rosette(cls, chain_id: str) -> LayerKey:
        return cls(chain_id, SETUP_SUBSYSTEM_KEY, ROSETTE_STREAM_KEY)

    @classmethod
    def world_map(cls) -> LayerKey:
        return cls(BASE_CHAIN_KEY, SETUP_SUBSYSTEM_KEY, WORLD_MAP_STREAM_KEY)

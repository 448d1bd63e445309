"""Topic grammar for the chain/subsystem broker namespace.

Topics are tokenized on ``/`` and matched segment by segment::

    AvailableChains
    SelectedChain
    AvailableSubSystems/{subSystemId}/{Status|Definition}
    Chains/{chainId}/Setup
    Chains/{chainId}/Setup/SubSystems
    Chains/{chainId}/SubSystems/{subSystemId}/{Outgoing|Incoming|Rates}
    Chains/{chainId}/SubSystems/{subSystemId}/Controls/{controlId}
    Chains/{chainId}/SubSystems/{subSystemId}/Data/{streamKey}/{Interpretation|Records}

The builder functions below are the only place topic strings are assembled.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from chainview._constants import AVAILABLE_CHAINS_TOPIC, SELECTED_CHAIN_TOPIC
from chainview.exceptions import TopicError

_FORBIDDEN_ID_CHARS = frozenset("/+#")


class TopicKind(StrEnum):
    AVAILABLE_CHAINS = "available_chains"
    SELECTED_CHAIN = "selected_chain"
    SUBSYSTEM_STATUS = "subsystem_status"
    SUBSYSTEM_DEFINITION = "subsystem_definition"
    CHAIN_SETUP = "chain_setup"
    CHAIN_SUBSYSTEMS = "chain_subsystems"
    OUTGOING = "outgoing"
    INCOMING = "incoming"
    RATES = "rates"
    CONTROL = "control"
    INTERPRETATION = "interpretation"
    RECORDS = "records"


@dataclass(frozen=True, slots=True)
class ParsedTopic:
    """Structured view of a broker topic."""

    kind: TopicKind
    chain_id: str | None = None
    subsystem_id: str | None = None
    control_id: str | None = None
    stream_key: str | None = None


def is_valid_id(value: str) -> bool:
    """Return ``True`` when *value* can be embedded as a single topic level."""
    return bool(value) and not (_FORBIDDEN_ID_CHARS & set(value))


def _require_id(value: str, what: str) -> str:
    if not is_valid_id(value):
        raise TopicError(f"Invalid {what}: {value!r}", topic=value)
    return value


_SUBSYSTEM_LEAVES: dict[str, TopicKind] = {
    "Outgoing": TopicKind.OUTGOING,
    "Incoming": TopicKind.INCOMING,
    "Rates": TopicKind.RATES,
}

_DATA_LEAVES: dict[str, TopicKind] = {
    "Interpretation": TopicKind.INTERPRETATION,
    "Records": TopicKind.RECORDS,
}


def parse_topic(topic: str) -> ParsedTopic:
    """Parse *topic* into a :class:`ParsedTopic`.

    Raises :class:`~chainview.exceptions.TopicError` when the topic does not
    belong to the grammar or one of its identifiers is empty or contains a
    wildcard/separator character.
    """
    parts = topic.split("/")
    try:
        return _parse_parts(parts)
    except TopicError as exc:
        raise TopicError(str(exc), topic=topic) from None


def _parse_parts(parts: list[str]) -> ParsedTopic:
    head = parts[0]
    count = len(parts)

    if count == 1 and head == AVAILABLE_CHAINS_TOPIC:
        return ParsedTopic(TopicKind.AVAILABLE_CHAINS)
    if count == 1 and head == SELECTED_CHAIN_TOPIC:
        return ParsedTopic(TopicKind.SELECTED_CHAIN)

    if head == "AvailableSubSystems" and count == 3:
        subsystem_id = _require_id(parts[1], "subsystem id")
        if parts[2] == "Status":
            return ParsedTopic(TopicKind.SUBSYSTEM_STATUS, subsystem_id=subsystem_id)
        if parts[2] == "Definition":
            return ParsedTopic(TopicKind.SUBSYSTEM_DEFINITION, subsystem_id=subsystem_id)
        raise TopicError(f"Unknown AvailableSubSystems leaf: {parts[2]!r}")

    if head != "Chains" or count < 3:
        raise TopicError("Topic outside the chain namespace")

    chain_id = _require_id(parts[1], "chain id")

    if parts[2] == "Setup":
        if count == 3:
            return ParsedTopic(TopicKind.CHAIN_SETUP, chain_id=chain_id)
        if count == 4 and parts[3] == "SubSystems":
            return ParsedTopic(TopicKind.CHAIN_SUBSYSTEMS, chain_id=chain_id)
        raise TopicError("Unknown chain setup topic")

    if parts[2] != "SubSystems" or count < 5:
        raise TopicError("Unknown chain topic")

    subsystem_id = _require_id(parts[3], "subsystem id")
    leaf = parts[4]

    if count == 5 and leaf in _SUBSYSTEM_LEAVES:
        return ParsedTopic(_SUBSYSTEM_LEAVES[leaf], chain_id=chain_id, subsystem_id=subsystem_id)

    if leaf == "Controls" and count == 6:
        return ParsedTopic(
            TopicKind.CONTROL,
            chain_id=chain_id,
            subsystem_id=subsystem_id,
            control_id=_require_id(parts[5], "control id"),
        )

    if leaf == "Data" and count == 7 and parts[6] in _DATA_LEAVES:
        return ParsedTopic(
            _DATA_LEAVES[parts[6]],
            chain_id=chain_id,
            subsystem_id=subsystem_id,
            stream_key=_require_id(parts[5], "stream key"),
        )

    raise TopicError("Unknown subsystem topic")


# ------------------------------------------------------------------
# Builders
# ------------------------------------------------------------------


def status_topic(subsystem_id: str) -> str:
    return f"AvailableSubSystems/{_require_id(subsystem_id, 'subsystem id')}/Status"


def definition_topic(subsystem_id: str) -> str:
    return f"AvailableSubSystems/{_require_id(subsystem_id, 'subsystem id')}/Definition"


def chain_setup_topic(chain_id: str) -> str:
    return f"Chains/{_require_id(chain_id, 'chain id')}/Setup"


def chain_setup_pattern(chain_id: str) -> str:
    """Multi-level wildcard covering a chain's setup subtree."""
    return f"{chain_setup_topic(chain_id)}/#"


def chain_subsystems_topic(chain_id: str) -> str:
    return f"{chain_setup_topic(chain_id)}/SubSystems"


def _subsystem_root(chain_id: str, subsystem_id: str) -> str:
    return f"Chains/{_require_id(chain_id, 'chain id')}/SubSystems/{_require_id(subsystem_id, 'subsystem id')}"


def outgoing_topic(chain_id: str, subsystem_id: str) -> str:
    return f"{_subsystem_root(chain_id, subsystem_id)}/Outgoing"


def incoming_topic(chain_id: str, subsystem_id: str) -> str:
    return f"{_subsystem_root(chain_id, subsystem_id)}/Incoming"


def rates_topic(chain_id: str, subsystem_id: str) -> str:
    return f"{_subsystem_root(chain_id, subsystem_id)}/Rates"


def control_topic(chain_id: str, subsystem_id: str, control_id: str) -> str:
    return f"{_subsystem_root(chain_id, subsystem_id)}/Controls/{_require_id(control_id, 'control id')}"


def controls_pattern(chain_id: str, subsystem_id: str) -> str:
    return f"{_subsystem_root(chain_id, subsystem_id)}/Controls/#"


def interpretation_topic(chain_id: str, subsystem_id: str, stream_key: str) -> str:
    return f"{_subsystem_root(chain_id, subsystem_id)}/Data/{_require_id(stream_key, 'stream key')}/Interpretation"


def interpretation_pattern(chain_id: str, subsystem_id: str) -> str:
    return f"{_subsystem_root(chain_id, subsystem_id)}/Data/+/Interpretation"


def records_topic(chain_id: str, subsystem_id: str, stream_key: str) -> str:
    return f"{_subsystem_root(chain_id, subsystem_id)}/Data/{_require_id(stream_key, 'stream key')}/Records"

"""chainview - operator console core for broker-driven processing chains."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("chainview")
except PackageNotFoundError:
    __version__ = "0+local"
from chainview.config import ConsoleConfig
from chainview.console import ChainConsole
from chainview.exceptions import (
    BrokerTransportError,
    ChainViewError,
    ConfigError,
    PayloadError,
    SchemaError,
    TopicError,
)
from chainview.gateway import PublishGateway
from chainview.keys import LayerKey, SubSystemKey
from chainview.layers import LayerRegistry
from chainview.models import (
    ChainSetup,
    Control,
    DisplayType,
    Endpoint,
    IncomingEndpoint,
    Interpretation,
    OperationalState,
    SelectedChain,
)
from chainview.preferences import JsonPreferenceStore, LayerPreference, MemoryPreferenceStore, OpacityLevel
from chainview.render import InMemorySurface, RenderSurface
from chainview.router import RouterPhase, TopicRouter
from chainview.scheduling import AsyncioScheduler, HandleTable, PollHandle
from chainview.schema import PlacementMode, RecordSchema, decode_schema
from chainview.state.store import ModelStore
from chainview.transport import BrokerTransport, PahoBrokerTransport

__all__ = [
    "__version__",
    "AsyncioScheduler",
    "BrokerTransport",
    "BrokerTransportError",
    "ChainConsole",
    "ChainSetup",
    "ChainViewError",
    "ConfigError",
    "ConsoleConfig",
    "Control",
    "DisplayType",
    "Endpoint",
    "HandleTable",
    "InMemorySurface",
    "IncomingEndpoint",
    "Interpretation",
    "JsonPreferenceStore",
    "LayerKey",
    "LayerPreference",
    "LayerRegistry",
    "MemoryPreferenceStore",
    "ModelStore",
    "OpacityLevel",
    "OperationalState",
    "PahoBrokerTransport",
    "PayloadError",
    "PlacementMode",
    "PollHandle",
    "PublishGateway",
    "RecordSchema",
    "RenderSurface",
    "RouterPhase",
    "SchemaError",
    "SelectedChain",
    "SubSystemKey",
    "TopicError",
    "TopicRouter",
    "decode_schema",
]

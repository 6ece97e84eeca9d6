"""Client for the Archipelago multiworld network protocol."""

from .bounce import Bounce, Bounced, DeathLink
from .client import Client, ClientConfig, ClientReceiver, ClientSender, DeathLinkOptions
from .codec import decode, encode
from .constants import (
    ClientStatus,
    HintStatus,
    ItemsHandlingFlags,
    NetworkItemFlags,
    Permission,
    RichMessageColor,
    SlotType,
    normalize_items_handling,
)
from .datapackage import DataPackageObject, GameData
from .errors import (
    ArchipelagoError,
    ConnectionClosedError,
    EncodeError,
    IllegalResponseError,
    MalformedMessageError,
    NonTextFrameError,
    SlotRefusedError,
    TransportError,
)
from .messages import *  # noqa: F403
from .models import NetworkItem, NetworkPlayer, NetworkSlot, NetworkVersion, network_version
from .rich_message import (
    ColorPart,
    EntranceNamePart,
    ItemIdPart,
    ItemNamePart,
    LocationIdPart,
    LocationNamePart,
    PlayerIdPart,
    PlayerNamePart,
    RichMessagePart,
    TextPart,
)

__version__ = "0.1.0"

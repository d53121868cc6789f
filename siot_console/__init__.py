"""Administrative console for Siotchain nodes."""

__version__ = "0.1.0"

from .accounts import (
    Account,
    AccountUnlocker,
    AmbiguousAddressError,
    DecryptError,
    PasswordSource,
    RemoteAccountManager,
    UnlockError,
    UnlockResult,
)
from .codec import (
    AddressFormatError,
    AmountFormatError,
    CodecError,
    decode_address,
    decode_amount,
    encode_address,
    scale_for_display,
)
from .commands import COMMANDS, Command, CommandSpec
from .config import ConfigurationError, RPCConfig, load_rpc_config
from .dispatcher import RequestDispatcher
from .rpc_client import RPCError, RPCTransportError, RequestPayload, SiotRPCClient

__all__ = [
    "__version__",
    "Account",
    "AccountUnlocker",
    "AmbiguousAddressError",
    "DecryptError",
    "PasswordSource",
    "RemoteAccountManager",
    "UnlockError",
    "UnlockResult",
    "AddressFormatError",
    "AmountFormatError",
    "CodecError",
    "decode_address",
    "decode_amount",
    "encode_address",
    "scale_for_display",
    "COMMANDS",
    "Command",
    "CommandSpec",
    "ConfigurationError",
    "RPCConfig",
    "load_rpc_config",
    "RequestDispatcher",
    "RPCError",
    "RPCTransportError",
    "RequestPayload",
    "SiotRPCClient",
]

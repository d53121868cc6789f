"""Request dispatcher for the Siotchain console.

A request is one line of operator input: a command name followed by
space-separated positional arguments. The dispatcher validates the arity
against :data:`siot_console.commands.COMMANDS`, decodes every argument, calls
the matching node operation and prints the outcome. Failures never escape
:meth:`RequestDispatcher.handle`; each one is reported as a single line and
the session carries on.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Protocol, Sequence

from .codec import (
    CodecError,
    decode_address,
    decode_amount,
    encode_address,
    scale_for_display,
)
from .commands import ArgKind, Command, CommandSpec, lookup
from .rpc_client import RPCError, RPCTransportError

logger = logging.getLogger(__name__)

EMPTY_REQUEST_MESSAGE = "request is empty, you need to input a request"
UNDEFINED_COMMAND_MESSAGE = "undefined command"


class NodeClient(Protocol):
    """Remote operations the console needs from a node."""

    def node_info(self) -> Dict[str, Any]: ...

    def list_accounts(self) -> list[bytes]: ...

    def new_account(self, password: str) -> bytes: ...

    def unlock_account(self, address: bytes, password: str) -> bool: ...

    def get_balance(self, address: bytes) -> int: ...

    def add_peer(self, url: str) -> bool: ...

    def peers(self) -> list[Dict[str, Any]]: ...

    def set_miner(self, address: bytes) -> bool: ...

    def start_mining(self) -> bool: ...

    def stop_mining(self) -> bool: ...

    def send_asset(self, sender: bytes, receiver: bytes, value: int) -> bytes: ...


@dataclass
class ParsedCommand:
    name: str
    args: list[str]


def parse_request(raw_line: str) -> ParsedCommand:
    """Trim, lower-case and split ``raw_line`` on single spaces."""

    # Arguments are lower-cased along with the command name, passwords included.
    tokens = raw_line.strip().lower().split(" ")
    return ParsedCommand(name=tokens[0], args=tokens[1:])


_DECODERS: Dict[ArgKind, Callable[[str], Any]] = {
    ArgKind.ADDRESS: decode_address,
    ArgKind.PASSWORD: str,
    ArgKind.PEER_URL: str,
    ArgKind.AMOUNT: decode_amount,
}


def decode_arguments(spec: CommandSpec, args: Sequence[str]) -> list[Any]:
    """Decode ``args`` according to the parameter kinds declared in ``spec``.

    Raises :class:`CodecError` whose message names the failing parameter.
    """

    decoded = []
    for param, raw in zip(spec.params, args):
        try:
            decoded.append(_DECODERS[param.kind](raw))
        except CodecError as exc:
            raise type(exc)(f"invalid {param.name}: {exc}") from exc
    return decoded


class RequestDispatcher:
    """Turn operator requests into node calls and print the results."""

    def __init__(
        self,
        client: NodeClient,
        *,
        network_id: int = 1,
        out: Callable[[str], None] = print,
    ) -> None:
        self.client = client
        self.network_id = network_id
        self.out = out
        self.handlers: Dict[Command, Callable[..., None]] = {
            Command.GET_NODE_INFO: self._get_node_info,
            Command.GET_NODE_ID: self._get_node_id,
            Command.GET_ACCOUNTS: self._get_accounts,
            Command.GET_LAST_ACCOUNT: self._get_last_account,
            Command.GET_NEW_ACCOUNT: self._get_new_account,
            Command.UNLOCK_ACCOUNT: self._unlock_account,
            Command.GET_BALANCE: self._get_balance,
            Command.CONNECT_PEER: self._connect_peer,
            Command.GET_PEERS: self._get_peers,
            Command.SET_MINER: self._set_miner,
            Command.START_MINE: self._start_mine,
            Command.STOP_MINE: self._stop_mine,
            Command.SEND_ASSET: self._send_asset,
        }
        missing = set(Command) - set(self.handlers)
        if missing:  # pragma: no cover - guards edits to the command table
            raise RuntimeError(f"no handler for commands: {sorted(c.value for c in missing)}")

    def handle(self, raw_line: str) -> None:
        """Dispatch a single request line."""

        if not raw_line.strip():
            self.out(EMPTY_REQUEST_MESSAGE)
            return

        parsed = parse_request(raw_line)
        spec = lookup(parsed.name)
        if spec is None:
            self.out(UNDEFINED_COMMAND_MESSAGE)
            return
        if len(parsed.args) != spec.arity:
            self.out(spec.usage)
            return

        try:
            arguments = decode_arguments(spec, parsed.args)
        except CodecError as exc:
            self.out(str(exc))
            return

        logger.debug("Dispatching %s", spec.name)
        try:
            self.handlers[spec.command](*arguments)
        except (RPCError, RPCTransportError, CodecError) as exc:
            logger.debug("%s failed", spec.name, exc_info=True)
            self.out(str(exc))

    # Handlers -------------------------------------------------------------

    def _get_node_info(self) -> None:
        info = self.client.node_info()
        display = {
            "ID": info.get("id", ""),
            "URL": info.get("siot", info.get("url", "")),
            "ListenAddr": info.get("listenAddr", ""),
            "SiotNetwork": str(self.network_id),
        }
        self.out(json.dumps(display, indent=2))

    def _get_node_id(self) -> None:
        self.out(str(self.client.node_info().get("id", "")))

    def _get_accounts(self) -> None:
        accounts = self.client.list_accounts()
        if not accounts:
            self.out("[]")
            return
        for address in accounts:
            self.out(encode_address(address))

    def _get_last_account(self) -> None:
        accounts = self.client.list_accounts()
        if not accounts:
            self.out("[]")
            return
        self.out(encode_address(accounts[-1]))

    def _get_new_account(self, password: str) -> None:
        self.out(encode_address(self.client.new_account(password)))

    def _unlock_account(self, address: bytes, password: str) -> None:
        if self.client.unlock_account(address, password):
            self.out("successfully unlock account")
        else:
            self.out("failed to unlock account")

    def _get_balance(self, address: bytes) -> None:
        balance = self.client.get_balance(address)
        self.out(f"balance: {scale_for_display(balance)}")

    def _connect_peer(self, url: str) -> None:
        self.client.add_peer(url)
        self.out("connected to peer")

    def _get_peers(self) -> None:
        peers = self.client.peers()
        if not peers:
            self.out("no peer node existed")
            return
        self.out("peer id list: ")
        for peer in peers:
            self.out(str(peer.get("id", "")))

    def _set_miner(self, address: bytes) -> None:
        self.client.set_miner(address)
        self.out("successfully set a miner")

    def _start_mine(self) -> None:
        self.client.start_mining()
        self.out("mining started")

    def _stop_mine(self) -> None:
        self.client.stop_mining()
        self.out("mining stopped")

    def _send_asset(self, sender: bytes, receiver: bytes, amount: int) -> None:
        tx_hash = self.client.send_asset(sender, receiver, amount)
        self.out(tx_hash.hex())

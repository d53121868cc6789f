"""Command table for the Siotchain console.

Adding a command means one entry in :data:`COMMANDS` and one handler in
:class:`siot_console.dispatcher.RequestDispatcher`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class ArgKind(Enum):
    """How a positional argument is decoded before it reaches the node."""

    ADDRESS = "address"
    PASSWORD = "password"
    PEER_URL = "peer-url"
    AMOUNT = "amount"


class Command(str, Enum):
    GET_NODE_INFO = "getnodeinfo"
    GET_NODE_ID = "getnodeid"
    GET_ACCOUNTS = "getaccounts"
    GET_LAST_ACCOUNT = "getlastaccount"
    GET_NEW_ACCOUNT = "getnewaccount"
    UNLOCK_ACCOUNT = "unlockaccount"
    GET_BALANCE = "getbalance"
    CONNECT_PEER = "connectpeer"
    GET_PEERS = "getpeers"
    SET_MINER = "setminer"
    START_MINE = "startmine"
    STOP_MINE = "stopmine"
    SEND_ASSET = "sendasset"


@dataclass(frozen=True)
class Param:
    name: str
    kind: ArgKind


@dataclass(frozen=True)
class CommandSpec:
    """Name, positional parameters and help text of one console command."""

    command: Command
    params: tuple[Param, ...]
    summary: str

    @property
    def name(self) -> str:
        return self.command.value

    @property
    def arity(self) -> int:
        return len(self.params)

    @property
    def usage(self) -> str:
        if not self.params:
            return f"incorrect format: {self.name} has no params"
        placeholders = " ".join(f"[{param.name}]" for param in self.params)
        return f"incorrect format: should be {self.name} {placeholders}"


_ADDRESS = Param("address", ArgKind.ADDRESS)
_PASSWORD = Param("password", ArgKind.PASSWORD)

COMMANDS: Mapping[str, CommandSpec] = MappingProxyType(
    {
        spec.name: spec
        for spec in (
            CommandSpec(Command.GET_NODE_INFO, (), "show node identity, network and listen address"),
            CommandSpec(Command.GET_NODE_ID, (), "show the node identity"),
            CommandSpec(Command.GET_ACCOUNTS, (), "list all known account addresses"),
            CommandSpec(Command.GET_LAST_ACCOUNT, (), "show the most recently created account"),
            CommandSpec(Command.GET_NEW_ACCOUNT, (_PASSWORD,), "create an account protected by a password"),
            CommandSpec(Command.UNLOCK_ACCOUNT, (_ADDRESS, _PASSWORD), "unlock an account"),
            CommandSpec(Command.GET_BALANCE, (_ADDRESS,), "show the balance of an account"),
            CommandSpec(
                Command.CONNECT_PEER,
                (Param("url of the peer", ArgKind.PEER_URL),),
                "ask the node to dial a peer",
            ),
            CommandSpec(Command.GET_PEERS, (), "list connected peer ids"),
            CommandSpec(Command.SET_MINER, (_ADDRESS,), "set the mining beneficiary"),
            CommandSpec(Command.START_MINE, (), "start mining"),
            CommandSpec(Command.STOP_MINE, (), "stop mining"),
            CommandSpec(
                Command.SEND_ASSET,
                (
                    Param("sender", ArgKind.ADDRESS),
                    Param("receiver", ArgKind.ADDRESS),
                    Param("amount", ArgKind.AMOUNT),
                ),
                "transfer an amount between accounts",
            ),
        )
    }
)

EXIT_COMMAND = "exit"


def lookup(name: str) -> CommandSpec | None:
    """Return the spec registered under ``name`` (case-insensitive)."""

    return COMMANDS.get(name.lower())


def arity_of(name: str) -> int | None:
    spec = lookup(name)
    return spec.arity if spec is not None else None


def format_help() -> str:
    lines = []
    for spec in COMMANDS.values():
        signature = " ".join([spec.name, *(f"<{param.name}>" for param in spec.params)])
        lines.append(f"  {signature:<44} {spec.summary}")
    lines.append(f"  {EXIT_COMMAND:<44} leave the console")
    return "\n".join(lines)

"""RPC client for interacting with a Siotchain node."""

from __future__ import annotations

"""Typed JSON-RPC client for Siotchain nodes.

Each helper maps directly to one remote method exposed by the node and returns
the decoded result: addresses and hashes come back as ``bytes``, balances as
``int``. Every parameter is sent as a string, mirroring what the console reads
from the operator. No node logic lives here; the client forwards requests and
surfaces errors clearly.
"""

import itertools
import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Sequence

import requests
from requests import RequestException, Response

from .codec import decode_hex_bytes, decode_quantity, encode_address, encode_quantity
from .config import ConfigurationError, RPCConfig, load_rpc_config

logger = logging.getLogger(__name__)

JSONRPC_VERSION = "2.0"


class RPCError(RuntimeError):
    """Raised when the Siotchain node responds with an RPC error."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RequestPayload:
    """Wire-level description of a single JSON-RPC call."""

    method: str
    params: tuple[str, ...]
    id: int
    jsonrpc: str = JSONRPC_VERSION

    def to_json(self) -> str:
        body = asdict(self)
        body["params"] = list(self.params)
        return json.dumps(body)


class SiotRPCClient:
    """Typed JSON-RPC client for a Siotchain node's HTTP endpoint.

    One ``requests.Session`` is opened per client and reused for every call.
    Connection defaults can be overridden via ``SIOT_RPC_HOST``,
    ``SIOT_RPC_PORT`` and friends, or the ``rpc`` section of
    ``~/.siot-console.yaml``.
    """

    def __init__(self, config: RPCConfig) -> None:
        self.config = config
        self._session = requests.Session()
        self._ids = itertools.count(1)

    @classmethod
    def from_env(cls) -> "SiotRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_rpc_config())

    @property
    def url(self) -> str:
        return self.config.base_url

    def build_payload(self, method: str, params: Sequence[str] = ()) -> RequestPayload:
        return RequestPayload(method=method, params=tuple(params), id=next(self._ids))

    def call(self, method: str, params: Sequence[str] = ()) -> Any:
        """Perform a JSON-RPC request."""

        payload = self.build_payload(method, params)
        logger.debug("RPC call %s id=%s", method, payload.id)
        try:
            response = self._session.post(
                self.url,
                data=payload.to_json(),
                headers={"content-type": "application/json"},
                auth=self.config.auth,
                timeout=self.config.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                f"RPC connection to {self.url} failed. Ensure the Siotchain node is running "
                "with its HTTP-RPC server enabled and --rpcip/--rpcport point to it."
            ) from exc
        self._raise_for_status(response)
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned malformed JSON")
        if result.get("error"):
            error = result["error"]
            if not isinstance(error, dict):
                raise RPCError(-1, str(error))
            raise RPCError(
                error.get("code", -1), error.get("message", "unknown"), error.get("data")
            )
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if response.ok:
            return
        # JSON-RPC errors may arrive with a 500 status; prefer the structured body.
        try:
            err_body = response.json()
        except ValueError:
            err_body = None
        if isinstance(err_body, dict) and isinstance(err_body.get("error"), dict):
            error = err_body["error"]
            raise RPCError(
                error.get("code", -1), error.get("message", "unknown"), error.get("data")
            )
        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        if response.status_code == 401:
            raise RPCTransportError(
                "Unauthorized (401). Ensure SIOT_RPC_USER/SIOT_RPC_PASSWORD (or your "
                ".siot-console.yaml) contain valid credentials.",
                status_code=response.status_code,
            )
        raise RPCTransportError(
            f"RPC server returned HTTP {response.status_code}; check --rpcip/--rpcport "
            "and the SIOT_RPC_* settings.",
            status_code=response.status_code,
        )

    # Convenience wrappers -------------------------------------------------

    def node_info(self) -> Dict[str, Any]:
        result = self.call("manage_nodeInfo")
        if not isinstance(result, dict):
            raise RPCTransportError("manage_nodeInfo returned malformed data")
        return result

    def list_accounts(self) -> list[bytes]:
        return [decode_hex_bytes(item) for item in self.call("user_listAccounts") or []]

    def new_account(self, password: str) -> bytes:
        return decode_hex_bytes(self.call("user_newAccount", [password]))

    def unlock_account(self, address: bytes, password: str, key_url: str | None = None) -> bool:
        """Unlock ``address``; ``key_url`` picks one key file when several share it."""

        params = [encode_address(address), password]
        if key_url:
            params.append(key_url)
        return bool(self.call("user_unlockAccount", params))

    def get_balance(self, address: bytes, block: str = "latest") -> int:
        return decode_quantity(self.call("siot_getBalance", [encode_address(address), block]))

    def add_peer(self, url: str) -> bool:
        return bool(self.call("manage_addPeer", [url]))

    def peers(self) -> list[Dict[str, Any]]:
        result = self.call("manage_peers") or []
        if not isinstance(result, list) or not all(isinstance(peer, dict) for peer in result):
            raise RPCTransportError("manage_peers returned malformed data")
        return result

    def set_miner(self, address: bytes) -> bool:
        return bool(self.call("miner_setMiner", [encode_address(address)]))

    def start_mining(self) -> bool:
        return bool(self.call("miner_start"))

    def stop_mining(self) -> bool:
        return bool(self.call("miner_stop"))

    def send_asset(self, sender: bytes, receiver: bytes, value: int) -> bytes:
        params = [encode_address(sender), encode_address(receiver), encode_quantity(value)]
        return decode_hex_bytes(self.call("siot_sendAsset", params))


__all__ = [
    "ConfigurationError",
    "RPCError",
    "RPCTransportError",
    "RequestPayload",
    "SiotRPCClient",
]

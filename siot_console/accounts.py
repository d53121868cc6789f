"""Account unlocking for node startup.

:class:`AccountUnlocker` resolves an account identifier (a hex address or an
index into the account list), then tries up to :data:`MAX_UNLOCK_TRIALS`
passwords. When several key files share one address the account layer raises
:class:`AmbiguousAddressError`; the unlocker then tests the same password
against every candidate and keeps the first one that opens. Unrecoverable
outcomes are raised as :class:`UnlockError` so that the caller decides whether
the process ends.
"""

from __future__ import annotations

import getpass
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol, Sequence

from .codec import encode_address, hex_to_address, is_hex_address
from .rpc_client import RPCError, RPCTransportError

logger = logging.getLogger(__name__)

MAX_UNLOCK_TRIALS = 3
DECRYPT_ERROR_MESSAGE = "could not decrypt key with given passphrase"


@dataclass(frozen=True)
class Account:
    address: bytes
    url: str = ""

    @property
    def hex(self) -> str:
        return encode_address(self.address)


class AccountError(RuntimeError):
    """Base class for failures reported by an account manager."""


class DecryptError(AccountError):
    """The password did not open the key."""

    def __init__(self, message: str = DECRYPT_ERROR_MESSAGE) -> None:
        super().__init__(message)


class AmbiguousAddressError(AccountError):
    """Several stored keys match one address."""

    def __init__(self, address: bytes, matches: Sequence[Account]) -> None:
        self.address = address
        self.matches = list(matches)
        files = ", ".join(match.url for match in self.matches)
        super().__init__(f"multiple keys match address {encode_address(address)} ({files})")


class AccountBackendError(AccountError):
    """The account layer failed for a reason unrelated to the password."""


class AccountManager(Protocol):
    def accounts(self) -> list[Account]: ...

    def unlock(self, account: Account, password: str) -> None: ...


class UnlockError(RuntimeError):
    """Raised when an account cannot be unlocked; fatal at startup."""


class AccountResolutionError(UnlockError):
    pass


class UnlockFailedError(UnlockError):
    pass


class PassphraseUnavailableError(UnlockError):
    pass


class NoMatchingKeyError(UnlockError):
    def __init__(self, address: bytes, matches: Sequence[Account]) -> None:
        self.address = address
        self.matches = list(matches)
        files = ", ".join(match.url for match in self.matches)
        super().__init__(
            f"None of the listed files could be unlocked for {encode_address(address)}: {files}"
        )


def resolve_account(manager: AccountManager, identifier: str) -> Account:
    """Map a hex address or a non-negative key index to an :class:`Account`."""

    if is_hex_address(identifier):
        return Account(address=hex_to_address(identifier))
    if not (identifier.isascii() and identifier.isdigit()):
        raise AccountResolutionError(f"invalid account address or index {identifier!r}")
    index = int(identifier)
    try:
        known = manager.accounts()
    except AccountError as exc:
        raise AccountResolutionError(f"Could not list accounts: {exc}") from exc
    if index >= len(known):
        raise AccountResolutionError(
            f"account index {index} out of range ({len(known)} accounts known)"
        )
    return known[index]


class PasswordSource:
    """Hand out passwords from a preloaded list, or prompt for them."""

    def __init__(
        self,
        passwords: Sequence[str] | None = None,
        *,
        prompt_password: Callable[[str], str] | None = None,
        out: Callable[[str], None] = print,
    ) -> None:
        self.passwords = list(passwords or [])
        self._prompt_password = prompt_password or getpass.getpass
        self._out = out

    def get(self, prompt: str, index: int) -> str:
        if self.passwords:
            if index < len(self.passwords):
                return self.passwords[index]
            return self.passwords[-1]
        if prompt:
            self._out(prompt)
        try:
            return self._prompt_password("Passphrase: ")
        except EOFError as exc:
            raise PassphraseUnavailableError(
                "Failed to read passphrase: no more input on the terminal"
            ) from exc


class UnlockState(Enum):
    TRYING = "trying"
    AMBIGUOUS = "ambiguous"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass
class UnlockResult:
    account: Account
    password: str


@dataclass
class UnlockAttempt:
    """Transient state of one account's unlock loop."""

    identifier: str
    index: int
    account: Account
    trial: int = 0
    state: UnlockState = UnlockState.TRYING
    password: str = ""
    error: Exception | None = None
    ambiguity: AmbiguousAddressError | None = None
    resolved: Account | None = None
    history: list[UnlockState] = field(default_factory=list)

    def move(self, state: UnlockState) -> None:
        self.history.append(self.state)
        self.state = state


class AccountUnlocker:
    """Bounded-retry unlock with ambiguity recovery."""

    def __init__(
        self,
        manager: AccountManager,
        passwords: PasswordSource,
        *,
        max_trials: int = MAX_UNLOCK_TRIALS,
        out: Callable[[str], None] = print,
    ) -> None:
        self.manager = manager
        self.passwords = passwords
        self.max_trials = max_trials
        self.out = out

    def unlock(self, identifier: str, index: int = 0) -> UnlockResult:
        account = resolve_account(self.manager, identifier)
        attempt = UnlockAttempt(identifier=identifier, index=index, account=account)
        while attempt.state not in (UnlockState.RESOLVED, UnlockState.FAILED):
            if attempt.state is UnlockState.TRYING:
                self._try(attempt)
            elif attempt.state is UnlockState.AMBIGUOUS:
                self._disambiguate(attempt)

        if attempt.state is UnlockState.RESOLVED and attempt.resolved is not None:
            logger.info("Unlocked account %s", attempt.resolved.hex)
            return UnlockResult(account=attempt.resolved, password=attempt.password)
        if isinstance(attempt.error, UnlockError):
            raise attempt.error
        raise UnlockFailedError(
            f"Failed to unlock account {identifier} ({attempt.error})"
        ) from attempt.error

    def _try(self, attempt: UnlockAttempt) -> None:
        if attempt.trial >= self.max_trials:
            attempt.move(UnlockState.FAILED)
            return
        attempt.trial += 1
        prompt = f"Unlocking account {attempt.identifier} | Attempt {attempt.trial}/{self.max_trials}"
        attempt.password = self.passwords.get(prompt, attempt.index)
        try:
            self.manager.unlock(attempt.account, attempt.password)
        except AmbiguousAddressError as exc:
            attempt.ambiguity = exc
            attempt.move(UnlockState.AMBIGUOUS)
        except DecryptError as exc:
            logger.debug("Trial %d for %s rejected: %s", attempt.trial, attempt.identifier, exc)
            attempt.error = exc
        except AccountBackendError as exc:
            # Retrying cannot help when the failure is not about the password.
            attempt.error = exc
            attempt.move(UnlockState.FAILED)
        else:
            attempt.resolved = attempt.account
            attempt.move(UnlockState.RESOLVED)

    def _disambiguate(self, attempt: UnlockAttempt) -> None:
        ambiguity = attempt.ambiguity
        assert ambiguity is not None
        self.out(f"Multiple key files exist for address {encode_address(ambiguity.address)}:")
        for candidate in ambiguity.matches:
            self.out(f"   {candidate.url}")
        self.out("Testing your passphrase against all of them...")

        match = self._first_match(ambiguity.matches, attempt.password)
        if match is None:
            attempt.error = NoMatchingKeyError(ambiguity.address, ambiguity.matches)
            attempt.move(UnlockState.FAILED)
            return

        self.out(f"Your passphrase unlocked {match.url}")
        duplicates = [candidate for candidate in ambiguity.matches if candidate != match]
        if duplicates:
            self.out(
                "In order to avoid this warning, you need to remove the following duplicate key files:"
            )
            for candidate in duplicates:
                self.out(f"   {candidate.url}")
        attempt.resolved = match
        attempt.move(UnlockState.RESOLVED)

    def _first_match(self, candidates: Sequence[Account], password: str) -> Account | None:
        for candidate in candidates:
            try:
                self.manager.unlock(candidate, password)
            except AccountError as exc:
                logger.debug("Key %s rejected the passphrase: %s", candidate.url, exc)
                continue
            return candidate
        return None


def unlock_accounts(
    unlocker: AccountUnlocker, identifiers: Sequence[str]
) -> list[UnlockResult]:
    """Unlock every non-blank identifier; its position selects the password."""

    results = []
    for index, identifier in enumerate(identifiers):
        trimmed = identifier.strip()
        if trimmed:
            results.append(unlocker.unlock(trimmed, index))
    return results


class RemoteAccountManager:
    """Account manager backed by the node's ``user_*`` RPC methods."""

    def __init__(self, client) -> None:
        self.client = client

    def accounts(self) -> list[Account]:
        try:
            addresses = self.client.list_accounts()
        except (RPCError, RPCTransportError) as exc:
            raise AccountBackendError(str(exc)) from exc
        return [Account(address=address) for address in addresses]

    def unlock(self, account: Account, password: str) -> None:
        try:
            unlocked = self.client.unlock_account(
                account.address, password, key_url=account.url or None
            )
        except RPCError as exc:
            raise classify_unlock_error(account, exc) from exc
        except RPCTransportError as exc:
            raise AccountBackendError(str(exc)) from exc
        if not unlocked:
            raise DecryptError()


def classify_unlock_error(account: Account, error: RPCError) -> AccountError:
    """Translate a ``user_unlockAccount`` RPC error into an account error.

    Ambiguity is signalled by ``error.data`` carrying a ``matches`` list of
    ``{"address": "0x…", "url": "…"}`` objects.
    """

    data = error.data if isinstance(error.data, dict) else {}
    matches = data.get("matches")
    if isinstance(matches, list) and matches:
        candidates = [
            Account(
                address=hex_to_address(item["address"])
                if is_hex_address(str(item.get("address", "")))
                else account.address,
                url=str(item.get("url") or item.get("file") or ""),
            )
            for item in matches
            if isinstance(item, dict)
        ]
        return AmbiguousAddressError(account.address, candidates)
    if DECRYPT_ERROR_MESSAGE in error.message.lower():
        return DecryptError(error.message)
    return AccountBackendError(error.message)

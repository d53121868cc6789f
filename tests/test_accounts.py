import pytest

from siot_console.accounts import (
    MAX_UNLOCK_TRIALS,
    Account,
    AccountBackendError,
    AccountResolutionError,
    AccountUnlocker,
    AmbiguousAddressError,
    DecryptError,
    NoMatchingKeyError,
    PasswordSource,
    PassphraseUnavailableError,
    RemoteAccountManager,
    UnlockAttempt,
    UnlockFailedError,
    UnlockState,
    classify_unlock_error,
    resolve_account,
    unlock_accounts,
)
from siot_console.rpc_client import RPCError, RPCTransportError

ADDR = "0x9821e8c1dc176c92cac40b3c1fdb795aa1b38f89"
RAW = bytes.fromhex(ADDR[2:])


class StubManager:
    """Account manager answering each unlock from a scripted list of outcomes."""

    def __init__(self, outcomes=None, known=None, key_passwords=None) -> None:
        self.outcomes = list(outcomes or [])
        self.known = list(known or [])
        self.key_passwords = dict(key_passwords or {})
        self.calls: list[tuple[Account, str]] = []

    def accounts(self):
        return list(self.known)

    def unlock(self, account, password):
        self.calls.append((account, password))
        if account.url in self.key_passwords:
            if self.key_passwords[account.url] != password:
                raise DecryptError()
            return
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if outcome is not None:
            raise outcome


def _unlocker(manager, passwords=None, prompts=None, out=None):
    answers = iter(prompts or [])
    source = PasswordSource(
        passwords,
        prompt_password=lambda _prompt: next(answers),
        out=(out.append if out is not None else lambda _line: None),
    )
    return AccountUnlocker(
        manager, source, out=(out.append if out is not None else lambda _line: None)
    )


def test_first_successful_trial_returns_immediately() -> None:
    manager = StubManager(outcomes=[None])
    result = _unlocker(manager, passwords=["pw"]).unlock(ADDR, 0)

    assert result.account == Account(address=RAW)
    assert result.password == "pw"
    assert len(manager.calls) == 1


def test_decrypt_errors_retry_until_success() -> None:
    manager = StubManager(outcomes=[DecryptError(), DecryptError(), None])
    printed: list[str] = []

    result = _unlocker(manager, prompts=["a", "b", "c"], out=printed).unlock(ADDR, 0)

    assert result.password == "c"
    assert [password for _, password in manager.calls] == ["a", "b", "c"]
    assert printed == [
        f"Unlocking account {ADDR} | Attempt 1/3",
        f"Unlocking account {ADDR} | Attempt 2/3",
        f"Unlocking account {ADDR} | Attempt 3/3",
    ]


def test_at_most_three_trials() -> None:
    manager = StubManager(outcomes=[DecryptError()] * 5)

    with pytest.raises(UnlockFailedError) as excinfo:
        _unlocker(manager, passwords=["wrong"]).unlock(ADDR, 0)

    assert len(manager.calls) == MAX_UNLOCK_TRIALS
    assert str(excinfo.value) == (
        f"Failed to unlock account {ADDR} (could not decrypt key with given passphrase)"
    )


def test_backend_error_aborts_without_retrying() -> None:
    manager = StubManager(outcomes=[AccountBackendError("keystore unreadable")])

    with pytest.raises(UnlockFailedError) as excinfo:
        _unlocker(manager, passwords=["pw"]).unlock(ADDR, 0)

    assert len(manager.calls) == 1
    assert "keystore unreadable" in str(excinfo.value)


def test_ambiguity_picks_first_candidate_that_accepts_the_password() -> None:
    candidates = [
        Account(RAW, "keystore/a.json"),
        Account(RAW, "keystore/b.json"),
        Account(RAW, "keystore/c.json"),
    ]
    manager = StubManager(
        outcomes=[AmbiguousAddressError(RAW, candidates)],
        key_passwords={"keystore/a.json": "other", "keystore/b.json": "pw", "keystore/c.json": "pw"},
    )
    printed: list[str] = []

    result = _unlocker(manager, passwords=["pw"], out=printed).unlock(ADDR, 0)

    assert result.account == candidates[1]
    assert [account.url for account, _ in manager.calls] == ["", "keystore/a.json", "keystore/b.json"]
    assert f"Multiple key files exist for address {ADDR}:" in printed
    assert "Your passphrase unlocked keystore/b.json" in printed
    assert printed[-2:] == ["   keystore/a.json", "   keystore/c.json"]


def test_ambiguity_without_match_is_fatal_and_not_retried() -> None:
    candidates = [Account(RAW, "keystore/a.json"), Account(RAW, "keystore/b.json")]
    manager = StubManager(
        outcomes=[AmbiguousAddressError(RAW, candidates)],
        key_passwords={"keystore/a.json": "x", "keystore/b.json": "y"},
    )

    with pytest.raises(NoMatchingKeyError) as excinfo:
        _unlocker(manager, passwords=["pw"]).unlock(ADDR, 0)

    assert len(manager.calls) == 3
    message = str(excinfo.value)
    assert "keystore/a.json" in message and "keystore/b.json" in message
    assert excinfo.value.matches == candidates


def test_state_transitions_are_recorded() -> None:
    candidates = [Account(RAW, "k1")]
    manager = StubManager(
        outcomes=[DecryptError(), AmbiguousAddressError(RAW, candidates)],
        key_passwords={"k1": "pw"},
    )
    unlocker = _unlocker(manager, passwords=["pw"])
    attempt = UnlockAttempt(identifier=ADDR, index=0, account=Account(RAW))

    unlocker._try(attempt)
    assert attempt.state is UnlockState.TRYING
    unlocker._try(attempt)
    assert attempt.state is UnlockState.AMBIGUOUS
    unlocker._disambiguate(attempt)

    assert attempt.state is UnlockState.RESOLVED
    assert attempt.resolved == candidates[0]
    assert attempt.history == [UnlockState.TRYING, UnlockState.AMBIGUOUS]


def test_resolve_account_by_address_and_index() -> None:
    known = [Account(b"\x01" * 20, "k0"), Account(b"\x02" * 20, "k1")]
    manager = StubManager(known=known)

    assert resolve_account(manager, ADDR) == Account(RAW)
    assert resolve_account(manager, ADDR[2:]) == Account(RAW)
    assert resolve_account(manager, "1") == known[1]


@pytest.mark.parametrize("identifier", ["bob", "-1", "5", "0x12", "²", "٣"])
def test_unresolvable_identifier_is_fatal_before_any_trial(identifier: str) -> None:
    manager = StubManager(known=[Account(b"\x01" * 20)])

    with pytest.raises(AccountResolutionError):
        _unlocker(manager, passwords=["pw"]).unlock(identifier, 0)

    assert manager.calls == []


def test_password_list_is_indexed_and_clamped() -> None:
    source = PasswordSource(["first", "second"])

    assert source.get("", 0) == "first"
    assert source.get("", 1) == "second"
    assert source.get("", 7) == "second"


def test_closed_terminal_stops_unlock_without_a_trial() -> None:
    def closed(_prompt: str) -> str:
        raise EOFError

    manager = StubManager()
    unlocker = AccountUnlocker(manager, PasswordSource(prompt_password=closed, out=lambda _line: None))

    with pytest.raises(PassphraseUnavailableError, match="Failed to read passphrase"):
        unlocker.unlock(ADDR, 0)

    assert manager.calls == []


def test_unlock_accounts_skips_blank_entries_and_uses_positions() -> None:
    manager = StubManager()
    unlocker = _unlocker(manager, passwords=["p0", "p1", "p2"])

    results = unlock_accounts(unlocker, [ADDR, " ", " " + ADDR + " "])

    assert [result.password for result in results] == ["p0", "p2"]


class StubNodeClient:
    def __init__(self, result=True, error=None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple] = []

    def list_accounts(self):
        if self.error is not None:
            raise self.error
        return [RAW]

    def unlock_account(self, address, password, key_url=None):
        self.calls.append((address, password, key_url))
        if self.error is not None:
            raise self.error
        return self.result


def test_remote_manager_translates_outcomes() -> None:
    manager = RemoteAccountManager(StubNodeClient(result=True))
    manager.unlock(Account(RAW, "keystore/a.json"), "pw")
    assert manager.client.calls == [(RAW, "pw", "keystore/a.json")]
    assert manager.accounts() == [Account(RAW)]

    with pytest.raises(DecryptError):
        RemoteAccountManager(StubNodeClient(result=False)).unlock(Account(RAW), "pw")

    with pytest.raises(AccountBackendError):
        RemoteAccountManager(StubNodeClient(error=RPCTransportError("down"))).unlock(
            Account(RAW), "pw"
        )

    with pytest.raises(AccountBackendError):
        RemoteAccountManager(StubNodeClient(error=RPCTransportError("down"))).accounts()


def test_classify_unlock_error() -> None:
    account = Account(RAW)

    decrypt = classify_unlock_error(account, RPCError(-32000, "could not decrypt key with given passphrase"))
    assert isinstance(decrypt, DecryptError)

    ambiguous = classify_unlock_error(
        account,
        RPCError(
            -32000,
            "multiple keys match address",
            {"matches": [{"address": ADDR, "url": "k1"}, {"address": ADDR, "file": "k2"}]},
        ),
    )
    assert isinstance(ambiguous, AmbiguousAddressError)
    assert [match.url for match in ambiguous.matches] == ["k1", "k2"]
    assert all(match.address == RAW for match in ambiguous.matches)

    other = classify_unlock_error(account, RPCError(-32000, "no key for given address or file"))
    assert isinstance(other, AccountBackendError)

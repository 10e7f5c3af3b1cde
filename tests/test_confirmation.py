"""Waiting for the deployment to land."""

import datetime

import pytest

from creator_vault.confirmation import wait_for_bytecode, wait_for_calls_status, wait_for_receipt
from creator_vault.basewallet import WalletRequestFailed
from creator_vault.errors import ConfirmationTimeoutError, PartiallyRevertedError, SubmissionError
from creator_vault.reader import CallFailed
from creator_vault.testing import StubWallet

FAST = dict(max_timeout=datetime.timedelta(milliseconds=100), poll_delay=datetime.timedelta(milliseconds=10))

SOME_ADDRESS = "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"


def test_bytecode_present(chain, infrastructure):
    codes = wait_for_bytecode(chain, [infrastructure.registry], **FAST)
    assert len(codes[infrastructure.registry]) > 0


def test_bytecode_timeout(chain, infrastructure):
    with pytest.raises(ConfirmationTimeoutError) as e:
        wait_for_bytecode(chain, [infrastructure.registry, SOME_ADDRESS], submission_id="0xabc", **FAST)
    assert e.value.submission_id == "0xabc"
    assert SOME_ADDRESS in e.value.details
    assert "Check transaction or call bundle 0xabc before retrying" in e.value.details


def test_receipt_reverted(chain, wallet):
    # Calls to an address without code revert on the stub chain
    tx_hash = chain.send_transaction(wallet.address, SOME_ADDRESS, b"\x12\x34\x56\x78")
    with pytest.raises(SubmissionError) as e:
        wait_for_receipt(chain, tx_hash, **FAST)
    assert e.value.message == "Deployment transaction reverted"


def test_receipt_timeout(chain):
    with pytest.raises(ConfirmationTimeoutError):
        wait_for_receipt(chain, b"\x01" * 32, **FAST)


def test_calls_status_failed(chain, signer):
    wallet = StubWallet(chain, signer)
    bundle_id = wallet.send_calls(8453, [{"to": SOME_ADDRESS, "data": "0x12345678", "value": "0x0"}])
    assert wallet.bundles[bundle_id] == 500
    with pytest.raises(SubmissionError) as e:
        wait_for_calls_status(wallet, bundle_id, **FAST)
    assert e.value.message == "Wallet reported the deployment batch failed"


def test_calls_status_pending_gives_up(chain, signer):
    wallet = StubWallet(chain, signer, land=False)
    bundle_id = wallet.send_calls(8453, [])
    assert wait_for_calls_status(wallet, bundle_id, **FAST) is None


def test_calls_status_unsupported(chain, signer):
    wallet = StubWallet(chain, signer, supports_calls_status=False)
    assert wait_for_calls_status(wallet, "0x01", **FAST) is None


def test_calls_status_v1_strings(chain, signer, monkeypatch):
    wallet = StubWallet(chain, signer)
    monkeypatch.setattr(wallet, "get_calls_status", lambda bundle_id: {"status": "CONFIRMED"})
    assert wait_for_calls_status(wallet, "0x01", **FAST) == {"status": "CONFIRMED"}


def test_bytecode_survives_flaky_reads(chain, infrastructure, monkeypatch):
    """Read errors while polling are retried, not reported as a failure."""
    original = chain.get_codes
    failures = []

    def flaky_get_codes(addresses):
        if len(failures) < 2:
            failures.append(1)
            raise CallFailed("eth_getCode failed: 502 Bad Gateway")
        return original(addresses)

    monkeypatch.setattr(chain, "get_codes", flaky_get_codes)
    codes = wait_for_bytecode(chain, [infrastructure.registry], **FAST)
    assert len(failures) == 2
    assert infrastructure.registry in codes


def test_bytecode_reads_keep_failing(chain, infrastructure, monkeypatch):
    def broken_get_codes(addresses):
        raise CallFailed("eth_getCode failed: 502 Bad Gateway")

    monkeypatch.setattr(chain, "get_codes", broken_get_codes)
    with pytest.raises(ConfirmationTimeoutError) as e:
        wait_for_bytecode(chain, [infrastructure.registry], submission_id="0xabc", **FAST)
    assert e.value.submission_id == "0xabc"
    assert "502 Bad Gateway" in e.value.details


def test_receipt_reads_keep_failing(chain, monkeypatch):
    def broken_receipt(tx_hash):
        raise CallFailed("eth_getTransactionReceipt failed: connection reset")

    monkeypatch.setattr(chain, "get_transaction_receipt", broken_receipt)
    with pytest.raises(ConfirmationTimeoutError) as e:
        wait_for_receipt(chain, b"\x01" * 32, **FAST)
    assert e.value.submission_id == "0x" + "01" * 32
    assert "connection reset" in e.value.details


def test_calls_status_partially_reverted(chain, signer):
    """Part of the bundle landed: ambiguous, never reported as safe to retry."""
    wallet = StubWallet(chain, signer)
    wallet.bundles["0xb"] = 600
    with pytest.raises(PartiallyRevertedError) as e:
        wait_for_calls_status(wallet, "0xb", **FAST)
    assert not isinstance(e.value, SubmissionError)
    assert isinstance(e.value, ConfirmationTimeoutError)
    assert e.value.submission_id == "0xb"
    assert "Check transaction or call bundle 0xb before retrying" in e.value.details


def test_calls_status_wallet_error(chain, signer, monkeypatch):
    """Wallet fails to answer, the bytecode poll decides."""
    wallet = StubWallet(chain, signer)

    def broken_status(bundle_id):
        raise WalletRequestFailed("wallet_getCallsStatus failed: Internal error", -32603)

    monkeypatch.setattr(wallet, "get_calls_status", broken_status)
    assert wait_for_calls_status(wallet, "0x01", **FAST) is None

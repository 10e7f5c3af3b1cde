"""Wallet adapters without a node."""

import pytest

from creator_vault.basewallet import UserRejectedRequest, WalletRequestFailed
from creator_vault.hotwallet import HotWallet
from creator_vault.provider_wallet import METHOD_NOT_FOUND_ERROR_CODE, Web3ProviderWallet

#: Well known test key, address 0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf
PRIVATE_KEY = "0x0000000000000000000000000000000000000000000000000000000000000001"


class FakeProvider:
    """Return canned JSON-RPC responses per method."""

    def __init__(self, responses: dict):
        self.responses = responses
        self.requests = []

    def make_request(self, method, params):
        self.requests.append((method, params))
        return self.responses[method]


class FakeWeb3:
    def __init__(self, responses: dict):
        self.provider = FakeProvider(responses)


def make_wallet(responses: dict) -> Web3ProviderWallet:
    return Web3ProviderWallet(FakeWeb3(responses), address="0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf")


def test_capabilities():
    wallet = make_wallet({"wallet_getCapabilities": {"result": {"0x2105": {"atomic": {"status": "ready"}}}}})
    assert wallet.get_atomic_status(8453) == "ready"
    assert wallet.can_batch_atomically(8453)
    method, params = wallet.web3.provider.requests[0]
    assert params == [wallet.address, ["0x2105"]]


def test_capabilities_shared_across_chains():
    wallet = make_wallet({"wallet_getCapabilities": {"result": {"0x0": {"atomic": {"status": "supported"}}}}})
    assert wallet.get_atomic_status(8453) == "supported"


def test_capabilities_not_supported():
    wallet = make_wallet({"wallet_getCapabilities": {"error": {"code": METHOD_NOT_FOUND_ERROR_CODE, "message": "Method not found"}}})
    assert wallet.get_capabilities(8453) == {}
    assert wallet.get_atomic_status(8453) == "unsupported"


def test_send_calls():
    wallet = make_wallet({"wallet_sendCalls": {"result": {"id": "0xbundle"}}})
    calls = [{"to": wallet.address, "data": "0x", "value": "0x0"}]
    assert wallet.send_calls(8453, calls) == "0xbundle"
    method, (params,) = wallet.web3.provider.requests[0]
    assert method == "wallet_sendCalls"
    assert params["version"] == "2.0.0"
    assert params["chainId"] == "0x2105"
    assert params["atomicRequired"] is True
    assert params["calls"] == calls


def test_send_calls_rejected():
    wallet = make_wallet({"wallet_sendCalls": {"error": {"code": 4001, "message": "User denied"}}})
    with pytest.raises(UserRejectedRequest):
        wallet.send_calls(8453, [])


def test_send_transaction_failed():
    wallet = make_wallet({"eth_sendTransaction": {"error": {"code": -32000, "message": "insufficient funds"}}})
    with pytest.raises(WalletRequestFailed) as e:
        wallet.send_transaction(wallet.address, b"")
    assert e.value.code == -32000


def test_calls_status_unsupported():
    wallet = make_wallet({"wallet_getCallsStatus": {"error": {"code": METHOD_NOT_FOUND_ERROR_CODE, "message": "Method not found"}}})
    assert wallet.get_calls_status("0xbundle") is None


def test_hot_wallet_cannot_batch():
    wallet = HotWallet.from_private_key(PRIVATE_KEY)
    assert wallet.address == "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
    assert not wallet.can_batch_atomically(8453)
    with pytest.raises(WalletRequestFailed):
        wallet.send_calls(8453, [])
    assert wallet.get_calls_status("0x01") is None


def test_hot_wallet_nonce():
    wallet = HotWallet.from_private_key(PRIVATE_KEY)
    wallet.current_nonce = 5
    tx = {"to": wallet.address, "value": 0, "gas": 21_000, "gasPrice": 1, "chainId": 8453, "data": b""}
    signed = wallet.sign_transaction_with_new_nonce(tx)
    assert signed.nonce == 5
    assert wallet.current_nonce == 6
    assert len(signed.hash) == 32

"""Web3 reader and hot wallet against an in-process EVM."""

import datetime
import secrets

import pytest
from eth_account import Account
from eth_utils import keccak
from hexbytes import HexBytes
from web3 import EthereumTesterProvider, Web3

from creator_vault.basewallet import WalletRequestFailed
from creator_vault.confirmation import wait_for_bytecode, wait_for_receipt
from creator_vault.create2 import encode_universal_factory_call, predict_create2_address
from creator_vault.hotwallet import HotWallet
from creator_vault.reader import CallFailed, Web3ChainReader


FAST = dict(max_timeout=datetime.timedelta(seconds=5), poll_delay=datetime.timedelta(milliseconds=10))

#: Runtime of the universal CREATE2 factory: calldata is ``salt ++ init_code``, returns the 20 byte address
FACTORY_RUNTIME = HexBytes("0x7fffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffffe03601600081602082378035828234f58015156039578182fd5b8082525050506014600cf3")

FACTORY_CREATION_CODE = HexBytes("0x604580600e600039806000f350fe") + FACTORY_RUNTIME

#: Returns ``uint256(1)`` for any call
RETURNS_TRUE_RUNTIME = HexBytes("0x600160005260206000f3")

RETURNS_TRUE_CREATION_CODE = HexBytes("0x600a80600b6000396000f3") + RETURNS_TRUE_RUNTIME

#: Reverts every call with empty data
REVERTER_CREATION_CODE = HexBytes("0x600580600b6000396000f3" + "60006000fd")


@pytest.fixture
def tester_provider():
    return EthereumTesterProvider()


@pytest.fixture
def web3(tester_provider):
    """Set up a local unit testing blockchain."""
    return Web3(tester_provider)


@pytest.fixture()
def deployer(web3) -> str:
    """Funded account of the test chain."""
    return web3.eth.accounts[0]


@pytest.fixture()
def reader(web3) -> Web3ChainReader:
    return Web3ChainReader(web3)


def deploy_raw(web3: Web3, deployer: str, creation_code: bytes) -> str:
    tx_hash = web3.eth.send_transaction({"from": deployer, "data": creation_code, "gas": 500_000})
    receipt = web3.eth.wait_for_transaction_receipt(tx_hash)
    assert receipt["status"] == 1
    return receipt["contractAddress"]


@pytest.fixture()
def factory(web3, deployer) -> str:
    return deploy_raw(web3, deployer, FACTORY_CREATION_CODE)


@pytest.fixture()
def hot_wallet(web3, deployer) -> HotWallet:
    """Hot wallet with 1 ETH."""
    wallet = HotWallet(Account.from_key(HexBytes(secrets.token_bytes(32))), web3)
    tx_hash = web3.eth.send_transaction({"from": deployer, "to": wallet.address, "value": 10**18})
    web3.eth.wait_for_transaction_receipt(tx_hash)
    return wallet


def test_reader_get_code(web3, reader, factory):
    assert reader.chain_id == web3.eth.chain_id
    assert reader.get_code(factory) == FACTORY_RUNTIME
    assert reader.get_code("0x000000000000000000000000000000000000dEaD") == b""
    codes = reader.get_codes([factory, "0x000000000000000000000000000000000000dEaD"])
    assert codes[factory] == FACTORY_RUNTIME
    assert not reader.has_code("0x000000000000000000000000000000000000dEaD")


def test_reader_read(web3, reader, deployer):
    contract = deploy_raw(web3, deployer, RETURNS_TRUE_CREATION_CODE)
    assert reader.read(contract, "isOwnerAddress(address)", [deployer], ["bool"]) is True


def test_reader_call_revert(web3, reader, deployer):
    reverter = deploy_raw(web3, deployer, REVERTER_CREATION_CODE)
    with pytest.raises(CallFailed):
        reader.call(reverter, HexBytes("0x12345678"))


def test_reader_read_no_contract(reader):
    """Empty return data from an address without code cannot be decoded."""
    with pytest.raises(CallFailed):
        reader.read("0x000000000000000000000000000000000000dEaD", "isOwnerAddress(address)", ["0x000000000000000000000000000000000000dEaD"], ["bool"])


def test_reader_receipt(web3, reader, deployer):
    assert reader.get_transaction_receipt(HexBytes(b"\x01" * 32)) is None

    tx_hash = web3.eth.send_transaction({"from": deployer, "to": deployer, "value": 1})
    web3.eth.wait_for_transaction_receipt(tx_hash)
    receipt = reader.get_transaction_receipt(tx_hash)
    assert receipt["status"] == 1
    assert receipt["from"] == deployer


def test_hot_wallet_create2_deploy(web3, reader, factory, hot_wallet):
    """Deploy through the universal factory and land at the predicted address."""
    salt = keccak(text="test:create2")
    predicted = predict_create2_address(factory, salt, RETURNS_TRUE_CREATION_CODE)
    assert not reader.has_code(predicted)

    tx_hash = hot_wallet.send_transaction(factory, encode_universal_factory_call(salt, RETURNS_TRUE_CREATION_CODE))
    receipt = wait_for_receipt(reader, tx_hash, **FAST)
    assert receipt["from"] == hot_wallet.address
    assert hot_wallet.current_nonce == 1

    codes = wait_for_bytecode(reader, [predicted], submission_id=tx_hash.hex(), **FAST)
    assert codes[predicted] == RETURNS_TRUE_RUNTIME


def test_hot_wallet_failed_send_resyncs_nonce(web3, reader, factory, hot_wallet):
    """Redeploying the same salt reverts in gas estimation, the next send still works."""
    salt = keccak(text="test:redeploy")
    calldata = encode_universal_factory_call(salt, RETURNS_TRUE_CREATION_CODE)
    wait_for_receipt(reader, hot_wallet.send_transaction(factory, calldata), **FAST)

    with pytest.raises(WalletRequestFailed):
        hot_wallet.send_transaction(factory, calldata)
    assert hot_wallet.current_nonce is None

    other_salt = keccak(text="test:other")
    tx_hash = hot_wallet.send_transaction(factory, encode_universal_factory_call(other_salt, RETURNS_TRUE_CREATION_CODE))
    wait_for_receipt(reader, tx_hash, **FAST)
    assert reader.has_code(predict_create2_address(factory, other_salt, RETURNS_TRUE_CREATION_CODE))
    assert hot_wallet.current_nonce == 2

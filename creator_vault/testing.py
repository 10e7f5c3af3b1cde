"""In-memory chain and wallet for tests and dry runs.

:py:class:`StubChain` emulates just enough of an EVM chain for a creator vault deployment:

- Bytecode at addresses
- The local deployer ``deploy(bytes32,bytes)`` and the universal factory ``salt ++ init_code``,
  both using the real CREATE2 address formula
- Setters of the deployed contracts write the matching public getter,
  unset getters return the Solidity zero value
- Coinbase smart wallet ``isOwnerAddress()`` and ``executeBatch()``
- Atomic batches: a revert anywhere restores the state before the batch

Calls to addresses without code revert, which is stricter than the EVM,
so a misordered batch is caught instead of silently doing nothing.

Example:

.. code-block:: python

    chain = StubChain(chain_id=8453)
    chain.install_infrastructure(infrastructure, creator_token)
    wallet = StubWallet(chain, signer)
"""

import copy
import logging
import threading
from dataclasses import dataclass
from typing import Sequence

import eth_abi
from eth_typing import HexAddress
from eth_utils import keccak
from hexbytes import HexBytes
from web3 import Web3

from creator_vault.abi import ZERO_ADDRESS_STR, decode_function_args, get_function_selector, split_signature_types
from creator_vault.basewallet import BaseWallet, UserRejectedRequest
from creator_vault.bytecode import CONTRACT_NAMES, DeployBytecode
from creator_vault.config import DeploymentInfrastructure
from creator_vault.create2 import LOCAL_DEPLOYER_DEPLOY_SIGNATURE, predict_create2_address
from creator_vault.execution import EXECUTE_BATCH_SIGNATURE
from creator_vault.preflight import GET_LAYER_ZERO_ENDPOINT_SIGNATURE, IS_OWNER_ADDRESS_SIGNATURE, PAYOUT_RECIPIENT_SIGNATURE
from creator_vault.reader import CallFailed, ChainReader


logger = logging.getLogger(__name__)


#: Placeholder runtime code for infrastructure contracts and EOAs turned into contracts
STUB_RUNTIME_CODE = HexBytes("0x6080604052")

#: Setter -> (getter, getter output type)
#:
#: One argument setters write ``getter()``, two argument setters write ``getter(arg0) = arg1``.
WIRING_SETTERS = {
    "setShareOFT(address)": ("shareOFT()", "address"),
    "setRegistry(address)": ("registry()", "address"),
    "setVault(address)": ("vault()", "address"),
    "setMinter(address,bool)": ("isMinter(address)", "bool"),
    "setGaugeController(address)": ("gaugeController()", "address"),
    "setWrapper(address)": ("wrapper()", "address"),
    "setCreatorCoin(address)": ("creatorCoin()", "address"),
    "setLotteryManager(address)": ("lotteryManager()", "address"),
    "setOracle(address)": ("oracle()", "address"),
    "setWhitelist(address,bool)": ("whitelist(address)", "bool"),
    "setApprovedLauncher(address,bool)": ("approvedLaunchers(address)", "bool"),
    "setLayerZeroEndpoint(uint16,address)": ("getLayerZeroEndpoint(uint16)", "address"),
    "setDefaultTickSpacing(uint256)": ("defaultTickSpacing()", "uint256"),
    "setOracleConfig(address,address,address,address)": (None, None),
}

_ZERO_VALUES = {
    "address": ZERO_ADDRESS_STR,
    "bool": False,
    "uint256": 0,
}


class StubRevert(Exception):
    """Emulated EVM revert."""


@dataclass(slots=True)
class ExecutedCall:
    """Audit log entry of a state changing call."""

    sender: str
    target: str
    data: HexBytes


def create_test_bytecode() -> DeployBytecode:
    """Distinct fake creation bytecode per contract."""
    return DeployBytecode(**{field_name: HexBytes(b"\x60\x80\x60\x40" + contract_name.encode()) for field_name, contract_name in CONTRACT_NAMES.items()})


class StubChain(ChainReader):
    """In-memory chain state."""

    def __init__(self, chain_id: int = 8453):
        self._chain_id = chain_id
        self.lock = threading.RLock()

        #: lowercased address -> code
        self.codes: dict[str, HexBytes] = {}

        #: (lowercased address, full calldata) -> ABI encoded return data
        self.views: dict[tuple[str, bytes], bytes] = {}

        #: lowercased smart wallet -> set of lowercased owners
        self.smart_wallets: dict[str, set[str]] = {}

        #: Universal factory and local deployer, lowercased
        self.universal_factory: str | None = None
        self.local_deployer: str | None = None

        #: tx hash -> receipt
        self.receipts: dict[bytes, dict] = {}

        #: Every successful state changing call, including inner calls of batches
        self.executed_calls: list[ExecutedCall] = []

        #: Setter signatures that succeed without any effect, for fault injection
        self.ignored_setters: set[str] = set()

        #: How many get_code() calls we have served
        self.code_reads = 0

        self.block_number = 1
        self.tx_count = 0

        self._getter_types = {get_function_selector(getter): output_type for getter, output_type in WIRING_SETTERS.values() if getter}
        self._setters = {get_function_selector(sig): sig for sig in WIRING_SETTERS}

    def __repr__(self):
        return f"<StubChain {self._chain_id}, {len(self.codes)} contracts>"

    @property
    def chain_id(self) -> int:
        return self._chain_id

    #
    # Setup
    #

    def set_code(self, address: HexAddress, code: bytes = STUB_RUNTIME_CODE):
        with self.lock:
            self.codes[address.lower()] = HexBytes(code)

    def set_view(self, address: HexAddress, function_signature: str, args: Sequence, output_types: Sequence[str], values: Sequence):
        """Preset the return value of a view function."""
        data = get_function_selector(function_signature) + eth_abi.encode(split_signature_types(function_signature), list(args))
        with self.lock:
            self.views[(address.lower(), bytes(data))] = eth_abi.encode(list(output_types), list(values))

    def add_smart_wallet(self, address: HexAddress, owners: Sequence[HexAddress]):
        """Turn an address to a Coinbase smart wallet controlled by ``owners``."""
        self.set_code(address)
        with self.lock:
            self.smart_wallets[address.lower()] = {o.lower() for o in owners}

    def install_infrastructure(
        self,
        infrastructure: DeploymentInfrastructure,
        creator_token: HexAddress,
        lz_endpoint: HexAddress = "0x1a44076050125825900e736c501f859c50fE728c",
        include_oracle_dependencies=True,
    ):
        """Give code to every shared contract and configure the registry endpoint."""
        self.universal_factory = infrastructure.create2_factory.lower()
        self.local_deployer = infrastructure.create2_deployer.lower()
        for address in infrastructure.get_dependencies(include_oracle_dependencies).values():
            self.set_code(address)
        self.set_code(creator_token)
        self.set_view(infrastructure.registry, GET_LAYER_ZERO_ENDPOINT_SIGNATURE, [self._chain_id], ["address"], [lz_endpoint])

    def set_payout_recipient(self, creator_token: HexAddress, recipient: HexAddress):
        self.set_view(creator_token, PAYOUT_RECIPIENT_SIGNATURE, [], ["address"], [recipient])

    #
    # ChainReader
    #

    def get_code(self, address: HexAddress) -> HexBytes:
        with self.lock:
            self.code_reads += 1
            return self.codes.get(address.lower(), HexBytes(b""))

    def call(self, address: HexAddress, data: bytes) -> HexBytes:
        address = address.lower()
        data = bytes(data)
        with self.lock:
            if address not in self.codes:
                # eth_call to an EOA returns nothing
                return HexBytes(b"")

            if address in self.smart_wallets and data[0:4] == get_function_selector(IS_OWNER_ADDRESS_SIGNATURE):
                (account,) = decode_function_args(IS_OWNER_ADDRESS_SIGNATURE, data)
                return HexBytes(eth_abi.encode(["bool"], [account.lower() in self.smart_wallets[address]]))

            value = self.views.get((address, data))
            if value is not None:
                return HexBytes(value)

            output_type = self._getter_types.get(data[0:4])
            if output_type:
                return HexBytes(eth_abi.encode([output_type], [_ZERO_VALUES[output_type]]))

        raise CallFailed(f"execution reverted: no view {data[0:4].hex()} at {address}")

    def get_transaction_receipt(self, tx_hash: HexBytes | str) -> dict | None:
        return self.receipts.get(bytes(HexBytes(tx_hash)))

    #
    # State changes
    #

    def _deploy(self, factory: str, salt: bytes, init_code: bytes) -> str:
        address = predict_create2_address(Web3.to_checksum_address(factory), salt, init_code)
        if address.lower() in self.codes:
            raise StubRevert(f"CREATE2 collision at {address}")
        self.codes[address.lower()] = HexBytes(b"\xfe" + keccak(init_code)[0:8])
        logger.debug("Stub deployed %s", address)
        return address

    def _execute(self, sender: str, target: str, data: bytes):
        target = target.lower()
        data = bytes(data)

        if target not in self.codes:
            raise StubRevert(f"Call to {target} which has no code")

        if target == self.universal_factory:
            if len(data) <= 32:
                raise StubRevert("Universal factory needs salt ++ init_code")
            self._deploy(target, data[0:32], data[32:])

        elif target == self.local_deployer:
            salt, init_code = decode_function_args(LOCAL_DEPLOYER_DEPLOY_SIGNATURE, data)
            self._deploy(target, salt, init_code)

        elif target in self.smart_wallets and data[0:4] == get_function_selector(EXECUTE_BATCH_SIGNATURE):
            if sender.lower() not in self.smart_wallets[target]:
                raise StubRevert(f"{sender} is not an owner of {target}")
            (calls,) = decode_function_args(EXECUTE_BATCH_SIGNATURE, data)
            for inner_target, _value, inner_data in calls:
                self._execute(target, inner_target, inner_data)

        else:
            signature = self._setters.get(data[0:4])
            if signature is None:
                raise StubRevert(f"Unknown function {data[0:4].hex()} at {target}")

            if signature not in self.ignored_setters:
                getter, output_type = WIRING_SETTERS[signature]
                args = decode_function_args(signature, data)
                if getter:
                    if len(args) == 1:
                        key = get_function_selector(getter)
                        value = args[0]
                    else:
                        key = get_function_selector(getter) + eth_abi.encode(split_signature_types(getter), [args[0]])
                        value = args[1]
                    self.views[(target, bytes(key))] = eth_abi.encode([output_type], [value])

        self.executed_calls.append(ExecutedCall(sender=sender, target=target, data=HexBytes(data)))

    def execute_atomic(self, sender: HexAddress, calls: Sequence[tuple[HexAddress, bytes]]):
        """Run calls as one atomic unit.

        :raise StubRevert:
            State is restored to what it was before the first call
        """
        with self.lock:
            snapshot = (copy.copy(self.codes), copy.copy(self.views), len(self.executed_calls))
            try:
                for target, data in calls:
                    self._execute(sender, target, data)
            except StubRevert:
                self.codes, self.views = snapshot[0], snapshot[1]
                del self.executed_calls[snapshot[2] :]
                raise

    def send_transaction(self, sender: HexAddress, to: HexAddress, data: bytes) -> HexBytes:
        """Mine a transaction in its own block.

        A revert gives a receipt with status 0.
        """
        with self.lock:
            self.tx_count += 1
            self.block_number += 1
            tx_hash = HexBytes(keccak(eth_abi.encode(["address", "uint256", "bytes"], [sender, self.tx_count, bytes(data)])))
            try:
                self.execute_atomic(sender, [(to, data)])
                status = 1
            except StubRevert as e:
                logger.info("Stub transaction %s reverted: %s", tx_hash.hex(), e)
                status = 0
            self.receipts[bytes(tx_hash)] = {
                "transactionHash": tx_hash,
                "status": status,
                "blockNumber": self.block_number,
                "from": sender,
                "to": to,
            }
            return tx_hash


class StubWallet(BaseWallet):
    """Wallet backed by a :py:class:`StubChain`.

    Counts signature prompts so tests can check we asked exactly once.
    """

    def __init__(
        self,
        chain: StubChain,
        address: HexAddress,
        atomic_status: str | None = "supported",
        reject=False,
        land=True,
        supports_calls_status=True,
    ):
        """
        :param atomic_status:
            Reported EIP-5792 ``atomic.status``, ``None`` for a wallet without EIP-5792

        :param reject:
            User declines every prompt

        :param land:
            Submissions are accepted but never reach the chain
        """
        self.chain = chain
        self._address = Web3.to_checksum_address(address)
        self.atomic_status = atomic_status
        self.reject = reject
        self.land = land
        self.supports_calls_status = supports_calls_status

        #: Signature prompts shown to the user
        self.prompts = 0

        #: bundle id -> EIP-5792 status code
        self.bundles: dict[str, int] = {}

        #: Calls of the last ``wallet_sendCalls``
        self.last_calls: list[dict] | None = None

    @property
    def address(self) -> HexAddress:
        return self._address

    def send_transaction(self, to: HexAddress, data: bytes, value: int = 0, gas: int | None = None) -> HexBytes:
        self.prompts += 1
        if self.reject:
            raise UserRejectedRequest()
        if not self.land:
            return HexBytes(keccak(b"lost" + bytes(data)))
        return self.chain.send_transaction(self.address, to, data)

    def get_capabilities(self, chain_id: int) -> dict:
        if self.atomic_status is None:
            return {}
        return {"atomic": {"status": self.atomic_status}}

    def send_calls(self, chain_id: int, calls: list[dict], atomic_required=True) -> str:
        self.prompts += 1
        if self.reject:
            raise UserRejectedRequest()

        self.last_calls = calls
        bundle_id = "0x" + keccak(eth_abi.encode(["uint256", "uint256"], [len(self.bundles), len(calls)])).hex().removeprefix("0x")

        if not self.land:
            self.bundles[bundle_id] = 100
            return bundle_id

        try:
            self.chain.execute_atomic(self.address, [(c["to"], HexBytes(c["data"])) for c in calls])
            self.bundles[bundle_id] = 200
        except StubRevert as e:
            logger.info("Stub call bundle %s reverted: %s", bundle_id, e)
            self.bundles[bundle_id] = 500
        return bundle_id

    def get_calls_status(self, bundle_id: str) -> dict | None:
        if not self.supports_calls_status:
            return None
        return {
            "version": "2.0.0",
            "id": bundle_id,
            "chainId": hex(self.chain.chain_id),
            "status": self.bundles[bundle_id],
            "atomic": True,
        }

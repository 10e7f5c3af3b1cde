"""Read-only blockchain access.

The orchestrator never talks to :py:class:`web3.Web3` directly, but through :py:class:`ChainReader`.
This keeps the deployment flow testable against :py:class:`creator_vault.testing.StubChain`.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Collection, Sequence

from eth_abi.exceptions import DecodingError
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import ContractLogicError, TransactionNotFound, Web3Exception

from creator_vault.abi import decode_function_output, encode_with_signature, present_solidity_args


logger = logging.getLogger(__name__)


class CallFailed(Exception):
    """A read reverted or the node refused it."""


class ChainReader(ABC):
    """Blockchain read client used by preflight, confirmation and verification."""

    #: Parallel reads in :py:meth:`get_codes`
    max_workers = 8

    @property
    @abstractmethod
    def chain_id(self) -> int:
        """Chain we are connected to."""

    @abstractmethod
    def get_code(self, address: HexAddress) -> HexBytes:
        """Runtime bytecode at an address.

        :raise CallFailed:
            Node refused the request

        :return:
            Empty bytes if no contract
        """

    @abstractmethod
    def call(self, address: HexAddress, data: bytes) -> HexBytes:
        """Perform ``eth_call`` against the latest block.

        :raise CallFailed:
            Call reverted
        """

    @abstractmethod
    def get_transaction_receipt(self, tx_hash: HexBytes | str) -> dict | None:
        """Receipt of a transaction, or ``None`` if not yet mined.

        :raise CallFailed:
            Node refused the request
        """

    def has_code(self, address: HexAddress) -> bool:
        return len(self.get_code(address)) > 0

    def get_codes(self, addresses: Collection[HexAddress]) -> dict[HexAddress, HexBytes]:
        """Fetch bytecode of many addresses in parallel.

        :return:
            Address -> bytecode
        """
        if not addresses:
            return {}

        result = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(addresses))) as executor:
            futures = {executor.submit(self.get_code, address): address for address in addresses}
            for future in as_completed(futures):
                result[futures[future]] = future.result()
        return result

    def read(
        self,
        address: HexAddress,
        function_signature: str,
        args: Sequence = (),
        output_types: Sequence[str] = ("address",),
    ) -> Any:
        """Call a view function by its Solidity signature and decode the result.

        Example:

        .. code-block:: python

            is_owner = reader.read(owner, "isOwnerAddress(address)", [signer], ["bool"])

        :raise CallFailed:
            Call reverted, or returned data we could not decode
        """
        data = encode_with_signature(function_signature, list(args))
        raw = self.call(address, data)
        try:
            return decode_function_output(output_types, raw)
        except DecodingError as e:
            raise CallFailed(f"Could not decode {function_signature} output at {address}, args {present_solidity_args(args)}: {raw.hex()}") from e


class Web3ChainReader(ChainReader):
    """Read the chain through web3.py."""

    def __init__(self, web3: Web3, max_workers=8):
        self.web3 = web3
        self.max_workers = max_workers
        self._chain_id = None

    def __repr__(self):
        return f"<Web3ChainReader chain {self.chain_id}>"

    @property
    def chain_id(self) -> int:
        # Cached, every eth_chainId is a round trip
        if self._chain_id is None:
            self._chain_id = self.web3.eth.chain_id
        return self._chain_id

    def get_code(self, address: HexAddress) -> HexBytes:
        try:
            return HexBytes(self.web3.eth.get_code(Web3.to_checksum_address(address)))
        except (ValueError, Web3Exception, OSError) as e:
            raise CallFailed(f"eth_getCode at {address} failed: {e}") from e

    def call(self, address: HexAddress, data: bytes) -> HexBytes:
        try:
            return HexBytes(self.web3.eth.call({"to": Web3.to_checksum_address(address), "data": HexBytes(data)}))
        except (ContractLogicError, ValueError, Web3Exception) as e:
            raise CallFailed(f"eth_call to {address} failed: {e}") from e

    def get_transaction_receipt(self, tx_hash: HexBytes | str) -> dict | None:
        try:
            return dict(self.web3.eth.get_transaction_receipt(tx_hash))
        except TransactionNotFound:
            return None
        except (ValueError, Web3Exception, OSError) as e:
            raise CallFailed(f"eth_getTransactionReceipt {HexBytes(tx_hash).hex()} failed: {e}") from e

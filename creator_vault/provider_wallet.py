"""Provider-based wallet implementation.

Delegates signing to whatever sits behind the connected web3 provider:
a browser wallet bridge, a remote signer, or an Anvil node with unlocked accounts.
EIP-5792 call bundles are sent as raw JSON-RPC requests.
"""

import logging
from typing import Any, Optional

from eth_typing import ChecksumAddress, HexAddress
from hexbytes import HexBytes
from web3 import Web3

from creator_vault.basewallet import (
    UNSUPPORTED_METHOD_ERROR_CODE,
    USER_REJECTED_ERROR_CODE,
    BaseWallet,
    UserRejectedRequest,
    WalletRequestFailed,
)


logger = logging.getLogger(__name__)


#: ``wallet_sendCalls`` request version we speak
SEND_CALLS_VERSION = "2.0.0"

#: JSON-RPC method not found
METHOD_NOT_FOUND_ERROR_CODE = -32601


class Web3ProviderWallet(BaseWallet):
    """Wallet implementation that delegates operations to a connected Web3 provider.

    Example:

    .. code-block:: python

        web3 = Web3(Web3.HTTPProvider("http://localhost:8545"))
        wallet = Web3ProviderWallet(web3)
        print(wallet.get_atomic_status(8453))
    """

    def __init__(self, web3: Web3, address: Optional[HexAddress] = None):
        """Create a wallet using a connected Web3 provider.

        :param address:
            Account to use. Defaults to the first account the provider exposes.
        """
        self.web3 = web3

        if address is None:
            accounts = self.web3.eth.accounts
            # Ensure we have a connected account
            if not accounts:
                raise ValueError("No accounts available in the connected Web3 provider")
            address = accounts[0]

        self._address = Web3.to_checksum_address(address)

    def __repr__(self):
        return f"<Web3ProviderWallet {self._address}>"

    @property
    def address(self) -> ChecksumAddress:
        return self._address

    def make_request(self, method: str, params: list) -> Any:
        """Perform a raw JSON-RPC request against the provider.

        :raise UserRejectedRequest:
            EIP-1193 error 4001

        :raise WalletRequestFailed:
            Any other JSON-RPC error
        """
        response = self.web3.provider.make_request(method, params)
        error = response.get("error")
        if error:
            if isinstance(error, dict):
                code = error.get("code")
                message = error.get("message", str(error))
            else:
                code = None
                message = str(error)

            if code == USER_REJECTED_ERROR_CODE:
                raise UserRejectedRequest(message)

            raise WalletRequestFailed(f"{method} failed: {message}", code)

        return response.get("result")

    def send_transaction(self, to: HexAddress, data: bytes, value: int = 0, gas: int | None = None) -> HexBytes:
        tx = {
            "from": self.address,
            "to": Web3.to_checksum_address(to),
            "data": "0x" + bytes(data).hex(),
            "value": hex(value),
        }
        if gas:
            tx["gas"] = hex(gas)
        tx_hash = self.make_request("eth_sendTransaction", [tx])
        logger.info("Provider broadcasted transaction %s from %s", tx_hash, self.address)
        return HexBytes(tx_hash)

    def get_capabilities(self, chain_id: int) -> dict:
        try:
            result = self.make_request("wallet_getCapabilities", [self.address, [hex(chain_id)]])
        except UserRejectedRequest:
            raise
        except WalletRequestFailed as e:
            # Wallet does not speak EIP-5792
            logger.info("wallet_getCapabilities not available: %s", e)
            return {}

        if not result:
            return {}

        # Keys are hex chain ids, some wallets use "0x0" for capabilities shared across chains
        for key in (hex(chain_id), str(chain_id), "0x0"):
            if key in result:
                return result[key]
        return {}

    def send_calls(self, chain_id: int, calls: list[dict], atomic_required=True) -> str:
        params = {
            "version": SEND_CALLS_VERSION,
            "chainId": hex(chain_id),
            "from": self.address,
            "atomicRequired": atomic_required,
            "calls": calls,
        }
        result = self.make_request("wallet_sendCalls", [params])
        # v2 returns {"id": ...}, v1 returned the id string
        if isinstance(result, dict):
            bundle_id = result["id"]
        else:
            bundle_id = result
        logger.info("Sent call bundle %s with %d calls", bundle_id, len(calls))
        return bundle_id

    def get_calls_status(self, bundle_id: str) -> dict | None:
        try:
            return self.make_request("wallet_getCallsStatus", [bundle_id])
        except WalletRequestFailed as e:
            if e.code in (METHOD_NOT_FOUND_ERROR_CODE, UNSUPPORTED_METHOD_ERROR_CODE):
                return None
            raise

"""Wallet interface.

The orchestrator needs two things from a wallet:

- Send a plain transaction, used to call a smart wallet ``executeBatch()``

- Optionally, send an atomic EIP-5792 call bundle with ``wallet_sendCalls``

`See EIP-5792 <https://eips.ethereum.org/EIPS/eip-5792>`__.
"""

from abc import ABC, abstractmethod

from eth_typing import HexAddress
from hexbytes import HexBytes


#: EIP-1193 user rejected the request
USER_REJECTED_ERROR_CODE = 4001

#: EIP-1193 the requested method is not supported by the wallet
UNSUPPORTED_METHOD_ERROR_CODE = 4200

#: EIP-5792 ``atomic.status`` values that let us request an atomic bundle
ATOMIC_CAPABLE_STATUSES = ("supported", "ready")


class WalletRequestFailed(Exception):
    """The wallet or the node refused a request."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class UserRejectedRequest(WalletRequestFailed):
    """The user declined the signature prompt."""

    def __init__(self, message="User rejected the request"):
        super().__init__(message, USER_REJECTED_ERROR_CODE)


class BaseWallet(ABC):
    """Abstract base class for wallets the deployment can be signed with."""

    @property
    @abstractmethod
    def address(self) -> HexAddress:
        """Get the wallet's Ethereum address."""
        pass

    @abstractmethod
    def send_transaction(self, to: HexAddress, data: bytes, value: int = 0, gas: int | None = None) -> HexBytes:
        """Sign and broadcast a transaction.

        One signature prompt.

        :return:
            Transaction hash

        :raise UserRejectedRequest:
            User declined

        :raise WalletRequestFailed:
            The wallet or the node refused the transaction
        """

    @abstractmethod
    def get_capabilities(self, chain_id: int) -> dict:
        """EIP-5792 capabilities of this wallet on a chain.

        :return:
            Capability dict of the chain, e.g. ``{"atomic": {"status": "supported"}}``.
            Empty dict if the wallet does not speak EIP-5792.
        """

    @abstractmethod
    def send_calls(self, chain_id: int, calls: list[dict], atomic_required=True) -> str:
        """Send an EIP-5792 call bundle.

        One signature prompt.

        :param calls:
            List of ``{"to", "data", "value"}``

        :return:
            Call bundle id
        """

    @abstractmethod
    def get_calls_status(self, bundle_id: str) -> dict | None:
        """EIP-5792 ``wallet_getCallsStatus``.

        :return:
            Status response, or ``None`` if the wallet does not support status queries
        """

    def get_atomic_status(self, chain_id: int) -> str:
        """Can this wallet execute an atomic batch on a chain.

        Understands both the current ``atomic.status`` capability
        and the older ``atomicBatch.supported`` flag.

        :return:
            ``supported``, ``ready`` or ``unsupported``
        """
        capabilities = self.get_capabilities(chain_id) or {}

        atomic = capabilities.get("atomic")
        if isinstance(atomic, dict) and atomic.get("status"):
            return atomic["status"]

        legacy = capabilities.get("atomicBatch")
        if isinstance(legacy, dict) and legacy.get("supported"):
            return "supported"

        return "unsupported"

    def can_batch_atomically(self, chain_id: int) -> bool:
        return self.get_atomic_status(chain_id) in ATOMIC_CAPABLE_STATUSES

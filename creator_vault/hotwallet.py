"""Local private key wallet.

- A hot wallet keeps a plain text private key in the process memory
  using :py:class:`eth_account.signers.local.LocalAccount` and a nonce counter

- It can sign the single ``executeBatch()`` transaction of the smart wallet deployment path

- It cannot send EIP-5792 call bundles, so deploying with the hot wallet itself as the owner
  fails with :py:class:`creator_vault.errors.CapabilityError`
"""

import logging
from typing import NamedTuple, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.exceptions import Web3Exception

from creator_vault.basewallet import BaseWallet, WalletRequestFailed


logger = logging.getLogger(__name__)


#: Multiply ``eth_estimateGas`` result, deployments are gas hungry and estimates are tight
GAS_LIMIT_MARGIN = 1.2


class SignedTransactionWithNonce(NamedTuple):
    """A signed transaction and the nonce used to sign it.

    Retains the source transaction, so we can diagnose broadcasting failures.
    """

    raw_transaction: HexBytes

    hash: HexBytes

    #: What was the source nonce for this transaction
    nonce: int

    #: Whas was the source address for this trasaction
    address: str

    #: Unencoded transaction data as a dict.
    source: Optional[dict] = None

    def __repr__(self):
        return f"<SignedTransactionWithNonce hash:{self.hash.hex()} nonce:{self.nonce}>"


def get_tx_broadcast_data(signed_tx) -> HexBytes:
    """Get raw transaction bytes.

    eth_account changed ``rawTransaction`` to ``raw_transaction``, handle both.
    """
    if hasattr(signed_tx, "raw_transaction"):
        return HexBytes(signed_tx.raw_transaction)
    return HexBytes(signed_tx.rawTransaction)


class HotWallet(BaseWallet):
    """Hot wallet for signing the deployment transaction.

    Example:

    .. code-block:: python

        wallet = HotWallet.from_private_key(os.environ["PRIVATE_KEY"], web3)
        wallet.sync_nonce()

    .. note ::

        This class is not thread safe. If multiple threads try to sign transactions
        at the same time, nonce tracking may be lost.
    """

    def __init__(self, account: LocalAccount, web3: Web3 | None = None):
        """Create a hot wallet from a local account.

        :param web3:
            Needed for broadcasting. Signing works without.
        """
        self.account = account
        self.web3 = web3
        self.current_nonce: Optional[int] = None

    def __repr__(self):
        return f"<Hot wallet {self.account.address}>"

    @property
    def address(self) -> HexAddress:
        """Ethereum address of the wallet."""
        return self.account.address

    def sync_nonce(self, web3: Web3 | None = None):
        """Initialise the current nonce from the on-chain data."""
        web3 = web3 or self.web3
        assert web3, "No web3 connection"
        new_nonce = web3.eth.get_transaction_count(self.account.address)
        if self.current_nonce and new_nonce < self.current_nonce:
            logger.warning(
                "Nonce sync failed, read onchain nonce %d that is older than our current nonce: %d",
                new_nonce,
                self.current_nonce,
            )
            return
        self.current_nonce = new_nonce
        logger.info("Synced nonce for %s to %d", self.account.address, self.current_nonce)

    def allocate_nonce(self) -> int:
        """Get the next free available nonce to be used with a transaction.

        Increase the nonce counter
        """
        assert self.current_nonce is not None, f"Nonce is not yet synced from the blockchain: {self}"
        nonce = self.current_nonce
        self.current_nonce += 1
        return nonce

    def sign_transaction_with_new_nonce(self, tx: dict) -> SignedTransactionWithNonce:
        """Signs a transaction and allocates a nonce for it.

        :param tx:
            Ethereum transaction data as a dict.
            This is modified in-place to include nonce.
        """
        assert type(tx) == dict
        assert "nonce" not in tx
        tx["nonce"] = self.allocate_nonce()
        _signed = self.account.sign_transaction(tx)
        return SignedTransactionWithNonce(
            raw_transaction=get_tx_broadcast_data(_signed),
            hash=HexBytes(_signed.hash),
            nonce=tx["nonce"],
            address=self.address,
            source=tx,
        )

    def fill_in_gas(self, tx: dict) -> dict:
        """Fill in gas limit and EIP-1559 fees for a transaction."""
        web3 = self.web3
        if "gas" not in tx:
            tx["gas"] = int(web3.eth.estimate_gas(tx) * GAS_LIMIT_MARGIN)

        if "maxFeePerGas" not in tx and "gasPrice" not in tx:
            base_fee = web3.eth.get_block("latest").get("baseFeePerGas")
            if base_fee is None:
                tx["gasPrice"] = web3.eth.gas_price
            else:
                priority_fee = web3.eth.max_priority_fee
                tx["maxPriorityFeePerGas"] = priority_fee
                tx["maxFeePerGas"] = 2 * base_fee + priority_fee
        return tx

    def send_transaction(self, to: HexAddress, data: bytes, value: int = 0, gas: int | None = None) -> HexBytes:
        assert self.web3, "HotWallet needs a web3 connection to broadcast"

        if self.current_nonce is None:
            self.sync_nonce()

        tx = {
            "from": self.address,
            "to": Web3.to_checksum_address(to),
            "data": HexBytes(data),
            "value": value,
            "chainId": self.web3.eth.chain_id,
        }
        if gas:
            tx["gas"] = gas

        try:
            self.fill_in_gas(tx)
            signed = self.sign_transaction_with_new_nonce(tx)
            tx_hash = self.web3.eth.send_raw_transaction(signed.raw_transaction)
        except (ValueError, Web3Exception) as e:
            # Nonce may or may not have been consumed
            self.current_nonce = None
            raise WalletRequestFailed(f"Could not broadcast transaction to {to}: {e}") from e

        logger.info("Broadcasted transaction %s from %s, nonce %d", tx_hash.hex(), self.address, signed.nonce)
        return HexBytes(tx_hash)

    def get_capabilities(self, chain_id: int) -> dict:
        # A plain EOA key cannot batch
        return {}

    def send_calls(self, chain_id: int, calls: list[dict], atomic_required=True) -> str:
        raise WalletRequestFailed("Hot wallet does not support wallet_sendCalls")

    def get_calls_status(self, bundle_id: str) -> dict | None:
        return None

    @staticmethod
    def from_private_key(key: str, web3: Web3 | None = None) -> "HotWallet":
        """Create a hot wallet from a private key that is passed in as a hex string.

        .. code-block::

            # Generated with  openssl rand -hex 32
            wallet = HotWallet.from_private_key("0x54c137e27d2930f7b3433249c5f07b37ddcfea70871c0a4ef9e0f65655faf957")

        :param key: 0x prefixed hex string
        :return: Ready to go hot wallet account
        """
        assert type(key) == str, f"Expected private key as string, got {type(key)}"
        assert key.startswith("0x"), f"This system assumes private keys are prefixed with 0x, your key starts with {key[0:8]}... Please add 0x prefix to your private key hex string"
        account = Account.from_key(key)
        return HotWallet(account, web3)

"""Atomic batch execution.

Two mutually exclusive ways to get the deployment batch on-chain in one signature,
selected once per request by :py:func:`select_execution_strategy`:

- :py:class:`SmartWalletExecution`: the owner is a Coinbase smart wallet controlled by the signer.
  The signer sends one transaction calling ``owner.executeBatch(calls)``,
  so the smart wallet is ``msg.sender`` of every inner call.

- :py:class:`DirectBatchExecution`: the owner is the signer.
  The calls go out as one EIP-5792 ``wallet_sendCalls`` bundle with ``atomicRequired``.

We never fall back to sending calls one by one: contracts deployed but not wired
is a state the preflight checks of a retry cannot detect.
"""

import datetime
import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from eth_typing import ChecksumAddress

from creator_vault.abi import encode_with_signature
from creator_vault.basewallet import ATOMIC_CAPABLE_STATUSES, BaseWallet, UserRejectedRequest, WalletRequestFailed
from creator_vault.batch import DeploymentBatch
from creator_vault.confirmation import DEFAULT_CONFIRMATION_TIMEOUT, DEFAULT_POLL_DELAY, wait_for_calls_status, wait_for_receipt
from creator_vault.errors import CapabilityError, SubmissionError
from creator_vault.plan import DeploymentRequest
from creator_vault.reader import ChainReader


logger = logging.getLogger(__name__)


#: Coinbase smart wallet batch entry point
EXECUTE_BATCH_SIGNATURE = "executeBatch((address,uint256,bytes)[])"


class SubmissionKind(enum.Enum):
    """What identifier the user gets back from the wallet."""

    #: A transaction hash
    transaction = "transaction"

    #: An EIP-5792 call bundle id
    call_bundle = "call_bundle"


@dataclass(slots=True, frozen=True)
class SubmissionResult:
    """Submitted deployment."""

    kind: SubmissionKind

    #: Transaction hash or call bundle id
    identifier: str


class ExecutionStrategy(ABC):
    """Get a deployment batch on-chain atomically."""

    #: Human readable name for logs
    name: str = "abstract"

    def __init__(
        self,
        wallet: BaseWallet,
        reader: ChainReader,
        chain_id: int,
        max_timeout: datetime.timedelta = DEFAULT_CONFIRMATION_TIMEOUT,
        poll_delay: datetime.timedelta = DEFAULT_POLL_DELAY,
    ):
        self.wallet = wallet
        self.reader = reader
        self.chain_id = chain_id
        self.max_timeout = max_timeout
        self.poll_delay = poll_delay

    def __repr__(self):
        return f"<{self.__class__.__name__} signer {self.wallet.address}>"

    @abstractmethod
    def check_capability(self):
        """Check the wallet can execute this strategy, before any prompt.

        :raise CapabilityError:
        """

    @abstractmethod
    def _submit(self, batch: DeploymentBatch) -> SubmissionResult:
        pass

    @abstractmethod
    def wait_for_inclusion(self, submission: SubmissionResult):
        """Wait for the submission to be mined, if the wallet lets us know.

        :raise SubmissionError:
            The chain or the wallet reports the batch failed
        """

    def submit(self, batch: DeploymentBatch) -> SubmissionResult:
        """Ask for one signature and send the whole batch.

        :raise SubmissionError:
            User rejected or the wallet refused. Nothing was deployed.
        """
        logger.info("Submitting %d calls with %s", len(batch.calls), self)
        try:
            return self._submit(batch)
        except UserRejectedRequest as e:
            raise SubmissionError("Signature request rejected", str(e), user_rejected=True) from e
        except WalletRequestFailed as e:
            raise SubmissionError("Wallet failed to submit the deployment", str(e)) from e


class SmartWalletExecution(ExecutionStrategy):
    """Signer sends ``owner.executeBatch()``."""

    name = "smart wallet"

    def __init__(self, wallet: BaseWallet, reader: ChainReader, chain_id: int, owner: ChecksumAddress, **kwargs):
        super().__init__(wallet, reader, chain_id, **kwargs)
        self.owner = owner

    def __repr__(self):
        return f"<SmartWalletExecution signer {self.wallet.address} owner {self.owner}>"

    def check_capability(self):
        # Preflight has checked the owner accepts the signer, a plain transaction is all we need
        pass

    def encode_execute_batch(self, batch: DeploymentBatch) -> bytes:
        return encode_with_signature(
            EXECUTE_BATCH_SIGNATURE,
            [[call.as_execute_batch_tuple() for call in batch.calls]],
        )

    def _submit(self, batch: DeploymentBatch) -> SubmissionResult:
        tx_hash = self.wallet.send_transaction(self.owner, self.encode_execute_batch(batch))
        return SubmissionResult(
            kind=SubmissionKind.transaction,
            identifier="0x" + tx_hash.hex().removeprefix("0x"),
        )

    def wait_for_inclusion(self, submission: SubmissionResult):
        wait_for_receipt(self.reader, submission.identifier, max_timeout=self.max_timeout, poll_delay=self.poll_delay)


class DirectBatchExecution(ExecutionStrategy):
    """Signer sends an atomic EIP-5792 call bundle."""

    name = "direct batch"

    def check_capability(self):
        status = self.wallet.get_atomic_status(self.chain_id)
        if status not in ATOMIC_CAPABLE_STATUSES:
            raise CapabilityError(f"wallet_getCapabilities reports atomic status {status} on chain {self.chain_id} for {self.wallet.address}")

    def _submit(self, batch: DeploymentBatch) -> SubmissionResult:
        bundle_id = self.wallet.send_calls(
            self.chain_id,
            [call.as_rpc_call() for call in batch.calls],
            atomic_required=True,
        )
        return SubmissionResult(kind=SubmissionKind.call_bundle, identifier=bundle_id)

    def wait_for_inclusion(self, submission: SubmissionResult):
        wait_for_calls_status(self.wallet, submission.identifier, max_timeout=self.max_timeout, poll_delay=self.poll_delay)


def select_execution_strategy(
    request: DeploymentRequest,
    wallet: BaseWallet,
    reader: ChainReader,
    max_timeout: datetime.timedelta = DEFAULT_CONFIRMATION_TIMEOUT,
    poll_delay: datetime.timedelta = DEFAULT_POLL_DELAY,
) -> ExecutionStrategy:
    """Pick the execution path for a request.

    :param request:
        Request with the owner resolved
    """
    kwargs = dict(max_timeout=max_timeout, poll_delay=poll_delay)
    if request.is_delegated(wallet.address):
        return SmartWalletExecution(wallet, reader, request.chain_id, request.get_owner(), **kwargs)
    return DirectBatchExecution(wallet, reader, request.chain_id, **kwargs)

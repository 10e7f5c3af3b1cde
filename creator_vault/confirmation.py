"""Wait for a submitted deployment to land.

The authoritative signal is bytecode presence at every predicted address:
it works for both execution paths, and for a smart wallet batch
the outer transaction may succeed while what we care about are the inner deployments.

Receipt and EIP-5792 status waiters give earlier and more specific failures.
"""

import datetime
import logging
import time
from typing import Collection

from eth_typing import HexAddress
from hexbytes import HexBytes

from creator_vault.basewallet import BaseWallet, WalletRequestFailed
from creator_vault.errors import ConfirmationTimeoutError, PartiallyRevertedError, SubmissionError
from creator_vault.reader import CallFailed, ChainReader


logger = logging.getLogger(__name__)


#: How long we wait for the deployment to land
DEFAULT_CONFIRMATION_TIMEOUT = datetime.timedelta(minutes=2)

#: How often we poll
DEFAULT_POLL_DELAY = datetime.timedelta(seconds=2)


#: EIP-5792 ``wallet_getCallsStatus`` v2 status codes
CALLS_STATUS_PENDING = 100
CALLS_STATUS_CONFIRMED = 200
CALLS_STATUS_OFFCHAIN_FAILURE = 400
CALLS_STATUS_REVERTED = 500
CALLS_STATUS_PARTIALLY_REVERTED = 600


def wait_for_bytecode(
    reader: ChainReader,
    addresses: Collection[HexAddress],
    max_timeout=DEFAULT_CONFIRMATION_TIMEOUT,
    poll_delay=DEFAULT_POLL_DELAY,
    submission_id: str | None = None,
) -> dict[HexAddress, HexBytes]:
    """Poll until every address carries code.

    Use simple poll loop, no background tasks.
    Failed reads are retried until the timeout: after submission
    a flaky node must not turn into a "not deployed" answer.

    :param addresses:
        Predicted addresses of the deployment

    :param submission_id:
        Transaction hash or call bundle id, reported on timeout

    :return:
        Address -> deployed bytecode

    :raise ConfirmationTimeoutError:
        Some addresses still had no code after ``max_timeout``
    """
    assert isinstance(poll_delay, datetime.timedelta)
    assert isinstance(max_timeout, datetime.timedelta)

    logger.info("Waiting bytecode at %d addresses, timeout is %s", len(addresses), max_timeout)

    started_at = time.monotonic()
    deadline = started_at + max_timeout.total_seconds()
    pending = list(addresses)
    deployed = {}
    attempt = 0
    last_error = None

    while True:
        attempt += 1
        try:
            codes = reader.get_codes(pending)
        except CallFailed as e:
            logger.warning("Poll %d: could not read bytecode: %s", attempt, e)
            last_error = e
            codes = {}

        for address, code in codes.items():
            if len(code) > 0:
                deployed[address] = code

        pending = [a for a in pending if a not in deployed]
        if not pending:
            logger.info("All %d contracts deployed after %d polls, %.1fs", len(deployed), attempt, time.monotonic() - started_at)
            return deployed

        logger.debug("Poll %d: still waiting bytecode at %s", attempt, pending)

        if time.monotonic() >= deadline:
            details = f"Timed out after {max_timeout} ({max_timeout.total_seconds()}s). Poll delay: {poll_delay.total_seconds()}s. No code at: {', '.join(pending)}"
            if last_error:
                details += f"\nLast read error: {last_error}"
            raise ConfirmationTimeoutError(
                "Timed out waiting for deployed bytecode",
                submission_id,
                details,
            )

        time.sleep(poll_delay.total_seconds())


def wait_for_receipt(
    reader: ChainReader,
    tx_hash: HexBytes | str,
    max_timeout=DEFAULT_CONFIRMATION_TIMEOUT,
    poll_delay=DEFAULT_POLL_DELAY,
) -> dict:
    """Wait for a transaction receipt.

    :return:
        Receipt of a successful transaction

    :raise SubmissionError:
        The transaction reverted, nothing was deployed

    :raise ConfirmationTimeoutError:
        No receipt after ``max_timeout``, or the node kept refusing to tell us
    """
    assert isinstance(poll_delay, datetime.timedelta)
    assert isinstance(max_timeout, datetime.timedelta)

    tx_hash = HexBytes(tx_hash)
    tx_hash_str = "0x" + tx_hash.hex().removeprefix("0x")

    logger.info("Waiting transaction %s to confirm, timeout is %s", tx_hash_str, max_timeout)

    deadline = time.monotonic() + max_timeout.total_seconds()
    last_error = None
    while True:
        try:
            receipt = reader.get_transaction_receipt(tx_hash)
        except CallFailed as e:
            logger.warning("Could not read receipt for %s: %s", tx_hash_str, e)
            last_error = e
            receipt = None

        if receipt:
            if receipt.get("status") == 0:
                raise SubmissionError(
                    "Deployment transaction reverted",
                    f"Transaction {tx_hash_str} reverted in block {receipt.get('blockNumber')}, nothing was deployed",
                )
            logger.info("Confirmed tx %s in block %s", tx_hash_str, receipt.get("blockNumber"))
            return receipt

        if time.monotonic() >= deadline:
            details = f"No receipt after {max_timeout} ({max_timeout.total_seconds()}s)"
            if last_error:
                details += f"\nLast read error: {last_error}"
            raise ConfirmationTimeoutError(
                "Timed out waiting for the deployment transaction",
                tx_hash_str,
                details,
            )

        time.sleep(poll_delay.total_seconds())


def _normalise_calls_status(status) -> int | None:
    """Map v1 string statuses to v2 codes."""
    if isinstance(status, int):
        return status
    if isinstance(status, str):
        if status.upper() == "PENDING":
            return CALLS_STATUS_PENDING
        if status.upper() == "CONFIRMED":
            return CALLS_STATUS_CONFIRMED
        if status.isdigit():
            return int(status)
    return None


def wait_for_calls_status(
    wallet: BaseWallet,
    bundle_id: str,
    max_timeout=DEFAULT_CONFIRMATION_TIMEOUT,
    poll_delay=DEFAULT_POLL_DELAY,
) -> dict | None:
    """Follow an EIP-5792 call bundle with ``wallet_getCallsStatus``.

    This is a best effort early signal. If the wallet cannot tell us, fails to answer,
    or does not reach a final status in time, return ``None`` and let the bytecode poll decide.

    :return:
        Final status response, or ``None`` if unknown

    :raise SubmissionError:
        Wallet reports the bundle failed as a whole

    :raise PartiallyRevertedError:
        Wallet reports only some of the calls reverted
    """
    assert isinstance(poll_delay, datetime.timedelta)
    assert isinstance(max_timeout, datetime.timedelta)

    deadline = time.monotonic() + max_timeout.total_seconds()
    while True:
        try:
            response = wallet.get_calls_status(bundle_id)
        except WalletRequestFailed as e:
            logger.warning("wallet_getCallsStatus failed for bundle %s, relying on bytecode polling: %s", bundle_id, e)
            return None

        if response is None:
            logger.info("Wallet does not support wallet_getCallsStatus, relying on bytecode polling")
            return None

        status = _normalise_calls_status(response.get("status"))
        if status == CALLS_STATUS_PARTIALLY_REVERTED:
            raise PartiallyRevertedError(
                "Wallet reported the deployment batch partially reverted",
                bundle_id,
                f"Call bundle {bundle_id} status {status}: {response}. Some contracts may be deployed without wiring",
            )

        if status is not None and status >= CALLS_STATUS_OFFCHAIN_FAILURE:
            raise SubmissionError(
                "Wallet reported the deployment batch failed",
                f"Call bundle {bundle_id} status {status}: {response}",
            )

        if status == CALLS_STATUS_CONFIRMED:
            logger.info("Call bundle %s confirmed", bundle_id)
            return response

        if time.monotonic() >= deadline:
            logger.warning("Call bundle %s still has status %s after %s, relying on bytecode polling", bundle_id, status, max_timeout)
            return None

        time.sleep(poll_delay.total_seconds())

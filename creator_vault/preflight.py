"""Read-only checks before asking for a signature.

A failed constructor in the middle of an atomic batch reverts everything,
but only after the user has paid for gas and looked at a wallet prompt.
All the conditions we can detect up front are checked here:

1. The signer controls the owner smart wallet (only when owner is not the signer)

2. Shared infrastructure contracts exist

3. None of the predicted addresses carry code. This also makes retries safe:
   a second attempt with the same input after a landed deployment is rejected here

4. The registry gives us a messaging endpoint for this chain

5. Optionally, the creator coin pays out to the gauge controller we are about to deploy

Checks are independent reads, dispatched in parallel.
When several fail, the error is picked in the above order so the user sees the most actionable one.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable

from eth_typing import ChecksumAddress, HexAddress
from web3 import Web3

from creator_vault.abi import ZERO_ADDRESS_STR
from creator_vault.errors import (
    AlreadyDeployedError,
    EndpointNotResolvedError,
    MissingDependencyError,
    OwnerNotDeployedError,
    PayoutRecipientMismatchError,
    SignerNotAuthorizedError,
)
from creator_vault.plan import DeploymentPlan
from creator_vault.reader import CallFailed, ChainReader


logger = logging.getLogger(__name__)


#: Coinbase smart wallet ownership view
IS_OWNER_ADDRESS_SIGNATURE = "isOwnerAddress(address)"

#: Registry view giving the LayerZero endpoint of a chain
GET_LAYER_ZERO_ENDPOINT_SIGNATURE = "getLayerZeroEndpoint(uint16)"

#: Creator coin view
PAYOUT_RECIPIENT_SIGNATURE = "payoutRecipient()"

#: Registry and bootstrap registry take the chain id as uint16
MAX_ENDPOINT_CHAIN_ID = 2**16 - 1


@dataclass(slots=True, frozen=True)
class PreflightResult:
    """What the batch planner needs to know about the current chain state."""

    #: The bootstrap registry singleton is already deployed on this chain
    bootstrap_exists: bool

    #: Messaging endpoint to configure on the bootstrap registry
    lz_endpoint: ChecksumAddress


def check_owner_authorization(reader: ChainReader, owner: HexAddress, signer: HexAddress):
    """Check the signer can execute calls through the owner smart wallet.

    :raise OwnerNotDeployedError:
        Owner has no code

    :raise SignerNotAuthorizedError:
        Owner does not recognise the signer, or is not a supported smart wallet
    """
    if not reader.has_code(owner):
        raise OwnerNotDeployedError(owner)

    try:
        ok = reader.read(owner, IS_OWNER_ADDRESS_SIGNATURE, [signer], ["bool"])
    except CallFailed as e:
        raise SignerNotAuthorizedError(
            owner,
            signer,
            f"{owner} is not a supported smart wallet: isOwnerAddress() failed: {e}",
        ) from e

    if not ok:
        raise SignerNotAuthorizedError(owner, signer)


def check_dependencies(reader: ChainReader, plan: DeploymentPlan):
    """Check every pre-deployed contract the batch touches has bytecode.

    :raise MissingDependencyError:
        Listing every missing contract
    """
    request = plan.request
    deps = plan.infrastructure.get_dependencies(request.include_oracle)
    deps["creator token"] = request.creator_token

    codes = reader.get_codes(list(deps.values()))
    missing = {label: address for label, address in deps.items() if len(codes[address]) == 0}
    if missing:
        raise MissingDependencyError(missing)


def check_collisions(reader: ChainReader, plan: DeploymentPlan) -> bool:
    """Check predicted addresses are free.

    :return:
        Whether the bootstrap registry already exists

    :raise AlreadyDeployedError:
        Listing every occupied address
    """
    targets = plan.addresses.get_collision_targets()
    bootstrap = plan.addresses.oft_bootstrap_registry
    codes = reader.get_codes(list(targets.values()) + [bootstrap])
    collisions = {name: address for name, address in targets.items() if len(codes[address]) > 0}
    if collisions:
        raise AlreadyDeployedError(collisions)
    return len(codes[bootstrap]) > 0


def resolve_endpoint(reader: ChainReader, plan: DeploymentPlan) -> ChecksumAddress:
    """Ask the registry for this chain's messaging endpoint.

    We never fall back to a default endpoint.

    :raise EndpointNotResolvedError:
        Registry reverted or returned the zero address
    """
    chain_id = plan.request.chain_id
    registry = plan.infrastructure.registry

    if chain_id > MAX_ENDPOINT_CHAIN_ID:
        raise EndpointNotResolvedError(
            "Failed to resolve LayerZero endpoint from registry",
            f"Chain id {chain_id} does not fit uint16 used by the registry",
        )

    try:
        endpoint = reader.read(registry, GET_LAYER_ZERO_ENDPOINT_SIGNATURE, [chain_id], ["address"])
    except CallFailed as e:
        raise EndpointNotResolvedError(
            "Failed to resolve LayerZero endpoint from registry",
            f"{registry}.getLayerZeroEndpoint({chain_id}) failed: {e}",
        ) from e

    if endpoint.lower() == ZERO_ADDRESS_STR:
        raise EndpointNotResolvedError(
            "Failed to resolve LayerZero endpoint from registry",
            f"{registry}.getLayerZeroEndpoint({chain_id}) is not configured",
        )

    return Web3.to_checksum_address(endpoint)


def check_payout_recipient(reader: ChainReader, plan: DeploymentPlan):
    """Creator coin must pay fees to the gauge controller.

    :raise PayoutRecipientMismatchError:
    """
    expected = plan.addresses.gauge_controller
    try:
        actual = reader.read(plan.request.creator_token, PAYOUT_RECIPIENT_SIGNATURE, [], ["address"])
    except CallFailed as e:
        raise PayoutRecipientMismatchError(expected, None) from e

    if actual.lower() != expected.lower():
        raise PayoutRecipientMismatchError(expected, Web3.to_checksum_address(actual))


def run_preflight(
    reader: ChainReader,
    plan: DeploymentPlan,
    signer: HexAddress,
    max_workers=5,
) -> PreflightResult:
    """Perform all preflight checks.

    :param plan:
        Addresses computed for the request

    :param signer:
        The account that will sign the deployment transaction or call bundle

    :raise PreflightError:
        The first failed check, in priority order
    """
    request = plan.request
    owner = request.get_owner()

    checks: dict[str, Callable] = {}
    if request.is_delegated(signer):
        checks["owner"] = lambda: check_owner_authorization(reader, owner, signer)
    checks["dependencies"] = lambda: check_dependencies(reader, plan)
    checks["collisions"] = lambda: check_collisions(reader, plan)
    checks["endpoint"] = lambda: resolve_endpoint(reader, plan)
    if request.check_payout_recipient:
        checks["payout_recipient"] = lambda: check_payout_recipient(reader, plan)

    logger.info("Running %d preflight checks for owner %s, signer %s", len(checks), owner, signer)

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {name: executor.submit(func) for name, func in checks.items()}

    # Dict preserves insertion order, which is our priority order
    for name, future in futures.items():
        exc = future.exception()
        if exc is not None:
            logger.warning("Preflight check %s failed: %s", name, exc)
            raise exc

    result = PreflightResult(
        bootstrap_exists=futures["collisions"].result(),
        lz_endpoint=futures["endpoint"].result(),
    )
    logger.info("Preflight passed, bootstrap registry exists: %s, endpoint: %s", result.bootstrap_exists, result.lz_endpoint)
    return result

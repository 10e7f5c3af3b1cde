"""Deployment call batch planning.

Build the ordered list of calls executed atomically in one signature:

1. Local deployer: vault, wrapper

2. Universal factory: bootstrap registry (only if it does not exist yet),
   its messaging endpoint for this chain (always, same value is safe to repeat),
   share token

3. Local deployer: gauge controller, launch strategy, optional oracle

4. Wiring between the deployed contracts

A call targeting a planned contract never comes before the call deploying it.
:py:func:`check_call_order` enforces this on every batch we build.

Each wiring call with an on-chain getter carries a :py:class:`WiringEdge`,
re-read by :py:mod:`creator_vault.verification` after the batch has landed.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from eth_typing import ChecksumAddress
from hexbytes import HexBytes

from creator_vault.abi import encode_with_signature
from creator_vault.auction import get_price_grid
from creator_vault.errors import PlanningError
from creator_vault.plan import DeploymentPlan


logger = logging.getLogger(__name__)


class CallKind(enum.Enum):
    """What a call in the batch does."""

    #: CREATE2 through a factory
    deploy = "deploy"

    #: Configure the shared bootstrap registry
    bootstrap_config = "bootstrap_config"

    #: Cross-reference deployed contracts
    wiring = "wiring"


@dataclass(slots=True, frozen=True)
class Call:
    """One call of the atomic batch."""

    #: Contract or factory we call
    target: ChecksumAddress

    data: HexBytes

    #: Human readable, e.g. ``share_token.setMinter``
    label: str

    kind: CallKind

    #: ETH attached, always zero for our batches
    value: int = 0

    #: For deploy calls, the address the call creates
    deploys: ChecksumAddress | None = None

    def as_execute_batch_tuple(self) -> tuple[str, int, bytes]:
        """Coinbase smart wallet ``(address target, uint256 value, bytes data)``."""
        return (self.target, self.value, bytes(self.data))

    def as_rpc_call(self) -> dict:
        """EIP-5792 ``wallet_sendCalls`` call entry."""
        return {
            "to": self.target,
            "data": "0x" + self.data.hex().removeprefix("0x"),
            "value": hex(self.value),
        }


@dataclass(slots=True, frozen=True)
class WiringEdge:
    """An expected cross-reference between deployed contracts."""

    #: Short unique id, e.g. ``cca_strategy.approvedLaunchers``
    name: str

    #: Human readable explanation of what should hold
    description: str

    #: Contract we read
    target: ChecksumAddress

    #: View function Solidity signature, e.g. ``isMinter(address)``
    getter: str

    #: Arguments to the getter
    args: tuple = ()

    #: ``address`` or ``bool``
    output_type: str = "address"

    #: Value the getter must return
    expected: Any = None

    def matches(self, value: Any) -> bool:
        if self.output_type == "address":
            return isinstance(value, str) and value.lower() == self.expected.lower()
        return value == self.expected


@dataclass(slots=True)
class DeploymentBatch:
    """Ordered calls and the wiring they should produce."""

    plan: DeploymentPlan

    calls: list[Call] = field(default_factory=list)

    wiring_edges: list[WiringEdge] = field(default_factory=list)

    def get_calls(self, kind: CallKind) -> list[Call]:
        return [c for c in self.calls if c.kind == kind]

    def get_deployed_addresses(self) -> list[ChecksumAddress]:
        """Addresses that must carry code once the batch has landed.

        Includes the bootstrap registry even if it existed before.
        """
        return self.plan.addresses.get_all()

    def get_edge(self, name: str) -> WiringEdge:
        for edge in self.wiring_edges:
            if edge.name == name:
                return edge
        raise KeyError(f"No wiring edge {name}")


class _BatchBuilder:
    """Accumulate calls and edges."""

    def __init__(self, plan: DeploymentPlan):
        self.batch = DeploymentBatch(plan=plan)

    def deploy(self, name: str):
        deployment = self.batch.plan.get_deployment(name)
        self.batch.calls.append(
            Call(
                target=deployment.factory,
                data=deployment.encode_call_data(),
                label=f"deploy {deployment.contract_name}",
                kind=CallKind.deploy,
                deploys=deployment.address,
            )
        )

    def call(
        self,
        contract: str,
        function_signature: str,
        args: list,
        kind=CallKind.wiring,
        edge: tuple | None = None,
    ):
        """Add a call to a planned contract.

        :param contract:
            Field name in the predicted address set

        :param edge:
            ``(getter, getter args, output type, expected, description)`` if we can verify the call
        """
        target = getattr(self.batch.plan.addresses, contract)
        assert target is not None, f"{contract} not planned"
        function_name = function_signature.split("(")[0]
        self.batch.calls.append(
            Call(
                target=target,
                data=encode_with_signature(function_signature, args),
                label=f"{contract}.{function_name}",
                kind=kind,
            )
        )

        if edge:
            getter, getter_args, output_type, expected, description = edge
            self.batch.wiring_edges.append(
                WiringEdge(
                    name=f"{contract}.{getter.split('(')[0]}",
                    description=description,
                    target=target,
                    getter=getter,
                    args=tuple(getter_args),
                    output_type=output_type,
                    expected=expected,
                )
            )


def build_deployment_batch(
    plan: DeploymentPlan,
    bootstrap_exists: bool,
    lz_endpoint: ChecksumAddress,
) -> DeploymentBatch:
    """Plan all calls of a deployment.

    :param bootstrap_exists:
        Preflight found the bootstrap registry deployed, skip its deploy call

    :param lz_endpoint:
        Messaging endpoint resolved from the registry for this chain

    :raise PlanningError:
        Ordering invariant violated
    """
    request = plan.request
    infra = plan.infrastructure
    a = plan.addresses
    b = _BatchBuilder(plan)

    # Same chain contracts that the share token does not depend on
    b.deploy("vault")
    b.deploy("wrapper")

    # Cross-chain identical share token
    if not bootstrap_exists:
        b.deploy("oft_bootstrap_registry")
    b.call("oft_bootstrap_registry", "setLayerZeroEndpoint(uint16,address)", [request.chain_id, lz_endpoint], kind=CallKind.bootstrap_config)
    b.deploy("share_token")

    # Same chain contracts depending on the share token
    b.deploy("gauge_controller")
    b.deploy("cca_strategy")
    if request.include_oracle:
        b.deploy("oracle")

    # Wiring
    b.call(
        "wrapper",
        "setShareOFT(address)",
        [a.share_token],
        edge=("shareOFT()", [], "address", a.share_token, "Wrapper points to the share token"),
    )

    b.call("share_token", "setRegistry(address)", [infra.registry])
    b.call(
        "share_token",
        "setVault(address)",
        [a.vault],
        edge=("vault()", [], "address", a.vault, "Share token points to the vault"),
    )
    b.call(
        "share_token",
        "setMinter(address,bool)",
        [a.wrapper, True],
        edge=("isMinter(address)", [a.wrapper], "bool", True, "Wrapper is a share token minter"),
    )
    b.call(
        "share_token",
        "setGaugeController(address)",
        [a.gauge_controller],
        edge=("gaugeController()", [], "address", a.gauge_controller, "Share token fees route to the gauge controller"),
    )

    b.call(
        "gauge_controller",
        "setVault(address)",
        [a.vault],
        edge=("vault()", [], "address", a.vault, "Gauge controller points to the vault"),
    )
    b.call(
        "gauge_controller",
        "setWrapper(address)",
        [a.wrapper],
        edge=("wrapper()", [], "address", a.wrapper, "Gauge controller points to the wrapper"),
    )
    b.call(
        "gauge_controller",
        "setCreatorCoin(address)",
        [request.creator_token],
        edge=("creatorCoin()", [], "address", request.creator_token, "Gauge controller points to the creator coin"),
    )
    if infra.lottery_manager:
        b.call("gauge_controller", "setLotteryManager(address)", [infra.lottery_manager])
    if request.include_oracle:
        b.call(
            "gauge_controller",
            "setOracle(address)",
            [a.oracle],
            edge=("oracle()", [], "address", a.oracle, "Gauge controller points to the oracle"),
        )

    b.call(
        "vault",
        "setGaugeController(address)",
        [a.gauge_controller],
        edge=("gaugeController()", [], "address", a.gauge_controller, "Vault points to the gauge controller"),
    )
    b.call(
        "vault",
        "setWhitelist(address,bool)",
        [a.wrapper, True],
        edge=("whitelist(address)", [a.wrapper], "bool", True, "Wrapper is whitelisted on the vault"),
    )

    # Without this the activation batcher can never launch the auction
    b.call(
        "cca_strategy",
        "setApprovedLauncher(address,bool)",
        [infra.vault_activation_batcher, True],
        edge=(
            "approvedLaunchers(address)",
            [infra.vault_activation_batcher],
            "bool",
            True,
            "Launch strategy approves the vault activation batcher as a launcher",
        ),
    )

    if request.include_oracle:
        b.call(
            "cca_strategy",
            "setOracleConfig(address,address,address,address)",
            [a.oracle, infra.pool_manager, infra.tax_hook, a.gauge_controller],
        )

    if request.auction_floor_price_wei:
        grid = get_price_grid(request.auction_floor_price_wei)
        b.call("cca_strategy", "setDefaultTickSpacing(uint256)", [grid.tick_spacing_q96])

    batch = b.batch
    check_call_order(batch.calls, plan.addresses.get_all(), preexisting={a.oft_bootstrap_registry} if bootstrap_exists else set())

    logger.info(
        "Built deployment batch: %d deploy calls, %d wiring calls, %d verifiable edges, bootstrap registry exists: %s",
        len(batch.get_calls(CallKind.deploy)),
        len(batch.get_calls(CallKind.wiring)),
        len(batch.wiring_edges),
        bootstrap_exists,
    )
    return batch


def check_call_order(
    calls: list[Call],
    planned_addresses: list[ChecksumAddress],
    preexisting: set[ChecksumAddress] | None = None,
):
    """Check no call targets a planned contract before it is deployed.

    :param planned_addresses:
        Every address the plan predicts

    :param preexisting:
        Planned addresses that already have code and are not deployed by this batch

    :raise PlanningError:
        Describing the first offending call
    """
    preexisting = preexisting or set()
    planned = {a.lower() for a in planned_addresses}
    deployed = {a.lower() for a in preexisting}

    for idx, call in enumerate(calls):
        target = call.target.lower()
        if target in planned and target not in deployed:
            raise PlanningError(
                "Deployment batch is out of order",
                f"Call #{idx} {call.label} targets {call.target} before it is deployed",
            )

        if call.deploys:
            created = call.deploys.lower()
            if created in deployed:
                raise PlanningError(
                    "Deployment batch is out of order",
                    f"Call #{idx} {call.label} deploys {call.deploys}, which is already deployed",
                )
            deployed.add(created)

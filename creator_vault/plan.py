"""Deterministic deployment planning.

Turn a :py:class:`DeploymentRequest` into salts, init codes and the predicted address of every contract.
No I/O: the same request, infrastructure and bytecode always give the same plan,
so callers can preview addresses before connecting to a node, e.g.
to tell a creator which gauge controller must be set as their creator coin payout recipient.

Example:

.. code-block:: python

    request = DeploymentRequest(
        creator_token="0x...",
        share_symbol="wsAKITA",
        share_name="Wrapped Staked AKITA",
        chain_id=8453,
        owner="0x...",
    )
    plan = compute_deployment_plan(request, get_infrastructure(8453), load_deploy_bytecode("out"))
    print(plan.addresses.gauge_controller)
"""

import dataclasses
import enum
import logging
from dataclasses import dataclass

from eth_typing import ChecksumAddress, HexAddress
from hexbytes import HexBytes
from web3 import Web3

from creator_vault.abi import ZERO_ADDRESS_STR
from creator_vault.bytecode import CONTRACT_NAMES, DeployBytecode
from creator_vault.config import DeploymentInfrastructure
from creator_vault.create2 import encode_local_deployer_call, encode_universal_factory_call, make_init_code, predict_create2_address
from creator_vault.errors import PlanningError
from creator_vault.salt import SaltSet, derive_salts


logger = logging.getLogger(__name__)


class FactoryKind(enum.Enum):
    """Which CREATE2 factory deploys a contract."""

    #: Owned ``deploy(bytes32,bytes)`` contract on the current chain
    local_deployer = "local_deployer"

    #: Same address on every chain, takes ``salt ++ init_code``
    universal_factory = "universal_factory"


@dataclass(slots=True, frozen=True)
class DeploymentRequest:
    """What the user wants to deploy.

    Immutable for one deployment attempt.
    """

    #: The creator coin the vault accepts
    creator_token: HexAddress

    #: E.g. ``wsAKITA``
    share_symbol: str

    #: E.g. ``Wrapped Staked AKITA``
    share_name: str

    #: Target chain
    chain_id: int

    #: Address that will own the deployed contracts.
    #:
    #: If ``None`` the orchestrator uses the signer.
    #: If it differs from the signer, it must be a smart wallet the signer controls.
    owner: HexAddress | None = None

    #: Receives the creator share of gauge fees, defaults to the owner
    creator_treasury: HexAddress | None = None

    #: Deploy the price oracle and configure the launch strategy graduation venue
    include_oracle: bool = False

    #: Deployment version label mixed into salts.
    #:
    #: ``None`` gives the v1 addresses.
    salt_namespace: str | None = None

    #: Configure launch strategy auction tick spacing from this floor price (ETH wei per token)
    auction_floor_price_wei: int | None = None

    #: Require creator coin ``payoutRecipient()`` to already point to the predicted gauge controller
    check_payout_recipient: bool = False

    def __post_init__(self):
        if not self.share_symbol or not self.share_symbol.strip():
            raise PlanningError("Share token symbol missing")

        if not self.share_name or not self.share_name.strip():
            raise PlanningError("Share token name missing")

        if type(self.chain_id) != int or self.chain_id <= 0:
            raise PlanningError(f"Bad chain id: {self.chain_id}")

        if self.auction_floor_price_wei is not None and self.auction_floor_price_wei <= 0:
            raise PlanningError(f"Auction floor price must be positive, got {self.auction_floor_price_wei}")

        for name in ("creator_token", "owner", "creator_treasury"):
            value = getattr(self, name)
            if value is None:
                continue
            try:
                checksummed = Web3.to_checksum_address(value)
            except (ValueError, TypeError) as e:
                raise PlanningError(f"Bad {name} address: {value}") from e
            if checksummed == ZERO_ADDRESS_STR:
                raise PlanningError(f"{name} cannot be the zero address")
            object.__setattr__(self, name, checksummed)

    def get_owner(self) -> ChecksumAddress:
        """Owner address, after it has been resolved."""
        if self.owner is None:
            raise PlanningError("Deployment owner not resolved")
        return self.owner

    def get_creator_treasury(self) -> ChecksumAddress:
        return self.creator_treasury or self.get_owner()

    def resolve_owner(self, signer: HexAddress) -> "DeploymentRequest":
        """Fill in the owner as the signer, if not given.

        :return:
            A new request
        """
        if self.owner is not None:
            return self
        return dataclasses.replace(self, owner=signer)

    def is_delegated(self, signer: HexAddress) -> bool:
        """Do we deploy on behalf of a smart wallet instead of the signer itself."""
        return self.get_owner().lower() != signer.lower()


@dataclass(slots=True, frozen=True)
class ContractDeployment:
    """One CREATE2 deployment of the plan."""

    #: Field name in :py:class:`PredictedAddressSet`
    name: str

    #: Solidity contract name
    contract_name: str

    factory_kind: FactoryKind

    #: Address of the factory executing CREATE2
    factory: ChecksumAddress

    salt: HexBytes

    #: Bytecode and constructor arguments
    init_code: HexBytes

    #: Where the contract will land
    address: ChecksumAddress

    def encode_call_data(self) -> HexBytes:
        """Calldata sent to the factory."""
        if self.factory_kind == FactoryKind.local_deployer:
            return encode_local_deployer_call(self.salt, self.init_code)
        return encode_universal_factory_call(self.salt, self.init_code)


@dataclass(slots=True, frozen=True)
class PredictedAddressSet:
    """Predicted address of every contract of a deployment.

    Never mutated once computed.
    """

    vault: ChecksumAddress
    wrapper: ChecksumAddress
    share_token: ChecksumAddress
    gauge_controller: ChecksumAddress
    cca_strategy: ChecksumAddress

    #: Protocol singleton, may already exist from an earlier deployment
    oft_bootstrap_registry: ChecksumAddress

    #: Only if the oracle was requested
    oracle: ChecksumAddress | None = None

    def as_dict(self) -> dict[str, ChecksumAddress]:
        """All addresses, skipping the oracle if not planned."""
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self) if getattr(self, f.name) is not None}

    def get_collision_targets(self) -> dict[str, ChecksumAddress]:
        """Addresses that must be free before we deploy.

        The bootstrap registry is excluded, it is shared across all deployments.
        """
        targets = self.as_dict()
        del targets["oft_bootstrap_registry"]
        return targets

    def get_all(self) -> list[ChecksumAddress]:
        return list(self.as_dict().values())


@dataclass(slots=True, frozen=True)
class DeploymentPlan:
    """Everything computed from a request before touching the chain."""

    request: DeploymentRequest
    infrastructure: DeploymentInfrastructure
    salts: SaltSet
    addresses: PredictedAddressSet

    #: Field name -> deployment, in no particular order.
    #:
    #: Call order is decided by :py:mod:`creator_vault.batch`.
    deployments: dict[str, ContractDeployment]

    vault_name: str
    vault_symbol: str

    def get_deployment(self, name: str) -> ContractDeployment:
        assert name in self.deployments, f"{name} not part of this plan, we have {list(self.deployments.keys())}"
        return self.deployments[name]


def get_vault_naming(share_symbol: str) -> tuple[str, str]:
    """Vault ERC-20 name and symbol from the share symbol.

    ``wsAKITA`` -> ``("CreatorVault: AKITA", "sAKITA")``
    """
    underlying_symbol = share_symbol[2:] if share_symbol.startswith("ws") else share_symbol
    return f"CreatorVault: {underlying_symbol}", f"s{underlying_symbol}"


def compute_deployment_plan(
    request: DeploymentRequest,
    infrastructure: DeploymentInfrastructure,
    bytecode: DeployBytecode,
) -> DeploymentPlan:
    """Compute salts, init codes and addresses for a request.

    Pure function. Calling it twice with the same input gives an equal plan.

    :param request:
        Request with the owner resolved

    :raise PlanningError:
        Owner not resolved
    """

    owner = request.get_owner()
    treasury = request.get_creator_treasury()
    deployer = infrastructure.create2_deployer
    factory = infrastructure.create2_factory

    salts = derive_salts(
        request.creator_token,
        owner,
        request.chain_id,
        request.share_symbol,
        namespace=request.salt_namespace,
    )

    vault_name, vault_symbol = get_vault_naming(request.share_symbol)

    deployments: dict[str, ContractDeployment] = {}

    def _plan(name: str, kind: FactoryKind, salt: HexBytes, arg_types: list[str], args: list) -> ChecksumAddress:
        factory_address = deployer if kind == FactoryKind.local_deployer else factory
        init_code = make_init_code(getattr(bytecode, name), arg_types, args)
        address = predict_create2_address(factory_address, salt, init_code)
        deployments[name] = ContractDeployment(
            name=name,
            contract_name=CONTRACT_NAMES[name],
            factory_kind=kind,
            factory=factory_address,
            salt=salt,
            init_code=init_code,
            address=address,
        )
        return address

    bootstrap = _plan("oft_bootstrap_registry", FactoryKind.universal_factory, salts.oft_bootstrap_salt, [], [])

    vault = _plan(
        "vault",
        FactoryKind.local_deployer,
        salts.vault_salt,
        ["address", "address", "string", "string"],
        [request.creator_token, owner, vault_name, vault_symbol],
    )

    wrapper = _plan(
        "wrapper",
        FactoryKind.local_deployer,
        salts.wrapper_salt,
        ["address", "address", "address"],
        [request.creator_token, vault, owner],
    )

    # Constructor takes the bootstrap registry, replaced with the real registry by setRegistry() during wiring,
    # so the init code and the address stay the same on every chain
    share_token = _plan(
        "share_token",
        FactoryKind.universal_factory,
        salts.share_token_salt,
        ["string", "string", "address", "address"],
        [request.share_name, request.share_symbol, bootstrap, owner],
    )

    gauge = _plan(
        "gauge_controller",
        FactoryKind.local_deployer,
        salts.gauge_salt,
        ["address", "address", "address", "address"],
        [share_token, treasury, infrastructure.protocol_treasury, owner],
    )

    cca = _plan(
        "cca_strategy",
        FactoryKind.local_deployer,
        salts.cca_salt,
        ["address", "address", "address", "address", "address"],
        [share_token, ZERO_ADDRESS_STR, vault, vault, owner],
    )

    oracle = None
    if request.include_oracle:
        oracle = _plan(
            "oracle",
            FactoryKind.local_deployer,
            salts.oracle_salt,
            ["address", "address", "string", "address"],
            [infrastructure.registry, infrastructure.chainlink_eth_usd, request.share_symbol, owner],
        )

    addresses = PredictedAddressSet(
        vault=vault,
        wrapper=wrapper,
        share_token=share_token,
        gauge_controller=gauge,
        cca_strategy=cca,
        oft_bootstrap_registry=bootstrap,
        oracle=oracle,
    )

    logger.info(
        "Planned deployment for creator token %s, owner %s, chain %d: vault %s, share token %s, gauge %s",
        request.creator_token,
        owner,
        request.chain_id,
        vault,
        share_token,
        gauge,
    )

    return DeploymentPlan(
        request=request,
        infrastructure=infrastructure,
        salts=salts,
        addresses=addresses,
        deployments=deployments,
        vault_name=vault_name,
        vault_symbol=vault_symbol,
    )

"""Shared infrastructure addresses and environment configuration.

Every creator vault deployment plugs into protocol contracts that must already exist on the chain:
CREATE2 factories, the protocol registry, the activation batcher and, for the price oracle,
the Uniswap v4 pool manager, the tax hook and a Chainlink ETH/USD feed.

Defaults are hardcoded per chain in :py:data:`DEPLOYMENT_INFRASTRUCTURE`.
Any field can be overridden with an environment variable ``CREATOR_VAULT_<FIELD>``, e.g.

.. code-block:: shell

    export CREATOR_VAULT_REGISTRY=0x02c8031c39E10832A831b954Df7a2c1bf9Df052D
    export JSON_RPC_BASE=https://mainnet.base.org
"""

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Mapping

from eth_typing import HexAddress
from web3 import Web3

from creator_vault.abi import ZERO_ADDRESS_STR
from creator_vault.chain import CHAIN_NAMES


logger = logging.getLogger(__name__)


#: Arachnid's deterministic deployment proxy, same address on every EVM chain
UNIVERSAL_CREATE2_FACTORY = "0x4e59b44847b379578588920cA78FbF26c0B4956C"

#: Environment variable prefix for infrastructure overrides
ENV_PREFIX = "CREATOR_VAULT_"


@dataclass(slots=True, frozen=True)
class DeploymentInfrastructure:
    """Pre-deployed protocol contracts a creator vault deployment depends on."""

    #: Universal factory taking raw ``salt ++ init_code``
    create2_factory: HexAddress

    #: Local deployer exposing ``deploy(bytes32,bytes)``
    create2_deployer: HexAddress

    #: Protocol registry, gives the LayerZero endpoint for a chain
    registry: HexAddress

    #: Receives the protocol share of gauge fees
    protocol_treasury: HexAddress

    #: Must be an approved launcher on the launch strategy or auctions never graduate
    vault_activation_batcher: HexAddress

    #: Uniswap v4 pool manager, oracle deployments only
    pool_manager: HexAddress

    #: Creator coin tax hook, oracle deployments only
    tax_hook: HexAddress

    #: Chainlink ETH/USD aggregator, oracle deployments only
    chainlink_eth_usd: HexAddress

    #: Optional lottery manager wired to the gauge controller
    lottery_manager: HexAddress | None = None

    def __post_init__(self):
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                assert f.name == "lottery_manager", f"{f.name} missing"
                continue
            # Normalise to checksummed form, raises on garbage
            object.__setattr__(self, f.name, Web3.to_checksum_address(value))

    def get_dependencies(self, include_oracle: bool) -> dict[str, HexAddress]:
        """Contracts that must carry bytecode before we deploy.

        :param include_oracle:
            Also require the price oracle venue contracts.

        :return:
            Human readable label -> address
        """
        deps = {
            "universal CREATE2 factory": self.create2_factory,
            "local CREATE2 deployer": self.create2_deployer,
            "registry": self.registry,
            "vault activation batcher": self.vault_activation_batcher,
        }

        if self.lottery_manager:
            deps["lottery manager"] = self.lottery_manager

        if include_oracle:
            deps["pool manager"] = self.pool_manager
            deps["tax hook"] = self.tax_hook
            deps["Chainlink ETH/USD feed"] = self.chainlink_eth_usd

        return deps


#: Known deployments per chain id
DEPLOYMENT_INFRASTRUCTURE: dict[int, DeploymentInfrastructure] = {
    # Base mainnet
    8453: DeploymentInfrastructure(
        create2_factory=UNIVERSAL_CREATE2_FACTORY,
        create2_deployer="0xaBf645362104F34D9C3FE48440bE7c99aaDE58E7",
        registry="0x02c8031c39E10832A831b954Df7a2c1bf9Df052D",
        protocol_treasury="0x7d429eCbdcE5ff516D6e0a93299cbBa97203f2d3",
        vault_activation_batcher="0x4b67e3a4284090e5191c27B8F24248eC82DF055D",
        pool_manager="0x498581fF718922c3f8e6A244956aF099B2652b2b",
        tax_hook="0xca975B9dAF772C71161f3648437c3616E5Be0088",
        chainlink_eth_usd="0x71041dddad3595F9CEd3DcCFBe3D1F4b0a16Bb70",
        lottery_manager="0xA02A858E67c98320dCFB218831B645692E8f3483",
    ),
}


def get_infrastructure_env(field_name: str) -> str:
    """Environment variable name overriding an infrastructure field.

    ``vault_activation_batcher`` -> ``CREATOR_VAULT_VAULT_ACTIVATION_BATCHER``
    """
    return f"{ENV_PREFIX}{field_name.upper()}"


def get_infrastructure(
    chain_id: int,
    environ: Mapping[str, str] | None = None,
) -> DeploymentInfrastructure:
    """Resolve infrastructure addresses for a chain.

    Start from the hardcoded defaults and apply environment overrides.
    Chains without defaults can be configured fully through the environment.

    Setting ``CREATOR_VAULT_LOTTERY_MANAGER`` to the zero address disables the lottery manager wiring.

    :param environ:
        Defaults to ``os.environ``

    :raises ValueError:
        Chain has no defaults and the environment does not give every required address
    """
    assert type(chain_id) is int, f"Chain ID must be an integer: {type(chain_id)}"

    if environ is None:
        environ = os.environ

    default = DEPLOYMENT_INFRASTRUCTURE.get(chain_id)

    values = {}
    missing = []
    for f in dataclasses.fields(DeploymentInfrastructure):
        env_var = get_infrastructure_env(f.name)
        override = environ.get(env_var)
        if override:
            logger.info("Infrastructure %s overridden by %s: %s", f.name, env_var, override)
            values[f.name] = override
        elif default is not None:
            values[f.name] = getattr(default, f.name)
        elif f.name == "create2_factory":
            values[f.name] = UNIVERSAL_CREATE2_FACTORY
        elif f.name == "lottery_manager":
            values[f.name] = None
        else:
            missing.append(env_var)

    if missing:
        raise ValueError(f"No creator vault infrastructure known for chain {chain_id}, set environment variables: {', '.join(missing)}")

    if values["lottery_manager"] and values["lottery_manager"].lower() == ZERO_ADDRESS_STR:
        values["lottery_manager"] = None

    return DeploymentInfrastructure(**values)


def get_json_rpc_env(chain: int) -> str:
    """Get the JSON-RPC URL environment variable based on the chain id.

    - Map chain id to a name and from there to environment variables.
    """
    chain_name = CHAIN_NAMES.get(chain)
    assert chain_name, f"CHAIN_NAMES not configured for chain {chain}"
    return f"JSON_RPC_{chain_name.upper()}"


def read_json_rpc_url(chain: int) -> str:
    """Read JSON-RPC URL from environment variable based on the chain id.

    :raises ValueError: If the environment variable is not set for the given chain.
    """
    assert type(chain) is int, f"Chain ID must be an integer: {type(chain)}"
    env_var = get_json_rpc_env(chain)
    json_rpc_url = os.environ.get(env_var)
    if not json_rpc_url:
        raise ValueError(f"Environment variable {env_var} is not set for chain {chain}")
    return json_rpc_url

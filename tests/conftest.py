"""Shared fixtures.

Tests run against :py:class:`creator_vault.testing.StubChain`, no node needed.
``test_web3_chain.py`` uses the in-process EVM of ``EthereumTesterProvider``.
"""

import datetime

import pytest
from eth_typing import HexAddress

from creator_vault.bytecode import DeployBytecode
from creator_vault.config import DEPLOYMENT_INFRASTRUCTURE, DeploymentInfrastructure
from creator_vault.orchestrator import DeploymentOrchestrator
from creator_vault.plan import DeploymentRequest
from creator_vault.testing import StubChain, StubWallet, create_test_bytecode

#: Base mainnet
CHAIN_ID = 8453


@pytest.fixture()
def signer() -> HexAddress:
    return "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


@pytest.fixture()
def smart_wallet() -> HexAddress:
    """Coinbase smart wallet owned by the signer."""
    return "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"


@pytest.fixture()
def creator_token() -> HexAddress:
    return "0x6813Eb9362372EEF6200f3b1dbC3f819671cBA69"


@pytest.fixture()
def infrastructure() -> DeploymentInfrastructure:
    """Base mainnet addresses without the lottery manager."""
    base = DEPLOYMENT_INFRASTRUCTURE[CHAIN_ID]
    return DeploymentInfrastructure(
        create2_factory=base.create2_factory,
        create2_deployer=base.create2_deployer,
        registry=base.registry,
        protocol_treasury=base.protocol_treasury,
        vault_activation_batcher=base.vault_activation_batcher,
        pool_manager=base.pool_manager,
        tax_hook=base.tax_hook,
        chainlink_eth_usd=base.chainlink_eth_usd,
        lottery_manager=None,
    )


@pytest.fixture()
def bytecode() -> DeployBytecode:
    return create_test_bytecode()


@pytest.fixture()
def chain(infrastructure, creator_token) -> StubChain:
    chain = StubChain(chain_id=CHAIN_ID)
    chain.install_infrastructure(infrastructure, creator_token)
    return chain


@pytest.fixture()
def wallet(chain, signer) -> StubWallet:
    """EOA signer with an atomic batching capable wallet."""
    return StubWallet(chain, signer)


@pytest.fixture()
def deployment_request(creator_token) -> DeploymentRequest:
    """Owner is resolved to the signer."""
    return DeploymentRequest(
        creator_token=creator_token,
        share_symbol="wsAKITA",
        share_name="Wrapped Staked AKITA",
        chain_id=CHAIN_ID,
    )


@pytest.fixture()
def orchestrator(chain, wallet, bytecode, infrastructure) -> DeploymentOrchestrator:
    return DeploymentOrchestrator(
        reader=chain,
        wallet=wallet,
        bytecode=bytecode,
        infrastructure=infrastructure,
        max_timeout=datetime.timedelta(seconds=1),
        poll_delay=datetime.timedelta(milliseconds=10),
    )

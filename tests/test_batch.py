"""Deployment call batch ordering and wiring edges."""

import dataclasses

import pytest

from creator_vault.abi import decode_function_args
from creator_vault.auction import get_price_grid
from creator_vault.batch import CallKind, build_deployment_batch, check_call_order
from creator_vault.errors import PlanningError
from creator_vault.plan import compute_deployment_plan

LZ_ENDPOINT = "0x1a44076050125825900e736c501f859c50fE728c"

EXPECTED_LABELS = [
    "deploy CreatorOVault",
    "deploy CreatorOVaultWrapper",
    "deploy OFTBootstrapRegistry",
    "oft_bootstrap_registry.setLayerZeroEndpoint",
    "deploy CreatorShareOFT",
    "deploy CreatorGaugeController",
    "deploy CCALaunchStrategy",
    "wrapper.setShareOFT",
    "share_token.setRegistry",
    "share_token.setVault",
    "share_token.setMinter",
    "share_token.setGaugeController",
    "gauge_controller.setVault",
    "gauge_controller.setWrapper",
    "gauge_controller.setCreatorCoin",
    "vault.setGaugeController",
    "vault.setWhitelist",
    "cca_strategy.setApprovedLauncher",
]


@pytest.fixture()
def plan(deployment_request, signer, infrastructure, bytecode):
    return compute_deployment_plan(deployment_request.resolve_owner(signer), infrastructure, bytecode)


def test_batch_order(plan):
    batch = build_deployment_batch(plan, bootstrap_exists=False, lz_endpoint=LZ_ENDPOINT)
    assert [c.label for c in batch.calls] == EXPECTED_LABELS
    assert len(batch.get_calls(CallKind.deploy)) == 6
    assert len(batch.get_calls(CallKind.wiring)) == 11
    assert len(batch.get_calls(CallKind.bootstrap_config)) == 1
    assert all(c.value == 0 for c in batch.calls)


def test_batch_is_idempotent(plan):
    """Planning twice against an existing bootstrap registry gives the same calls."""
    a = build_deployment_batch(plan, bootstrap_exists=True, lz_endpoint=LZ_ENDPOINT)
    b = build_deployment_batch(plan, bootstrap_exists=True, lz_endpoint=LZ_ENDPOINT)
    assert a.calls == b.calls
    assert a.wiring_edges == b.wiring_edges
    for batch in (a, b):
        labels = [c.label for c in batch.calls]
        assert "deploy OFTBootstrapRegistry" not in labels
        assert "oft_bootstrap_registry.setLayerZeroEndpoint" in labels


def test_existing_bootstrap_registry(plan):
    """Deploy call is skipped, the endpoint configuration call stays."""
    batch = build_deployment_batch(plan, bootstrap_exists=True, lz_endpoint=LZ_ENDPOINT)
    labels = [c.label for c in batch.calls]
    assert "deploy OFTBootstrapRegistry" not in labels
    assert labels[2] == "oft_bootstrap_registry.setLayerZeroEndpoint"
    assert len(batch.get_calls(CallKind.deploy)) == 5
    assert plan.addresses.oft_bootstrap_registry in batch.get_deployed_addresses()


def test_endpoint_call(plan):
    batch = build_deployment_batch(plan, bootstrap_exists=False, lz_endpoint=LZ_ENDPOINT)
    (call,) = batch.get_calls(CallKind.bootstrap_config)
    assert call.target == plan.addresses.oft_bootstrap_registry
    chain_id, endpoint = decode_function_args("setLayerZeroEndpoint(uint16,address)", call.data)
    assert chain_id == 8453
    assert endpoint.lower() == LZ_ENDPOINT.lower()


def test_deploy_calls_target_factories(plan, infrastructure):
    batch = build_deployment_batch(plan, bootstrap_exists=False, lz_endpoint=LZ_ENDPOINT)
    by_address = {c.deploys: c for c in batch.get_calls(CallKind.deploy)}
    assert by_address[plan.addresses.vault].target == infrastructure.create2_deployer
    assert by_address[plan.addresses.share_token].target == infrastructure.create2_factory
    assert by_address[plan.addresses.oft_bootstrap_registry].target == infrastructure.create2_factory


def test_wiring_edges(plan, infrastructure):
    batch = build_deployment_batch(plan, bootstrap_exists=False, lz_endpoint=LZ_ENDPOINT)
    names = [e.name for e in batch.wiring_edges]
    assert len(names) == len(set(names)) == 10

    edge = batch.get_edge("cca_strategy.approvedLaunchers")
    assert edge.target == plan.addresses.cca_strategy
    assert edge.args == (infrastructure.vault_activation_batcher,)
    assert edge.matches(True)
    assert not edge.matches(False)

    edge = batch.get_edge("vault.gaugeController")
    assert edge.matches(plan.addresses.gauge_controller.lower())

    with pytest.raises(KeyError):
        batch.get_edge("vault.nope")


def test_optional_calls(deployment_request, signer, infrastructure, bytecode):
    """Oracle, lottery manager and tick spacing add their calls."""
    request = dataclasses.replace(deployment_request, include_oracle=True, auction_floor_price_wei=10**15).resolve_owner(signer)
    infrastructure = dataclasses.replace(infrastructure, lottery_manager="0xA02A858E67c98320dCFB218831B645692E8f3483")
    plan = compute_deployment_plan(request, infrastructure, bytecode)
    batch = build_deployment_batch(plan, bootstrap_exists=False, lz_endpoint=LZ_ENDPOINT)
    labels = [c.label for c in batch.calls]

    assert labels.index("deploy CreatorOracle") == labels.index("deploy CCALaunchStrategy") + 1
    assert labels.index("gauge_controller.setLotteryManager") > labels.index("gauge_controller.setCreatorCoin")
    assert labels.index("gauge_controller.setOracle") > labels.index("gauge_controller.setLotteryManager")
    assert labels[-2] == "cca_strategy.setOracleConfig"
    assert labels[-1] == "cca_strategy.setDefaultTickSpacing"
    assert batch.get_edge("gauge_controller.oracle").expected == plan.addresses.oracle

    (tick_spacing,) = decode_function_args("setDefaultTickSpacing(uint256)", batch.calls[-1].data)
    assert tick_spacing == get_price_grid(10**15).tick_spacing_q96


def test_call_order_rejects_misordered_batch(plan):
    batch = build_deployment_batch(plan, bootstrap_exists=False, lz_endpoint=LZ_ENDPOINT)
    calls = list(batch.calls)
    # Move share token deploy after its first wiring call
    share_deploy = calls.pop(4)
    calls.insert(10, share_deploy)
    with pytest.raises(PlanningError) as e:
        check_call_order(calls, plan.addresses.get_all())
    assert e.value.message == "Deployment batch is out of order"
    assert "share_token.setRegistry" in e.value.details


def test_call_order_rejects_double_deploy(plan):
    batch = build_deployment_batch(plan, bootstrap_exists=False, lz_endpoint=LZ_ENDPOINT)
    calls = [batch.calls[0], batch.calls[0]]
    with pytest.raises(PlanningError):
        check_call_order(calls, plan.addresses.get_all())


def test_call_order_preexisting(plan):
    """Configuring an existing bootstrap registry before any deploy is fine."""
    batch = build_deployment_batch(plan, bootstrap_exists=True, lz_endpoint=LZ_ENDPOINT)
    (call,) = batch.get_calls(CallKind.bootstrap_config)
    check_call_order([call], plan.addresses.get_all(), preexisting={plan.addresses.oft_bootstrap_registry})
    with pytest.raises(PlanningError):
        check_call_order([call], plan.addresses.get_all())


def test_rpc_call_format(plan):
    batch = build_deployment_batch(plan, bootstrap_exists=False, lz_endpoint=LZ_ENDPOINT)
    rpc_call = batch.calls[0].as_rpc_call()
    assert rpc_call["to"] == batch.calls[0].target
    assert rpc_call["data"].startswith("0x")
    assert rpc_call["value"] == "0x0"

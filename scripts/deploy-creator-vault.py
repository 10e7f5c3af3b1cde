"""Deploy a creator vault.

- Predict all addresses, run preflight checks, deploy and wire everything in one signature
- With ``PRIVATE_KEY`` the hot wallet signs an ``executeBatch()`` on the ``OWNER`` smart wallet
- Without ``PRIVATE_KEY`` the first account of the JSON-RPC provider signs,
  using an atomic EIP-5792 call bundle when it is the owner itself

To preview addresses only:

.. code-block:: shell

    export JSON_RPC_BASE=...
    export BYTECODE=contracts/out
    export CREATOR_TOKEN=0x...
    export OWNER=0x...
    export SHARE_SYMBOL=wsAKITA
    export SHARE_NAME="Wrapped Staked AKITA"
    PREVIEW=true python scripts/deploy-creator-vault.py

To deploy through a smart wallet:

.. code-block:: shell

    export PRIVATE_KEY=...
    python scripts/deploy-creator-vault.py
"""

import logging
import os

from web3 import HTTPProvider, Web3

from creator_vault.bytecode import load_deploy_bytecode
from creator_vault.chain import get_chain_name, get_explorer_address_link
from creator_vault.config import get_infrastructure, read_json_rpc_url
from creator_vault.errors import DeploymentError, VerificationError
from creator_vault.hotwallet import HotWallet
from creator_vault.orchestrator import DeploymentOrchestrator
from creator_vault.plan import DeploymentRequest
from creator_vault.provider_wallet import Web3ProviderWallet
from creator_vault.reader import Web3ChainReader
from creator_vault.utils import setup_console_logging


logger = logging.getLogger(__name__)


def main():
    setup_console_logging(default_log_level="info")

    chain_id = int(os.environ.get("CHAIN_ID", "8453"))
    bytecode_path = os.environ["BYTECODE"]
    creator_token = os.environ["CREATOR_TOKEN"]
    share_symbol = os.environ["SHARE_SYMBOL"]
    share_name = os.environ["SHARE_NAME"]
    owner = os.environ.get("OWNER")
    creator_treasury = os.environ.get("CREATOR_TREASURY")
    include_oracle = os.environ.get("INCLUDE_ORACLE", "false").lower() == "true"
    salt_namespace = os.environ.get("SALT_NAMESPACE")
    floor_price = os.environ.get("AUCTION_FLOOR_PRICE_WEI")
    private_key = os.environ.get("PRIVATE_KEY")
    preview = os.environ.get("PREVIEW", "false").lower() == "true"

    web3 = Web3(HTTPProvider(read_json_rpc_url(chain_id)))
    assert web3.eth.chain_id == chain_id, f"JSON-RPC is connected to chain {web3.eth.chain_id}, expected {chain_id}"

    if private_key:
        wallet = HotWallet.from_private_key(private_key, web3)
    else:
        wallet = Web3ProviderWallet(web3)

    orchestrator = DeploymentOrchestrator(
        reader=Web3ChainReader(web3),
        wallet=wallet,
        bytecode=load_deploy_bytecode(bytecode_path),
        infrastructure=get_infrastructure(chain_id),
    )

    request = DeploymentRequest(
        creator_token=creator_token,
        share_symbol=share_symbol,
        share_name=share_name,
        chain_id=chain_id,
        owner=owner,
        creator_treasury=creator_treasury,
        include_oracle=include_oracle,
        salt_namespace=salt_namespace,
        auction_floor_price_wei=int(floor_price) if floor_price else None,
    )

    plan = orchestrator.predict(request)
    print(f"Creator vault on {get_chain_name(chain_id)}, signer {wallet.address}, owner {plan.request.owner}")
    for name, address in plan.addresses.as_dict().items():
        print(f"  {name:24} {get_explorer_address_link(chain_id, address) or address}")
    print(f"Set the creator coin payout recipient to the gauge controller: {plan.addresses.gauge_controller}")

    if preview:
        return

    try:
        result = orchestrator.deploy(request, listener=lambda state: print(f"Stage: {state.stage.value}"))
    except VerificationError as e:
        print(e.report.format_summary())
        raise
    except DeploymentError as e:
        print(f"Deployment failed: {e.message}")
        if e.details:
            print(e.details)
        raise

    print(f"Deployed with {result.submission.kind.value} {result.submission.identifier}")
    print(result.report.format_summary())


if __name__ == "__main__":
    main()

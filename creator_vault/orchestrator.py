"""Deploy a creator vault contract constellation.

Example:

.. code-block:: python

    web3 = Web3(HTTPProvider(read_json_rpc_url(8453)))
    orchestrator = DeploymentOrchestrator(
        reader=Web3ChainReader(web3),
        wallet=Web3ProviderWallet(web3),
        bytecode=load_deploy_bytecode("contracts/out"),
        infrastructure=get_infrastructure(8453),
    )

    request = DeploymentRequest(
        creator_token="0x...",
        share_symbol="wsAKITA",
        share_name="Wrapped Staked AKITA",
        chain_id=8453,
    )

    result = orchestrator.deploy(request, listener=lambda state: print(state.stage))
    print(result.report.format_summary())

Every failure raises a :py:class:`creator_vault.errors.DeploymentError` subclass,
after the listener has seen the ``failed`` state.
Nothing is retried automatically. A fresh invocation with the same input after a landed
deployment is rejected by the collision preflight check.
"""

import datetime
import logging
from dataclasses import dataclass

from creator_vault.basewallet import BaseWallet
from creator_vault.batch import DeploymentBatch, build_deployment_batch
from creator_vault.bytecode import DeployBytecode
from creator_vault.chain import get_chain_name
from creator_vault.config import DeploymentInfrastructure, get_infrastructure
from creator_vault.confirmation import DEFAULT_CONFIRMATION_TIMEOUT, DEFAULT_POLL_DELAY, wait_for_bytecode
from creator_vault.errors import DeploymentError, PreflightError
from creator_vault.execution import SubmissionResult, select_execution_strategy
from creator_vault.plan import DeploymentPlan, DeploymentRequest, PredictedAddressSet, compute_deployment_plan
from creator_vault.preflight import run_preflight
from creator_vault.reader import ChainReader
from creator_vault.state import DeploymentStage, DeploymentState, DeploymentStateMachine, StateListener
from creator_vault.verification import VerificationReport, check_wiring


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class DeploymentResult:
    """A completed and verified deployment."""

    #: Request with the owner resolved
    request: DeploymentRequest

    addresses: PredictedAddressSet

    batch: DeploymentBatch

    #: Transaction hash or call bundle id
    submission: SubmissionResult

    report: VerificationReport

    #: Every state the deployment went through
    states: tuple[DeploymentState, ...]


class DeploymentOrchestrator:
    """Plan, check, submit, confirm and verify a deployment."""

    def __init__(
        self,
        reader: ChainReader,
        wallet: BaseWallet,
        bytecode: DeployBytecode,
        infrastructure: DeploymentInfrastructure | None = None,
        max_timeout: datetime.timedelta = DEFAULT_CONFIRMATION_TIMEOUT,
        poll_delay: datetime.timedelta = DEFAULT_POLL_DELAY,
    ):
        """
        :param infrastructure:
            Shared contracts. Resolved from the request chain id and environment if not given.

        :param max_timeout:
            How long we wait for the batch to land

        :param poll_delay:
            Confirmation poll interval
        """
        self.reader = reader
        self.wallet = wallet
        self.bytecode = bytecode
        self.infrastructure = infrastructure
        self.max_timeout = max_timeout
        self.poll_delay = poll_delay

    def get_infrastructure(self, chain_id: int) -> DeploymentInfrastructure:
        if self.infrastructure is not None:
            return self.infrastructure
        try:
            return get_infrastructure(chain_id)
        except ValueError as e:
            raise PreflightError(f"No creator vault infrastructure on {get_chain_name(chain_id)}", str(e)) from e

    def predict(self, request: DeploymentRequest) -> DeploymentPlan:
        """Compute the addresses a request would deploy to.

        No I/O, except for reading the signer address to resolve a missing owner.
        """
        request = request.resolve_owner(self.wallet.address)
        return compute_deployment_plan(request, self.get_infrastructure(request.chain_id), self.bytecode)

    def deploy(self, request: DeploymentRequest, listener: StateListener | None = None) -> DeploymentResult:
        """Run a full deployment.

        Exactly one signature prompt.

        :param listener:
            Called with every state transition, including the final ``failed`` state

        :raise DeploymentError:
            See :py:mod:`creator_vault.errors`
        """
        machine = DeploymentStateMachine(listener)
        try:
            return self._deploy(request, machine)
        except DeploymentError as e:
            if not machine.state.is_terminal:
                machine.fail(e.message, e.details)
            raise
        except Exception as e:
            if not machine.state.is_terminal:
                machine.fail("Deployment failed", str(e))
            raise

    def _deploy(self, request: DeploymentRequest, machine: DeploymentStateMachine) -> DeploymentResult:
        signer = self.wallet.address

        connected_chain_id = self.reader.chain_id
        if connected_chain_id != request.chain_id:
            raise PreflightError(
                "Connected to the wrong chain",
                f"Request is for {get_chain_name(request.chain_id)} ({request.chain_id}), connected to {get_chain_name(connected_chain_id)} ({connected_chain_id})",
            )

        plan = self.predict(request)
        request = plan.request

        logger.info(
            "Deploying creator vault for %s on %s, owner %s, signer %s",
            request.creator_token,
            get_chain_name(request.chain_id),
            request.owner,
            signer,
        )

        preflight = run_preflight(self.reader, plan, signer)

        strategy = select_execution_strategy(
            request,
            self.wallet,
            self.reader,
            max_timeout=self.max_timeout,
            poll_delay=self.poll_delay,
        )
        strategy.check_capability()

        batch = build_deployment_batch(plan, preflight.bootstrap_exists, preflight.lz_endpoint)

        machine.advance(DeploymentStage.awaiting_signature)
        submission = strategy.submit(batch)
        logger.info("Deployment submitted via %s: %s %s", strategy.name, submission.kind.value, submission.identifier)

        machine.advance(DeploymentStage.submitting, submission_id=submission.identifier)
        strategy.wait_for_inclusion(submission)

        machine.advance(DeploymentStage.confirming)
        wait_for_bytecode(
            self.reader,
            batch.get_deployed_addresses(),
            max_timeout=self.max_timeout,
            poll_delay=self.poll_delay,
            submission_id=submission.identifier,
        )

        machine.advance(DeploymentStage.verifying)
        report = check_wiring(self.reader, batch.wiring_edges, plan.addresses)

        machine.advance(DeploymentStage.complete)

        return DeploymentResult(
            request=request,
            addresses=plan.addresses,
            batch=batch,
            submission=submission,
            report=report,
            states=tuple(machine.history),
        )

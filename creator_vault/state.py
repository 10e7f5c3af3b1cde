"""Deployment progress state machine.

One :py:class:`DeploymentStateMachine` per deploy invocation.
Stages only move forward::

    preparing -> awaiting_signature -> submitting -> confirming -> verifying -> complete

and ``failed`` is reachable from any non-terminal stage.
A UI subscribes to transitions with a listener callable instead of polling.
"""

import datetime
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable


logger = logging.getLogger(__name__)


class DeploymentStage(enum.Enum):
    """Where a deployment attempt is."""

    #: Planning and preflight checks
    preparing = "preparing"

    #: Waiting the user to sign in their wallet
    awaiting_signature = "awaiting_signature"

    #: Signed and accepted by the wallet or the node,
    #: waiting for inclusion. :py:attr:`DeploymentState.submission_id` is known from here on
    submitting = "submitting"

    #: Waiting for bytecode at all predicted addresses
    confirming = "confirming"

    #: Re-reading wiring edges
    verifying = "verifying"

    #: All contracts deployed and wired
    complete = "complete"

    #: See :py:attr:`DeploymentState.reason`
    failed = "failed"

    def is_terminal(self) -> bool:
        return self in (DeploymentStage.complete, DeploymentStage.failed)


#: Happy path order
STAGE_ORDER = [
    DeploymentStage.preparing,
    DeploymentStage.awaiting_signature,
    DeploymentStage.submitting,
    DeploymentStage.confirming,
    DeploymentStage.verifying,
    DeploymentStage.complete,
]


class IllegalStateTransition(Exception):
    """Tried to move backwards, skip a stage or leave a terminal stage."""


@dataclass(slots=True, frozen=True)
class DeploymentState:
    """A snapshot of the deployment progress."""

    stage: DeploymentStage

    #: Short user facing failure message
    reason: str | None = None

    #: Technical failure details
    details: str | None = None

    #: Transaction hash or call bundle id once submitted
    submission_id: str | None = None

    at: datetime.datetime = field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))

    def __repr__(self):
        if self.stage == DeploymentStage.failed:
            return f"<DeploymentState failed: {self.reason}>"
        return f"<DeploymentState {self.stage.value}>"

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal()


#: Receives every new state
StateListener = Callable[[DeploymentState], None]


class DeploymentStateMachine:
    """Track and broadcast deployment progress."""

    def __init__(self, listener: StateListener | None = None):
        self.listener = listener
        self.history: list[DeploymentState] = []
        self._set(DeploymentState(DeploymentStage.preparing))

    @property
    def state(self) -> DeploymentState:
        return self.history[-1]

    @property
    def submission_id(self) -> str | None:
        return self.state.submission_id

    def _set(self, state: DeploymentState):
        self.history.append(state)
        logger.info("Deployment stage: %s", state.stage.value)
        if self.listener:
            self.listener(state)

    def advance(self, stage: DeploymentStage, submission_id: str | None = None) -> DeploymentState:
        """Move to the next stage of the happy path.

        :param submission_id:
            Set once, carried over to all later states

        :raise IllegalStateTransition:
        """
        current = self.state.stage
        if current.is_terminal():
            raise IllegalStateTransition(f"Deployment already {current.value}, cannot move to {stage.value}")

        if stage not in STAGE_ORDER or STAGE_ORDER.index(stage) != STAGE_ORDER.index(current) + 1:
            raise IllegalStateTransition(f"Cannot move from {current.value} to {stage.value}")

        state = DeploymentState(stage, submission_id=submission_id or self.submission_id)
        self._set(state)
        return state

    def fail(self, reason: str, details: str | None = None) -> DeploymentState:
        """Move to the failed terminal stage.

        :raise IllegalStateTransition:
            Already complete or failed
        """
        current = self.state.stage
        if current.is_terminal():
            raise IllegalStateTransition(f"Deployment already {current.value}, cannot fail")

        state = DeploymentState(DeploymentStage.failed, reason=reason, details=details, submission_id=self.submission_id)
        self._set(state)
        return state

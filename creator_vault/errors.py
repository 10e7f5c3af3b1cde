"""Deployment error taxonomy.

Every failure the orchestrator can raise derives from :py:class:`DeploymentError`.
Each carries a short user facing message and an optional technical detail string.

- :py:class:`PreflightError` is always raised before any signature is requested
- :py:class:`CapabilityError` means the wallet cannot honour an atomic batch
- :py:class:`SubmissionError` means nothing was deployed and the whole flow can be retried
- :py:class:`ConfirmationTimeoutError` is ambiguous: the batch may or may not have landed,
  :py:class:`PartiallyRevertedError` is the wallet telling us it landed only in part
- :py:class:`VerificationError` means contracts exist on-chain but some wiring is wrong
"""

from typing import TYPE_CHECKING

from eth_typing import HexAddress

if TYPE_CHECKING:
    from creator_vault.verification import VerificationReport, WiringCheck


class DeploymentError(Exception):
    """Base class for all deployment failures."""

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self):
        if self.details:
            return f"{self.message}\n{self.details}"
        return self.message


class PlanningError(DeploymentError):
    """The request or the generated call batch is malformed."""


class PreflightError(DeploymentError):
    """Read-only checks failed before we asked for a signature."""


class MissingDependencyError(PreflightError):
    """Shared infrastructure contracts have no bytecode on this chain."""

    def __init__(self, missing: dict[str, HexAddress]):
        listing = ", ".join(f"{label} {address}" for label, address in missing.items())
        super().__init__(
            "Misconfigured deployment dependencies: no bytecode found",
            listing,
        )
        self.missing = missing


class OwnerNotDeployedError(PreflightError):
    """The owner smart wallet has no code on this chain."""

    def __init__(self, owner: HexAddress):
        super().__init__(
            "Owner wallet not deployed",
            f"Address {owner} carries no bytecode, so it cannot execute a batch as a smart wallet",
        )
        self.owner = owner


class SignerNotAuthorizedError(PreflightError):
    """The connected signer does not control the owner smart wallet."""

    def __init__(self, owner: HexAddress, signer: HexAddress, details: str | None = None):
        super().__init__(
            "Connected wallet is not an owner of the selected smart wallet",
            details or f"{owner}.isOwnerAddress({signer}) returned false",
        )
        self.owner = owner
        self.signer = signer


class AlreadyDeployedError(PreflightError):
    """One or more predicted addresses already carry code."""

    def __init__(self, collisions: dict[str, HexAddress]):
        listing = ", ".join(f"{label} {address}" for label, address in collisions.items())
        super().__init__(
            "A deployment already exists for this input",
            f"Predicted addresses already have code: {listing}",
        )
        self.collisions = collisions


class EndpointNotResolvedError(PreflightError):
    """Registry did not give us a messaging endpoint for this chain."""


class PayoutRecipientMismatchError(PreflightError):
    """Creator coin payout recipient does not point to the gauge controller we are about to deploy."""

    def __init__(self, expected: HexAddress, actual: HexAddress | None):
        super().__init__(
            f"Payout recipient must be set to {expected}",
            f"Creator coin payoutRecipient() is {actual}",
        )
        self.expected = expected
        self.actual = actual


class CapabilityError(DeploymentError):
    """The wallet cannot atomically batch calls."""

    def __init__(self, details: str | None = None):
        super().__init__(
            "This wallet cannot batch; use a smart wallet or an owner externally-owned-account",
            details,
        )


class SubmissionError(DeploymentError):
    """The wallet or the node refused the deployment batch.

    Nothing was deployed. Safe to retry the whole flow.
    """

    def __init__(self, message: str, details: str | None = None, user_rejected=False):
        super().__init__(message, details)
        self.user_rejected = user_rejected


class ConfirmationTimeoutError(DeploymentError):
    """We gave up waiting for bytecode or a receipt.

    Do not treat as "not deployed". Check the submission first.
    """

    def __init__(self, message: str, submission_id: str | None, details: str | None = None):
        if submission_id:
            hint = f"Check transaction or call bundle {submission_id} before retrying"
            details = f"{details}\n{hint}" if details else hint
        super().__init__(message, details)
        self.submission_id = submission_id


class PartiallyRevertedError(ConfirmationTimeoutError):
    """Wallet reports some calls of the bundle landed and some reverted.

    Contracts may exist without wiring. Never safe to blindly retry.
    """


class VerificationError(DeploymentError):
    """Deployment completed, but some wiring edges do not hold."""

    def __init__(self, report: "VerificationReport"):
        failed = report.get_failed_checks()
        super().__init__(
            "Deployment completed, but verification failed",
            "\n".join(f"{check.name}: {check.explanation}" for check in failed),
        )
        self.report = report
        self.failed_checks: list["WiringCheck"] = failed

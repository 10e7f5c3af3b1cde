"""Post-deployment wiring verification.

After all contracts have code, re-read every wiring edge the batch planned
and compare against the expected value.
Every edge is evaluated, a failing or reverting read does not stop the others,
so the user gets the full list of what needs manual repair.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Iterable

from creator_vault.abi import present_solidity_args
from creator_vault.batch import WiringEdge
from creator_vault.chain import get_chain_name, get_explorer_address_link
from creator_vault.errors import VerificationError
from creator_vault.plan import PredictedAddressSet
from creator_vault.reader import CallFailed, ChainReader


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class WiringCheck:
    """Result of re-reading one wiring edge."""

    #: Edge id, e.g. ``vault.gaugeController``
    name: str

    description: str

    #: Contract we read
    target: str

    passed: bool

    expected: Any

    #: ``None`` if the read failed
    actual: Any

    #: Human readable outcome
    explanation: str


@dataclass(slots=True, frozen=True)
class VerificationReport:
    """Ordered wiring check results. Never modified after creation."""

    chain_id: int

    checks: tuple[WiringCheck, ...]

    addresses: PredictedAddressSet | None = None

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    def get_failed_checks(self) -> list[WiringCheck]:
        return [c for c in self.checks if not c.passed]

    def get_check(self, name: str) -> WiringCheck:
        for c in self.checks:
            if c.name == name:
                return c
        raise KeyError(f"No check {name}")

    def format_summary(self) -> str:
        """Human readable pass/fail table with explorer links."""
        lines = [f"Wiring verification on {get_chain_name(self.chain_id)}: {'passed' if self.passed else 'FAILED'}"]
        for c in self.checks:
            mark = "ok" if c.passed else "FAIL"
            link = get_explorer_address_link(self.chain_id, c.target)
            lines.append(f"  [{mark}] {c.name}: {c.explanation}")
            if link and not c.passed:
                lines.append(f"         {link}")

        if self.addresses:
            lines.append("Contracts:")
            for name, address in self.addresses.as_dict().items():
                link = get_explorer_address_link(self.chain_id, address)
                lines.append(f"  {name}: {link or address}")
        return "\n".join(lines)


def check_edge(reader: ChainReader, edge: WiringEdge) -> WiringCheck:
    """Read one edge."""
    call_text = f"{edge.getter.split('(')[0]}({', '.join(present_solidity_args(a) for a in edge.args)})"
    try:
        actual = reader.read(edge.target, edge.getter, edge.args, [edge.output_type])
    except CallFailed as e:
        return WiringCheck(
            name=edge.name,
            description=edge.description,
            target=edge.target,
            passed=False,
            expected=edge.expected,
            actual=None,
            explanation=f"{edge.description}: {call_text} read failed: {e}",
        )

    if edge.matches(actual):
        explanation = f"{edge.description}: {call_text} is {actual}"
        passed = True
    else:
        explanation = f"{edge.description}: {call_text} expected {edge.expected}, got {actual}"
        passed = False

    return WiringCheck(
        name=edge.name,
        description=edge.description,
        target=edge.target,
        passed=passed,
        expected=edge.expected,
        actual=actual,
        explanation=explanation,
    )


def verify_wiring(
    reader: ChainReader,
    edges: Iterable[WiringEdge],
    addresses: PredictedAddressSet | None = None,
    max_workers=8,
) -> VerificationReport:
    """Evaluate all wiring edges.

    Reads run in parallel, the report keeps the edge order.

    :return:
        Report, whether passed or not
    """
    edges = list(edges)
    if edges:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(edges))) as executor:
            checks = tuple(executor.map(lambda e: check_edge(reader, e), edges))
    else:
        checks = ()

    report = VerificationReport(chain_id=reader.chain_id, checks=checks, addresses=addresses)

    for c in report.get_failed_checks():
        logger.warning("Wiring check failed: %s", c.explanation)

    logger.info("Verified %d wiring edges, %d failed", len(checks), len(report.get_failed_checks()))
    return report


def check_wiring(
    reader: ChainReader,
    edges: Iterable[WiringEdge],
    addresses: PredictedAddressSet | None = None,
) -> VerificationReport:
    """Evaluate all wiring edges and fail if any does not hold.

    :raise VerificationError:
        Carrying the full report
    """
    report = verify_wiring(reader, edges, addresses)
    if not report.passed:
        raise VerificationError(report)
    return report

"""Convergence loop: tighten a candidate CSP until the browser stops reporting violations."""

from dataclasses import dataclass, field
from typing import List, Tuple

from cspgen.core.classifier import merge_reports
from cspgen.core.driver import BrowserDriver
from cspgen.core.errors import ConvergenceExhausted
from cspgen.core.evaluator import Evaluator
from cspgen.core.hashing import merge_hashes
from cspgen.core.models import (
    Finding, GenerationResult, GeneratorOptions, HashRecord, Severity, ViolationReport, VisitResult,
)
from cspgen.core.policy import Policy

MAX_ATTEMPTS = 5


@dataclass
class LoopState:
    """Accumulator carried from one round to the next."""
    policy: Policy
    attempt: int = 0
    initial_reports: List[ViolationReport] = field(default_factory=list)
    initial_hashes: List[HashRecord] = field(default_factory=list)
    initial_policy_string: str = ""
    initial_policy_string_pretty: str = ""
    visited_urls: List[str] = field(default_factory=list)


def should_continue(result: VisitResult, attempt: int) -> bool:
    # Handlers that only run on interaction (onclick, …) never fire during an
    # automated visit, so hashes found in round 0 always force a second round.
    return len(result.reports) > 0 or (attempt == 0 and result.hashes_were_added)


def merge_round(policy: Policy, result: VisitResult) -> Policy:
    """Fold one round's hashes and reports into *policy*."""
    hashes_added = merge_hashes(policy, result.hashes)
    return merge_reports(policy, result.reports, result.document_uri, hashes_added)


def build_probe_policy(policy: Policy, findings: List[Finding]) -> Policy:
    """Copy of *policy* without the sources the evaluator rates HIGH."""
    probe = policy.copy()
    for finding in findings:
        if finding.severity is Severity.HIGH:
            probe.remove(finding.directive, finding.value)
    return probe


class Generator:
    def __init__(self, driver: BrowserDriver, evaluator: Evaluator,
                 options: GeneratorOptions, logger=None):
        self.name = "cspgen"
        self.version = "1.0.0"
        self.driver = driver
        self.evaluator = evaluator
        self.options = options
        self.logger = logger

    def _visit(self, state: LoopState, policy_string: str, headless: bool) -> VisitResult:
        return self.driver.visit(
            list(self.options.urls), list(state.visited_urls), policy_string, headless)

    def converge(self, policy: Policy) -> LoopState:
        """
        Run rounds until a candidate produces no new information.

        Raises ConvergenceExhausted once more than MAX_ATTEMPTS merges were
        needed; nothing is returned in that case.
        """
        state = LoopState(policy=policy.copy())

        while True:
            if state.attempt > MAX_ATTEMPTS:
                raise ConvergenceExhausted(
                    state.policy.serialize(), state.attempt, self.options.hash_inline)

            policy_string = state.policy.serialize()
            if self.logger:
                self.logger.round(state.attempt, policy_string)

            headless = not (state.attempt == 0 and self.options.interactive)
            result = self._visit(state, policy_string, headless)

            if state.attempt == 0:
                state.initial_reports = list(result.reports)
                state.initial_hashes = list(result.hashes)
                state.initial_policy_string = policy_string
                state.initial_policy_string_pretty = state.policy.serialize(pretty=True)
                # Later rounds revisit exactly these pages.
                state.visited_urls = list(result.visited_urls)

            if not should_continue(result, state.attempt):
                break

            if self.logger:
                for report in result.reports:
                    self.logger.violation(
                        report.effective_directive, report.blocked_uri, report.document_uri)
                self.logger.info(
                    f"{len(result.reports)} violation(s), {len(result.hashes)} inline hash(es); "
                    f"trying again with modified policy")
            merge_round(state.policy, result)
            state.attempt += 1

        if self.logger:
            self.logger.ok(f"Policy converged after {state.attempt + 1} visit(s)")
        return state

    def diagnose(self, state: LoopState, findings: List[Finding]) -> Tuple[ViolationReport, ...]:
        """
        Revisit once with HIGH findings stripped, to show what they protect.

        The returned reports are evidence only; state.policy is untouched.
        """
        if not findings:
            return ()
        probe = build_probe_policy(state.policy, findings)
        if self.logger:
            self.logger.info("Policy has warnings; visiting once more without the unsafe sources")
            self.logger.debug(f"Probe policy: {probe.serialize()}")
        result = self._visit(state, probe.serialize(), True)
        return tuple(result.reports)

    def generate(self, policy: Policy) -> GenerationResult:
        state = self.converge(policy)
        policy_string = state.policy.serialize()
        findings = list(self.evaluator.evaluate(policy_string))
        reports = self.diagnose(state, findings)

        return GenerationResult(
            policy=state.policy.copy(),
            policy_string=policy_string,
            policy_string_pretty=state.policy.serialize(pretty=True),
            initial_policy_string=state.initial_policy_string,
            initial_policy_string_pretty=state.initial_policy_string_pretty,
            initial_reports=tuple(state.initial_reports),
            reports=reports,
            hashes=tuple(state.initial_hashes),
            findings=tuple(findings),
            visited_urls=tuple(state.visited_urls),
        )

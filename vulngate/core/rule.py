import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set

from vulngate.core.collector import collect
from vulngate.core.errors import PolicyViolation
from vulngate.core.model import (
    Coordinate,
    DependencyNode,
    PolicyConfiguration,
    ReportResult,
    Verdict,
)
from vulngate.core.policy import evaluate
from vulngate.core.scanner import request_report

AGGREGATOR_PACKAGING = "pom"

Requester = Callable[[Set[Coordinate], PolicyConfiguration], ReportResult]


class RuleState(Enum):
    IDLE = "idle"
    CHECK_PRECONDITIONS = "check-preconditions"
    COLLECTING = "collecting"
    REQUESTING = "requesting"
    EVALUATING = "evaluating"
    PASS = "pass"
    FAIL = "fail"
    # Infrastructure failure (graph or service), distinct from a policy FAIL
    ERROR = "error"


class SkipReason(Enum):
    OFFLINE = "offline"
    AGGREGATOR = "aggregator module"
    NO_DEPENDENCIES = "zero dependencies"


@dataclass
class ProjectContext:
    """What the build harness knows about the project being checked."""
    packaging: Optional[str] = None
    offline: bool = False
    graph_path: Optional[str] = None


@dataclass
class RuleOutcome:
    state: RuleState
    skip_reason: Optional[SkipReason] = None
    root: Optional[DependencyNode] = None
    components: Set[Coordinate] = field(default_factory=set)
    report: Optional[ReportResult] = None
    verdict: Optional[Verdict] = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


class BanVulnerableDependencies:
    """
    Build rule that fails when the project depends on vulnerable components.

    One execute() call walks Idle -> CheckPreconditions -> Collecting ->
    Requesting -> Evaluating -> Pass/Fail (or Error). Every visited state is kept in
    history. Graph and service errors end in ERROR and propagate unchanged.
    """

    def __init__(self, config: PolicyConfiguration, builder, requester: Requester = request_report) -> None:
        self.config = config
        self.builder = builder
        self.requester = requester
        self.state = RuleState.IDLE
        self.history: List[RuleState] = [RuleState.IDLE]

    def _enter(self, state: RuleState) -> None:
        logging.debug(f"Rule state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _skip(self, reason: SkipReason, **kwargs) -> RuleOutcome:
        self._enter(RuleState.PASS)
        return RuleOutcome(state=RuleState.PASS, skip_reason=reason, **kwargs)

    def execute(self, project: ProjectContext) -> RuleOutcome:
        self._enter(RuleState.CHECK_PRECONDITIONS)

        if project.offline:
            logging.warning(f"Skipping {type(self).__name__}; offline")
            return self._skip(SkipReason.OFFLINE)

        if project.packaging == AGGREGATOR_PACKAGING:
            logging.debug("Skipping; POM module")
            return self._skip(SkipReason.AGGREGATOR)

        self._enter(RuleState.COLLECTING)
        try:
            root = self.builder.build_graph(project.graph_path)
        except Exception:
            self._enter(RuleState.ERROR)
            raise

        # Without an explicit packaging the tree root's type is the project's packaging
        if project.packaging is None and root.type == AGGREGATOR_PACKAGING:
            logging.debug("Skipping; POM module")
            return self._skip(SkipReason.AGGREGATOR, root=root)

        try:
            components = collect(root, self.config.scopes, self.config.transitive)
        except Exception:
            self._enter(RuleState.ERROR)
            raise

        if not components:
            logging.debug("Skipping; zero dependencies")
            return self._skip(SkipReason.NO_DEPENDENCIES, root=root)

        self._enter(RuleState.REQUESTING)
        try:
            report = self.requester(components, self.config)
        except Exception:
            self._enter(RuleState.ERROR)
            raise

        self._enter(RuleState.EVALUATING)
        verdict = evaluate(report, self.config)

        if verdict.vulnerable:
            self._enter(RuleState.FAIL)
            outcome = RuleOutcome(RuleState.FAIL, root=root, components=components, report=report, verdict=verdict)
            raise PolicyViolation(verdict.explanation, outcome)

        self._enter(RuleState.PASS)
        logging.info(f"No actionable vulnerabilities in {len(components)} components.")
        return RuleOutcome(RuleState.PASS, root=root, components=components, report=report, verdict=verdict)

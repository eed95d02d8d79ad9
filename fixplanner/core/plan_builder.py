from datetime import datetime
from typing import Callable, Optional, Union

from loguru import logger

from fixplanner.integrations.fix_providers import FixPartition, FixProvider, NoFixProvider, describe_partition
from fixplanner.models.benchmark import Benchmark
from fixplanner.models.errors import FixProviderContractViolation, InvalidArgumentError, UnknownBenchmarkError
from fixplanner.models.fixes import FIX_TYPES, NoFix, pp_string, render_fix
from fixplanner.models.issue import Issue
from fixplanner.models.reported_issue import ReportedIssue

DEFAULT_PLAN_NAME = "generated_plan"

BANNER = "## Fix Planner generated remediation plan"


def _quoted(nodes) -> str:
    return ", ".join(pp_string(n) for n in sorted(nodes))


def target_var(idx: int) -> str:
    return f"$targets_{idx}"


def indent(lines: list[str]) -> list[str]:
    return ["  " + line for line in lines]


class PlanBuilder:
    """
    Accumulates benchmarks, issues and reported issues, and generates a
    remediation plan from them.

    Benchmarks must be added first, since every issue is validated against
    the known benchmarks. Issues may then be defined, and finally reported
    issues (an issue plus the nodes it was found on) are added. The plan is
    produced by ``produce_plan``, which asks the fix provider for the fixes
    of each reported issue.
    """

    def __init__(
        self,
        fix_provider: Optional[FixProvider] = None,
        plan_name: str = DEFAULT_PLAN_NAME,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.fix_provider = fix_provider or NoFixProvider()
        self.plan_name = plan_name
        self.clock = clock
        self._benchmarks: dict[str, Benchmark] = {}
        self._issues: set[Issue] = set()
        self._ignored_issues: set[Issue] = set()
        self._reported_issues: dict[Issue, list[ReportedIssue]] = {}

    @property
    def benchmarks(self) -> dict[str, Benchmark]:
        return dict(self._benchmarks)

    @property
    def issues(self) -> frozenset:
        return frozenset(self._issues)

    @property
    def ignored_issues(self) -> frozenset:
        return frozenset(self._ignored_issues)

    @property
    def reported_issues(self) -> dict[Issue, list[ReportedIssue]]:
        return {issue: list(ris) for issue, ris in self._reported_issues.items()}

    # ------------------------------------------------------------------
    # Building up the model
    # ------------------------------------------------------------------
    def add_benchmark(self, benchmark: Benchmark) -> Benchmark:
        if not isinstance(benchmark, Benchmark):
            raise InvalidArgumentError(
                f"add_benchmark requires a Benchmark, got '{type(benchmark).__name__}'."
            )
        if not benchmark.name:
            raise InvalidArgumentError("add_benchmark requires a Benchmark with a name")
        self._benchmarks[benchmark.name] = benchmark
        return benchmark

    def add_issue_ref(self, issue_ref: str) -> Issue:
        return self.add_issue(Issue.parse(issue_ref))

    def add_issue(self, issue: Issue) -> Issue:
        """Adds an issue to the known issues; there need not be any reports for it."""
        if not isinstance(issue, Issue):
            raise InvalidArgumentError(f"Expected an Issue, got '{type(issue).__name__}'")
        if issue.mnemonic not in self._benchmarks:
            raise UnknownBenchmarkError(issue.mnemonic)
        self._issues.add(issue)
        return issue

    def ignore_reported_issue(self, issue: Issue) -> Issue:
        if not isinstance(issue, Issue):
            raise InvalidArgumentError(
                f"ignore_reported_issue expects an Issue, got '{type(issue).__name__}'"
            )
        self.add_issue(issue)
        self._ignored_issues.add(issue)
        return issue

    def add_reported_issue(self, issue: Issue, *node_names: str) -> ReportedIssue:
        if not isinstance(issue, Issue):
            raise InvalidArgumentError(
                f"add_reported_issue expects an Issue, got '{type(issue).__name__}'"
            )
        self.add_issue(issue)
        reported = ReportedIssue(issue, *node_names)
        self._reported_issues.setdefault(issue, []).append(reported)
        return reported

    def combine_reported_issues(self) -> None:
        """Merges all reports of one issue so all its nodes are processed together."""
        for issue, reports in self._reported_issues.items():
            if len(reports) > 1:
                combined = reports[0]
                for other in reports[1:]:
                    combined = combined + other
                self._reported_issues[issue] = [combined]

    # ------------------------------------------------------------------
    # Plan generation
    # ------------------------------------------------------------------
    def produce_plan(self) -> str:
        self.combine_reported_issues()

        result: list[str] = [
            BANNER,
            f"## Created on {self.clock()}",
            "##",
            "",
            f"plan {self.plan_name}() {{",
        ]

        # Set[str] => index of the target variable declared for it
        node_set_index: dict[frozenset, int] = {}

        sorted_reported = sorted(self._reported_issues.items(), key=lambda item: item[0].ref)

        prev_bm = None
        first_benchmark = True
        fixed = ignored = 0
        for _issue, reports in sorted_reported:
            for ri in reports:
                if first_benchmark or ri.issue.mnemonic != prev_bm:
                    prev_bm = ri.issue.mnemonic
                    bm = self._benchmarks[prev_bm]
                    if not first_benchmark:
                        result.append("")
                    first_benchmark = False
                    result += [
                        f"    ## Benchmark: {bm.name}",
                        f"    ## Version  : {bm.version}",
                        f"    ## Id       : {bm.id}",
                    ]

                if ri.issue in self._ignored_issues:
                    ignored += 1
                    result += [
                        "",
                        f"    # Ignored Issue : {ri.issue.ref}",
                        f"    # Nodes         : {_quoted(ri.nodes)}",
                    ]
                    continue

                fixed += 1
                result += [
                    "",
                    f"    # Issue      : {ri.issue.ref}",
                    f"    # Nodes      : {_quoted(ri.nodes)}",
                ]
                fixes = self._find_fixes(ri, self._benchmarks[prev_bm])
                for node_set, fix in fixes.items():
                    if fix.requires_targets:
                        idx = node_set_index.get(node_set)
                        if idx is None:
                            idx = len(node_set_index)
                            node_set_index[node_set] = idx
                            result.append(f"    {target_var(idx)} = [{_quoted(node_set)}]")
                        result += indent(render_fix(fix, target_var(idx)))
                    else:
                        result += indent(render_fix(fix))

        result += ["}", ""]
        logger.info(
            f"Plan '{self.plan_name}' produced: {fixed} issue(s) resolved, "
            f"{ignored} ignored, {len(node_set_index)} target variable(s)"
        )
        return "\n".join(result)

    def _find_fixes(self, ri: ReportedIssue, benchmark: Benchmark) -> FixPartition:
        fixes = self.fix_provider.find_fixes(ri.issue, ri.nodes, benchmark.all_facts)
        checked = check_partition(ri.issue.ref, ri.nodes, fixes)
        logger.debug(f"{ri.issue.ref}: {'; '.join(describe_partition(checked))}")
        return checked


def check_partition(issue_ref: str, nodes: frozenset, fixes: Union[FixPartition, None]) -> FixPartition:
    """
    Verifies that ``fixes`` partitions ``nodes``: every subset is made of
    reported nodes, no node has two fixes and no node is left out. Empty
    subsets are dropped unless their fix needs no targets; when that leaves
    nothing for an issue reported without nodes, it gets NoFix. Returns the
    partition with frozenset keys in the order given by the provider.
    """
    if not hasattr(fixes, "items"):
        raise FixProviderContractViolation(
            issue_ref, f"expected a mapping of node sets to fixes, got '{type(fixes).__name__}'"
        )
    checked: dict[frozenset, object] = {}
    seen: set[str] = set()
    for node_set, fix in fixes.items():
        if isinstance(node_set, str):
            raise FixProviderContractViolation(issue_ref, f"node set '{node_set}' is a string, not a set")
        if not isinstance(fix, FIX_TYPES):
            raise InvalidArgumentError(
                f"Fix provider returned '{type(fix).__name__}' for {issue_ref}, expected a Fix"
            )
        subset = frozenset(node_set)
        if not subset and fix.requires_targets:
            continue
        unknown = subset - nodes
        if unknown:
            raise FixProviderContractViolation(
                issue_ref, f"nodes {sorted(unknown)} were not reported for this issue"
            )
        overlap = subset & seen
        if overlap:
            raise FixProviderContractViolation(
                issue_ref, f"nodes {sorted(overlap)} are mapped to more than one fix"
            )
        seen |= subset
        checked[subset] = fix
    if not nodes and not checked:
        # an issue reported without nodes still shows that nothing is fixed
        checked[frozenset()] = NoFix()
    missing = nodes - seen
    if missing:
        raise FixProviderContractViolation(issue_ref, f"no fix given for nodes {sorted(missing)}")
    return checked

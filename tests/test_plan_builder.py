# tests/test_plan_builder.py
import pytest

from fixplanner.core.plan_builder import DEFAULT_PLAN_NAME, PlanBuilder
from fixplanner.integrations.fix_providers import StaticFixProvider
from fixplanner.models.benchmark import Benchmark
from fixplanner.models.errors import (
    FixProviderContractViolation, FixProviderError, InvalidArgumentError, MalformedIssueReferenceError,
    UnknownBenchmarkError,
)
from fixplanner.models.fixes import NoFix, TaskFix
from fixplanner.models.issue import Issue

HEADER = [
    "## Fix Planner generated remediation plan",
    "## Created on a dark desert highway",
    "##",
    "",
]

BM_HEADER = [
    "    ## Benchmark: fixname",
    "    ## Version  : 1.2.3",
    "    ## Id       : http://somplace.org/unique-name",
]


@pytest.fixture
def builder(sample_bm, fix_provider, fixed_clock):
    b = PlanBuilder(fix_provider=fix_provider, clock=fixed_clock)
    b.add_benchmark(sample_bm)
    return b


class StubProvider:
    def __init__(self, result):
        self.result = result

    def find_fixes(self, issue, nodes, facts):
        return self.result


# ----------------------------------------------------------------------
# construction, benchmarks and issues
# ----------------------------------------------------------------------
def test_defaults():
    b = PlanBuilder()
    assert b.plan_name == DEFAULT_PLAN_NAME == "generated_plan"
    assert b.benchmarks == {}
    assert b.issues == frozenset()


def test_uses_given_plan_name():
    assert PlanBuilder(plan_name="plan_b").plan_name == "plan_b"


def test_add_benchmark_replaces_same_name(sample_bm):
    b = PlanBuilder()
    b.add_benchmark(sample_bm)
    newer = Benchmark(name="fixname", version="2.0")
    b.add_benchmark(newer)
    assert b.benchmarks == {"fixname": newer}


def test_add_benchmark_requires_a_benchmark(sample_hash):
    with pytest.raises(InvalidArgumentError):
        PlanBuilder().add_benchmark(sample_hash)


def test_issue_ref_with_unknown_benchmark_is_rejected(builder):
    with pytest.raises(UnknownBenchmarkError, match="Given issue references unknown benchmark 'nope'"):
        builder.add_issue_ref("nope:/1.2.3_problem")


def test_issue_with_unknown_benchmark_is_rejected_whatever_else_is_known(builder):
    builder.add_benchmark(Benchmark(name="other"))
    with pytest.raises(UnknownBenchmarkError) as e:
        builder.add_issue(Issue.parse("nope:/:1.2.3_problem"))
    assert e.value.mnemonic == "nope"


def test_issue_for_known_benchmark_is_accepted(builder):
    issue = builder.add_issue_ref("fixname:/1.2.3_problem")
    assert issue == Issue(mnemonic="fixname", section="1.2.3")
    assert builder.issues == {issue}


def test_adding_an_issue_twice_changes_nothing(builder):
    builder.add_issue_ref("fixname:/1.2.3_problem")
    builder.add_issue_ref("fixname:/1.2.3_other-title")
    assert len(builder.issues) == 1


def test_add_issue_requires_an_issue(builder):
    with pytest.raises(InvalidArgumentError):
        builder.add_issue("fixname:/1.2.3")


def test_reported_issue_for_known_benchmark_is_added(builder):
    issue = Issue.parse("fixname:/1.2.3_problem")
    ri = builder.add_reported_issue(issue, "kermit", "gonzo")
    assert ri.nodes == {"kermit", "gonzo"}
    assert issue in builder.issues
    assert builder.reported_issues == {issue: [ri]}


def test_reported_issue_for_unknown_benchmark_is_rejected(builder):
    with pytest.raises(UnknownBenchmarkError):
        builder.add_reported_issue(Issue.parse("unknown:/1.2.3_problem"), "kermit", "gonzo")
    assert builder.reported_issues == {}


def test_reports_accumulate_until_combined(builder):
    issue = Issue.parse("fixname:/1.2.3")
    builder.add_reported_issue(issue, "kermit")
    builder.add_reported_issue(Issue.parse("fixname:/1.2.3_title"), "gonzo")
    assert len(builder.reported_issues[issue]) == 2

    builder.combine_reported_issues()
    builder.combine_reported_issues()
    reports = builder.reported_issues[issue]
    assert len(reports) == 1
    assert reports[0].nodes == {"kermit", "gonzo"}


def test_ignored_issue_is_registered(builder):
    issue = builder.ignore_reported_issue(Issue.parse("fixname:/1.2.3"))
    assert issue in builder.issues
    assert builder.ignored_issues == {issue}


def test_ignoring_issue_of_unknown_benchmark_is_rejected(builder):
    with pytest.raises(UnknownBenchmarkError):
        builder.ignore_reported_issue(Issue.parse("nope:/1.2.3"))


# ----------------------------------------------------------------------
# plan generation
# ----------------------------------------------------------------------
def test_plan_starts_with_a_header(builder):
    lines = builder.produce_plan().split("\n")
    assert lines[:3] == HEADER[:3]


def test_empty_plan(builder, fix_provider):
    assert builder.produce_plan() == "\n".join(HEADER + ["plan generated_plan() {", "}", ""])
    assert fix_provider.calls == []


def test_plan_for_one_issue(builder, sample_bm, fix_provider):
    builder.add_reported_issue(builder.add_issue_ref("fixname:/1.1.1_x"), "kermit", "gonzo")
    assert builder.produce_plan().split("\n") == HEADER + ["plan generated_plan() {"] + BM_HEADER + [
        "",
        "    # Issue      : fixname:/1.1.1_x",
        "    # Nodes      : 'gonzo', 'kermit'",
        "    $targets_0 = ['gonzo', 'kermit']",
        "    run_task('mytask', $targets_0, )",
        "}",
        "",
    ]
    [(issue, nodes, facts)] = fix_provider.calls
    assert nodes == {"kermit", "gonzo"}
    assert facts == sample_bm.all_facts


def test_same_node_set_reuses_the_target_variable(builder):
    builder.add_reported_issue(builder.add_issue_ref("fixname:/1.1.1_a"), "kermit", "gonzo")
    builder.add_reported_issue(builder.add_issue_ref("fixname:/2.1.1_b"), "gonzo", "kermit")
    builder.add_reported_issue(builder.add_issue_ref("fixname:/3.1.1_c"), "kermit", "gonzo", "piggy")
    lines = builder.produce_plan().split("\n")

    declarations = [l for l in lines if " = [" in l]
    assert declarations == [
        "    $targets_0 = ['gonzo', 'kermit']",
        "    $targets_1 = ['gonzo', 'kermit', 'piggy']",
    ]
    assert "    run_plan('myplan', $targets_0, )" in lines
    assert "    run_command('@echo all is well', $targets_1, )" in lines


def test_provider_subsets_get_their_own_target_variables(builder):
    builder.add_reported_issue(builder.add_issue_ref("fixname:/1.1.2_split"), "a.test", "b.prod", "c.test")
    builder.add_reported_issue(builder.add_issue_ref("fixname:/2.1.1_plan"), "b.prod")
    lines = builder.produce_plan().split("\n")
    start = lines.index("    # Issue      : fixname:/1.1.2_split")
    assert lines[start + 1:start + 6] == [
        "    # Nodes      : 'a.test', 'b.prod', 'c.test'",
        "    $targets_0 = ['a.test', 'c.test']",
        "    run_task('mytask', $targets_0, 'env' => 'test', )",
        "    $targets_1 = ['b.prod']",
        "    run_task('mytask', $targets_1, 'env' => 'production', )",
    ]
    # the subset returned for the first issue is reused for the second
    assert "    run_plan('myplan', $targets_1, )" in lines
    assert len([l for l in lines if " = [" in l]) == 2


def test_synthetic_fixes_declare_no_targets(builder):
    builder.add_reported_issue(builder.add_issue_ref("fixname:/4.1.1_skip"), "kermit")
    builder.add_reported_issue(builder.add_issue_ref("fixname:/5.1.1_none"), "kermit")
    lines = builder.produce_plan().split("\n")
    assert "    # Skipped    : Configured to be skipped!" in lines
    assert "    # NO FIX     : No fix defined for this issue!" in lines
    assert not [l for l in lines if "$targets" in l]


def test_output_is_sorted_by_ref_and_grouped_by_benchmark(fix_provider, fixed_clock):
    b = PlanBuilder(fix_provider=fix_provider, clock=fixed_clock)
    b.add_benchmark(Benchmark(id="B-ID", name="beta", version="2"))
    b.add_benchmark(Benchmark(id="A-ID", name="alpha", version="1"))
    b.add_reported_issue(Issue.parse("beta:/1.1.1"), "kermit")
    b.add_reported_issue(Issue.parse("alpha:/2.1.1"), "kermit")
    b.add_reported_issue(Issue.parse("alpha:/1.1.1"), "kermit")
    lines = b.produce_plan().split("\n")

    headers = [l for l in lines if l.startswith("    ## ") or l.startswith("    # Issue")]
    assert headers == [
        "    ## Benchmark: alpha",
        "    ## Version  : 1",
        "    ## Id       : A-ID",
        "    # Issue      : alpha:/1.1.1",
        "    # Issue      : alpha:/2.1.1",
        "    ## Benchmark: beta",
        "    ## Version  : 2",
        "    ## Id       : B-ID",
        "    # Issue      : beta:/1.1.1",
    ]
    # one blank line separates benchmarks
    beta = lines.index("    ## Benchmark: beta")
    assert lines[beta - 1] == ""
    assert lines[beta - 2] != ""
    assert [i.ref for i, _n, _f in fix_provider.calls] == ["alpha:/1.1.1", "alpha:/2.1.1", "beta:/1.1.1"]


def test_ignored_issue_is_listed_but_not_fixed(builder, fix_provider):
    issue = Issue.parse("fixname:/1.1.1_ignored")
    builder.ignore_reported_issue(issue)
    builder.add_reported_issue(issue, "kermit", "gonzo")
    lines = builder.produce_plan().split("\n")
    assert lines[len(HEADER) + 1:] == BM_HEADER + [
        "",
        "    # Ignored Issue : fixname:/1.1.1_ignored",
        "    # Nodes         : 'gonzo', 'kermit'",
        "}",
        "",
    ]
    assert fix_provider.calls == []


def test_reports_of_one_issue_are_resolved_together(builder, fix_provider):
    builder.add_reported_issue(Issue.parse("fixname:/1.1.1"), "kermit")
    builder.add_reported_issue(Issue.parse("fixname:/1.1.1_again"), "gonzo")
    lines = builder.produce_plan().split("\n")
    assert len(fix_provider.calls) == 1
    assert fix_provider.calls[0][1] == {"kermit", "gonzo"}
    assert len([l for l in lines if l.startswith("    # Issue")]) == 1


def test_producing_twice_gives_the_same_plan(builder):
    builder.add_reported_issue(builder.add_issue_ref("fixname:/1.1.1_x"), "kermit")
    builder.add_reported_issue(builder.add_issue_ref("fixname:/1.1.1_x"), "gonzo")
    assert builder.produce_plan() == builder.produce_plan()


def test_empty_report_with_no_fix(builder):
    builder.add_reported_issue(builder.add_issue_ref("fixname:/9.9.9"))
    lines = builder.produce_plan().split("\n")
    assert "    # Nodes      : " in lines
    assert "    # NO FIX     : No fix defined for this issue!" in lines


# ----------------------------------------------------------------------
# provider contract
# ----------------------------------------------------------------------
def _builder_with(sample_bm, result):
    b = PlanBuilder(fix_provider=StubProvider(result))
    b.add_benchmark(sample_bm)
    b.add_reported_issue(Issue.parse("fixname:/1.1.1"), "kermit", "gonzo")
    return b


def test_provider_returning_unreported_nodes_is_an_error(sample_bm):
    b = _builder_with(sample_bm, {frozenset({"kermit", "gonzo", "piggy"}): TaskFix("t")})
    with pytest.raises(FixProviderContractViolation, match="piggy"):
        b.produce_plan()


def test_provider_leaving_out_nodes_is_an_error(sample_bm):
    b = _builder_with(sample_bm, {frozenset({"kermit"}): TaskFix("t")})
    with pytest.raises(FixProviderContractViolation, match="gonzo"):
        b.produce_plan()


def test_provider_giving_a_node_two_fixes_is_an_error(sample_bm):
    b = _builder_with(sample_bm, {
        frozenset({"kermit", "gonzo"}): TaskFix("t"),
        frozenset({"kermit"}): NoFix(),
    })
    with pytest.raises(FixProviderContractViolation, match="more than one fix"):
        b.produce_plan()


def test_provider_returning_something_else_than_fixes_is_an_error(sample_bm):
    b = _builder_with(sample_bm, {frozenset({"kermit", "gonzo"}): "run_task"})
    with pytest.raises(InvalidArgumentError):
        b.produce_plan()


def test_provider_returning_no_mapping_is_an_error(sample_bm):
    b = _builder_with(sample_bm, None)
    with pytest.raises(FixProviderContractViolation):
        b.produce_plan()


def test_provider_errors_propagate(sample_bm):
    class FailingProvider:
        def find_fixes(self, issue, nodes, facts):
            raise FixProviderError("lookup backend is down")

    b = PlanBuilder(fix_provider=FailingProvider())
    b.add_benchmark(sample_bm)
    b.add_reported_issue(Issue.parse("fixname:/1.1.1"), "kermit")
    with pytest.raises(FixProviderError, match="backend is down"):
        b.produce_plan()


def test_provider_may_return_plain_sets_and_lists(sample_bm):
    b = _builder_with(sample_bm, {("gonzo", "kermit"): TaskFix("t")})
    assert "    $targets_0 = ['gonzo', 'kermit']" in b.produce_plan().split("\n")


def test_benchmarks_need_a_name():
    with pytest.raises(InvalidArgumentError, match="with a name"):
        PlanBuilder().add_benchmark(Benchmark(id="xccdf_nameless"))


def test_issue_ref_with_invalid_mnemonic_is_malformed(builder):
    with pytest.raises(MalformedIssueReferenceError):
        builder.add_issue_ref("fix_name:/1.1.1")


def test_node_names_are_escaped(builder):
    builder.add_reported_issue(Issue.parse("fixname:/1.1.1"), "o'brien", "back\\slash")
    lines = builder.produce_plan().split("\n")
    assert "    # Nodes      : 'back\\\\slash', 'o\\'brien'" in lines
    assert "    $targets_0 = ['back\\\\slash', 'o\\'brien']" in lines


def test_empty_report_with_a_fix_bearing_provider(sample_bm, fixed_clock):
    issue = Issue.parse("fixname:/1.1.1")
    b = PlanBuilder(fix_provider=StaticFixProvider({issue: TaskFix("t")}), clock=fixed_clock)
    b.add_benchmark(sample_bm)
    b.add_reported_issue(issue)
    lines = b.produce_plan().split("\n")
    assert lines[-5:] == [
        "    # Issue      : fixname:/1.1.1",
        "    # Nodes      : ",
        "    # NO FIX     : No fix defined for this issue!",
        "}",
        "",
    ]
    assert not any("run_task" in line for line in lines)

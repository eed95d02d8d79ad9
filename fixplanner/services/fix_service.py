from pathlib import Path
from typing import Callable, Iterable, Optional

from loguru import logger

from fixplanner.config.settings import Settings, settings as default_settings
from fixplanner.core.fixes_builder import FixesBuilder
from fixplanner.core.plan_builder import PlanBuilder
from fixplanner.integrations.fix_providers import ChainedFixProvider, FixProvider, StaticFixProvider
from fixplanner.integrations.fix_service_client import FixServiceClient
from fixplanner.integrations.layered_provider import LayeredFixProvider
from fixplanner.models.errors import InvalidArgumentError
from fixplanner.models.issue import Issue
from fixplanner.services.fix_config import FixConfig, load_fix_config
from fixplanner.services.issues_file import IssueReport, load_issues_file


class FixController:
    """
    Ties configuration, issue reports and fix lookup together and produces
    the plan. UI concerns (options, output files) stay in the CLI.
    """

    def __init__(self, settings: Settings = default_settings,
                 explain_sink: Optional[Callable[[str], None]] = None):
        self.settings = settings
        self.explain_sink = explain_sink
        self.fix_config: Optional[FixConfig] = None
        self.plan_name: Optional[str] = None
        self.fixdir: Optional[Path] = None

    def run(self, issue: Optional[Issue] = None, issues_files: Iterable = (),
            plan_name: Optional[str] = None, explain: bool = False, fixdir=None) -> str:
        issues_files = list(issues_files or ())
        if issue is not None and issues_files:
            raise InvalidArgumentError("'issue' and 'issues_files' cannot be used at the same time")

        if issue is not None:
            reports = [IssueReport(issues=[issue.without_node()],
                                   nodes=[issue.node or self.settings.DEFAULT_NODE])]
        elif issues_files:
            reports = [r for f in issues_files for r in load_issues_file(f)]
        else:
            raise InvalidArgumentError("No issue was given, use 'issue' or 'issues_files'")

        self.fixdir = Path(fixdir) if fixdir is not None else Path(self.settings.FIXDIR)
        if not self.fixdir.is_dir():
            raise InvalidArgumentError(f"Given fixdir {self.fixdir} is not a directory or does not exist")

        self.fix_config = load_fix_config(self.fixdir)
        self.plan_name = plan_name or self.fix_config.default_plan_name or self.settings.PLAN_NAME

        builder = PlanBuilder(fix_provider=self.create_fix_provider(explain), plan_name=self.plan_name)
        for bm in self.fix_config.benchmarks:
            builder.add_benchmark(bm)
        for report in reports:
            for reported in report.issues:
                builder.add_reported_issue(reported, *report.nodes)
        for ref in self.fix_config.ignore:
            builder.ignore_reported_issue(Issue.parse(ref))

        logger.info(
            f"Producing plan '{self.plan_name}' for {len(builder.reported_issues)} issue(s) "
            f"across {len(builder.benchmarks)} benchmark(s)"
        )
        return builder.produce_plan()

    def create_fix_provider(self, explain: bool = False) -> FixProvider:
        """Fixes declared in fixconf.yaml win over the layered data or the fix service."""
        url = self.fix_config.fix_service_url or self.settings.FIX_SERVICE_URL
        sink = (self.explain_sink or (lambda line: logger.info(line))) if explain else None
        if url:
            fallback: FixProvider = FixServiceClient(
                base_url=url,
                token=self.settings.FIX_SERVICE_TOKEN,
                timeout=self.settings.FIX_SERVICE_TIMEOUT,
            )
        else:
            fallback = LayeredFixProvider(self.fixdir, explain=sink)

        static = StaticFixProvider(
            FixesBuilder(self.fix_config.default_benchmark, source="fixconf.yaml")
            .build_fix_map(self.fix_config.fixes)
        )
        return ChainedFixProvider(static, fallback)

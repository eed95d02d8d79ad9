from typing import Any, Iterable, NamedTuple, Optional

from fixplanner.models.errors import ConfigurationError, InvalidArgumentError
from fixplanner.models.fixes import CommandFix, Fix, NoFix, PlanFix, SkippedFix, TaskFix
from fixplanner.models.issue import Issue, normalize_section

FIX_KINDS = ("task", "plan", "command", "skip", "none")


class FixEntry(NamedTuple):
    issue: Issue
    fix: Fix
    nodes_pattern: Optional[str] = None   # glob the entry is restricted to


class FixesBuilder:
    """
    Builds fixes from declared data. A fix entry looks like:

        - benchmark: cis-rhel7        # optional, defaults to default_benchmark
          section: 1.1.1.1
          name: Ensure_cramfs_disabled  # informational
          nodes: "*.test"             # optional glob restricting the entry
          fix:
            task: cis::disable_cramfs
            parameters:
              reboot: false
    """

    def __init__(self, default_benchmark: Optional[str] = None, source: Optional[str] = None):
        self.default_benchmark = default_benchmark
        self.source = source

    def build_fix(self, spec: Any, where: str = "fix") -> Fix:
        if not isinstance(spec, dict):
            raise ConfigurationError(f"{where} must be a map, got '{type(spec).__name__}'", self.source)
        kinds = [k for k in FIX_KINDS if spec.get(k) is not None]
        if len(kinds) != 1:
            raise ConfigurationError(
                f"{where} must be exactly one of 'task', 'plan', 'command', 'skip' or 'none' "
                f"- got {kinds or 'neither'}.",
                self.source,
            )
        kind = kinds[0]
        try:
            if kind == "task":
                return TaskFix(spec["task"], spec.get("parameters"))
            if kind == "plan":
                return PlanFix(spec["plan"], spec.get("parameters"))
            if kind == "command":
                return CommandFix(spec["command"], spec.get("parameters"))
        except InvalidArgumentError as e:
            raise ConfigurationError(f"{where}: {e}", self.source) from e
        if kind == "skip":
            return SkippedFix()
        return NoFix()

    def build_entry(self, data: Any, index: int = 0) -> FixEntry:
        where = f"fixes[{index}]"
        if not isinstance(data, dict):
            raise ConfigurationError(f"{where} must be a map, got '{type(data).__name__}'", self.source)
        if "fix" not in data:
            raise ConfigurationError(f"{where} has no 'fix'", self.source)
        section = data.get("section")
        if section is None:
            raise ConfigurationError(f"{where} must contain 'section'", self.source)
        if isinstance(section, float):
            raise ConfigurationError(
                f"{where}: section was read as the number {section!r}, quote it to keep every digit",
                self.source,
            )
        normalized = normalize_section(str(section))
        if normalized is None:
            raise ConfigurationError(f"{where}: '{section}' is not a section number", self.source)
        mnemonic = data.get("benchmark") or self.default_benchmark
        if not mnemonic:
            raise ConfigurationError(f"{where} must reference a benchmark", self.source)
        issue = Issue(
            mnemonic=mnemonic,
            section=normalized,
            name=None if data.get("name") is None else str(data["name"]),
        )
        pattern = data.get("nodes")
        if pattern is not None and not isinstance(pattern, str):
            raise ConfigurationError(f"{where}: 'nodes' must be a glob pattern string", self.source)
        return FixEntry(issue, self.build_fix(data["fix"], f"{where}.fix"), pattern)

    def build_fixes(self, entries: Optional[Iterable[Any]]) -> list[FixEntry]:
        if entries is None:
            return []
        if not isinstance(entries, list):
            raise ConfigurationError(f"fixes must be a list, got '{type(entries).__name__}'", self.source)
        return [self.build_entry(e, i) for i, e in enumerate(entries)]

    def build_fix_map(self, entries: Optional[Iterable[Any]]) -> dict[Issue, Fix]:
        """The ``{Issue: Fix}`` map of entries that apply to all nodes; the first entry wins."""
        fixes: dict[Issue, Fix] = {}
        for entry in self.build_fixes(entries):
            if entry.nodes_pattern is None:
                fixes.setdefault(entry.issue, entry.fix)
        return fixes

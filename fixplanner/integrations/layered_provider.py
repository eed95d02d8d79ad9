import re
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

import yaml
from loguru import logger

from fixplanner.core.fixes_builder import FixEntry, FixesBuilder
from fixplanner.integrations.fix_providers import FixPartition
from fixplanner.models.errors import ConfigurationError, FixProviderError
from fixplanner.models.fixes import NoFix
from fixplanner.models.issue import Issue

DEFAULT_HIERARCHY = (
    "benchmarks/%{benchmark.name}.yaml",
    "families/%{benchmark.family}.yaml",
    "common.yaml",
)

_INTERPOLATION_RE = re.compile(r"%\{([^}]*)\}")


class _MissingFact(Exception):
    pass


def _dig(facts: Mapping[str, Any], dotted: str) -> Any:
    value: Any = facts
    for key in dotted.strip().split("."):
        if not isinstance(value, Mapping) or value.get(key) is None:
            raise _MissingFact(dotted)
        value = value[key]
    return value


def interpolate(template: str, facts: Mapping[str, Any]) -> Optional[str]:
    """Replaces ``%{a.b}`` with facts; returns None when a fact is missing."""
    try:
        return _INTERPOLATION_RE.sub(lambda m: str(_dig(facts, m.group(1))), template)
    except _MissingFact:
        return None


class LayeredFixProvider:
    """
    Finds fixes in YAML data files layered by precedence.

    The fixdir itself is the highest precedence layer, followed by each
    module in ``<fixdir>/modules`` (in name order). Every layer is searched
    through the same hierarchy of data files below its ``data`` directory;
    hierarchy paths may reference facts with ``%{dotted.fact}``.

    Fix entries are merged across all levels with the first entry for an
    ``(issue, nodes pattern)`` key winning, so local data overrides data
    contributed by modules while modules can still add fixes the fixdir does
    not define. Nodes are partitioned by the first entry that matches them.
    """

    def __init__(
        self,
        fixdir,
        hierarchy: Optional[Sequence[str]] = None,
        explain: Optional[Callable[[str], None]] = None,
    ):
        self.fixdir = Path(fixdir)
        self.hierarchy = tuple(hierarchy) if hierarchy else self._load_hierarchy()
        self.explain = explain
        self._file_cache: dict[tuple, list[FixEntry]] = {}

    def _load_hierarchy(self) -> tuple:
        path = self.fixdir / "hierarchy.yaml"
        if not path.is_file():
            return DEFAULT_HIERARCHY
        raw = self._read_yaml(path)
        levels = raw.get("hierarchy") if isinstance(raw, dict) else None
        if not isinstance(levels, list) or not all(isinstance(l, str) for l in levels):
            raise ConfigurationError("'hierarchy' must be a list of path strings", str(path))
        return tuple(levels)

    def _say(self, text: str) -> None:
        if self.explain is not None:
            self.explain(text)

    def layers(self) -> list[Path]:
        roots = [self.fixdir]
        modules = self.fixdir / "modules"
        if modules.is_dir():
            roots += sorted(p for p in modules.iterdir() if p.is_dir())
        return roots

    def data_files(self, facts: Mapping[str, Any]) -> list[Path]:
        files = []
        for root in self.layers():
            for level in self.hierarchy:
                relative = interpolate(level, facts)
                if relative is None:
                    self._say(f"Hierarchy level '{level}' skipped in {root}: missing fact")
                    continue
                path = root / "data" / relative
                if path.is_file():
                    self._say(f"Using data file {path}")
                    files.append(path)
                else:
                    self._say(f"Data file {path} not found")
        return files

    @staticmethod
    def _read_yaml(path: Path) -> Any:
        try:
            with path.open("r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise FixProviderError(f"Cannot read fix data {path}: {e}") from e

    def _entries_in(self, path: Path, mnemonic: Optional[str]) -> list[FixEntry]:
        key = (path.resolve(), mnemonic)
        if key not in self._file_cache:
            raw = self._read_yaml(path)
            if not isinstance(raw, dict):
                raise FixProviderError(f"Fix data {path} must be a map with a 'fixes' list")
            try:
                self._file_cache[key] = FixesBuilder(mnemonic, source=str(path)).build_fixes(raw.get("fixes"))
            except ConfigurationError as e:
                raise FixProviderError(str(e)) from e
        return self._file_cache[key]

    def merged_entries(self, issue: Issue, facts: Mapping[str, Any]) -> list[FixEntry]:
        """All entries for ``issue`` in precedence order, one per ``(issue, pattern)``."""
        wanted = issue.without_node()
        merged: list[FixEntry] = []
        seen: set = set()
        for path in self.data_files(facts):
            level_entries = [e for e in self._entries_in(path, issue.mnemonic) if e.issue == wanted]
            # node specific entries take precedence within a level
            level_entries.sort(key=lambda e: e.nodes_pattern is None)
            for entry in level_entries:
                key = (entry.issue, entry.nodes_pattern)
                if key in seen:
                    self._say(f"{issue.ref}: entry for nodes '{entry.nodes_pattern or '*'}' in {path} is overridden")
                    continue
                seen.add(key)
                merged.append(entry)
        return merged

    def find_fixes(self, issue: Issue, nodes: frozenset, facts: Mapping[str, Any]) -> FixPartition:
        entries = self.merged_entries(issue, facts)
        chosen: dict[Optional[int], set] = {}
        for node in sorted(nodes):
            match = next(
                (i for i, e in enumerate(entries)
                 if e.nodes_pattern is None or fnmatchcase(node, e.nodes_pattern)),
                None,
            )
            chosen.setdefault(match, set()).add(node)

        result: dict[frozenset, Any] = {}
        for idx in sorted(chosen, key=lambda i: (i is None, i if i is not None else 0)):
            fix = NoFix() if idx is None else entries[idx].fix
            subset = frozenset(chosen[idx])
            self._say(f"{issue.ref}: {sorted(subset)} => {type(fix).__name__}")
            result[subset] = fix
        if not nodes:
            result[frozenset()] = entries[0].fix if entries else NoFix()
        logger.debug(f"{issue.ref}: {len(entries)} fix entries found, {len(result)} node subset(s)")
        return result

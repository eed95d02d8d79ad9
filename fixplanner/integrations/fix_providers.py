from typing import Any, Mapping, Optional, Protocol, Sequence

from loguru import logger

from fixplanner.models.fixes import Fix, NoFix
from fixplanner.models.issue import Issue

# A partition of the reported nodes, each subset mapped to the fix that applies to it
FixPartition = Mapping[frozenset, Fix]


class FixProvider(Protocol):
    def find_fixes(self, issue: Issue, nodes: frozenset, facts: Mapping[str, Any]) -> FixPartition:
        ...


class NoFixProvider:
    """Returns NoFix for all issues."""

    def find_fixes(self, issue: Issue, nodes: frozenset, facts: Optional[Mapping[str, Any]] = None) -> FixPartition:
        return {frozenset(nodes): NoFix()}


class StaticFixProvider:
    """Looks fixes up in a fixed ``{Issue: Fix}`` map, the same fix for every node."""

    def __init__(self, fix_map: Mapping[Issue, Fix]):
        self.fix_map = dict(fix_map)

    def knows(self, issue: Issue) -> bool:
        return issue.without_node() in self.fix_map

    def find_fixes(self, issue: Issue, nodes: frozenset, facts: Optional[Mapping[str, Any]] = None) -> FixPartition:
        fix = self.fix_map.get(issue.without_node(), NoFix())
        return {frozenset(nodes): fix}


class ChainedFixProvider:
    """
    Asks a StaticFixProvider first and falls back to the next provider for
    issues the static map does not know about.
    """

    def __init__(self, static: StaticFixProvider, fallback: FixProvider):
        self.static = static
        self.fallback = fallback

    def find_fixes(self, issue: Issue, nodes: frozenset, facts: Mapping[str, Any]) -> FixPartition:
        if self.static.knows(issue):
            logger.debug(f"{issue.ref}: fix taken from configuration")
            return self.static.find_fixes(issue, nodes, facts)
        return self.fallback.find_fixes(issue, nodes, facts)


def describe_partition(partition: FixPartition) -> Sequence[str]:
    return [f"{sorted(nodes)} -> {type(fix).__name__}" for nodes, fix in partition.items()]

from typing import Iterable, Optional, Union

from fixplanner.models.errors import InvalidArgumentError
from fixplanner.models.issue import Issue


def _flatten(nodes) -> Iterable[str]:
    for n in nodes:
        if isinstance(n, str):
            yield n
        elif isinstance(n, Iterable):
            yield from _flatten(n)
        else:
            raise InvalidArgumentError(f"A node name must be a string, got '{type(n).__name__}'")


class ReportedIssue:
    """An issue together with the set of nodes it was reported for."""

    def __init__(self, issue: Issue, *nodes: Union[str, Iterable[str]]):
        if not isinstance(issue, Issue):
            raise InvalidArgumentError(
                f"issue parameter must be an Issue, got '{type(issue).__name__}'."
            )
        self._issue = issue
        self._nodes: set[str] = set()
        self._snapshot: Optional[frozenset[str]] = None
        self.add_nodes(*nodes)

    @property
    def issue(self) -> Issue:
        return self._issue

    @property
    def nodes(self) -> frozenset[str]:
        if self._snapshot is None:
            self._snapshot = frozenset(self._nodes)
        return self._snapshot

    def add_nodes(self, *nodes: Union[str, Iterable[str]]) -> None:
        self._nodes.update(_flatten(nodes))
        self._snapshot = None

    def __add__(self, other: "ReportedIssue") -> "ReportedIssue":
        if not isinstance(other, ReportedIssue):
            raise InvalidArgumentError(
                f"ReportedIssue can only add another ReportedIssue, got '{type(other).__name__}'"
            )
        if other.issue != self.issue:
            raise InvalidArgumentError(
                f"ReportedIssue can only combine nodes for the same issue, "
                f"got {self.issue.ref} and {other.issue.ref}"
            )
        return ReportedIssue(self.issue, self.nodes | other.nodes)

    def __repr__(self) -> str:
        return f"ReportedIssue({self.issue.ref!r}, nodes={sorted(self.nodes)!r})"

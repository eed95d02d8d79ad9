import re
from functools import cached_property
from typing import Any, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict

from fixplanner.models.errors import InvalidArgumentError, MalformedIssueReferenceError

# optional leading slashes, a dotted numeric section, a separator, then the name
_PATH_RE = re.compile(r"\A/*(?P<section>[0-9]+(?:[._-][0-9]+)*)?[._-]?(?P<name>.+)?", re.DOTALL)
_SECTION_SEP_RE = re.compile(r"[_-]")
_SECTION_RE = re.compile(r"\A[0-9]+(?:[._-][0-9]+)*\Z")


def normalize_section(text: str) -> Optional[str]:
    """Returns ``text`` with its separators turned into dots, or None when it is not a section."""
    if not isinstance(text, str) or not _SECTION_RE.match(text.strip()):
        return None
    return _SECTION_SEP_RE.sub(".", text.strip())


def _host_of(netloc: str) -> Optional[str]:
    host = netloc.rpartition("@")[2]
    if host.startswith("["):
        host = host[: host.find("]") + 1]
    else:
        host = host.partition(":")[0]
    return host or None


class Issue(BaseModel):
    """
    A reference to one control (section) of a benchmark, optionally scoped to
    a node.

    Two issues are equal when mnemonic, section and node are equal. The name
    is informational only, so reports that spell out a control title
    differently still refer to the same issue.
    """

    model_config = ConfigDict(frozen=True)

    mnemonic: Optional[str] = None
    section: Optional[str] = None
    name: Optional[str] = None
    node: Optional[str] = None

    @cached_property
    def ref(self) -> str:
        name_part = "" if self.name is None else f"_{self.name}"
        mnemonic = self.mnemonic or ""
        section = self.section or ""
        if self.node:
            return f"{mnemonic}://{self.node}/{section}{name_part}"
        return f"{mnemonic}:/{section}{name_part}"

    def _identity(self) -> tuple:
        return (self.mnemonic, self.section, self.node)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Issue):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self) -> int:
        return hash(self._identity())

    def __str__(self) -> str:
        return self.ref

    def without_node(self) -> "Issue":
        if not self.node:
            return self
        return Issue(mnemonic=self.mnemonic, section=self.section, name=self.name)

    @classmethod
    def from_dict(cls, data: Any) -> "Issue":
        if not isinstance(data, dict):
            raise InvalidArgumentError(
                f"Attempt to create an Issue from something that is not a map. Got '{type(data).__name__}'."
            )
        return cls(
            mnemonic=data.get("mnemonic"),
            section=data.get("section"),
            name=data.get("name"),
            node=data.get("node"),
        )

    @classmethod
    def parse(cls, reference: Any) -> "Issue":
        """
        Parse an issue reference of the form ``<mnemonic>://<node>/<section>_<name>``
        or ``<mnemonic>:/<section>_<name>``.

        The section is one or more runs of digits separated by ``.``, ``_`` or
        ``-`` and is normalised to dots. The name is whatever follows the
        section and an optional separator. Missing parts are None; anything
        that is not a string gives an issue with all parts None.
        """
        if not isinstance(reference, str) or not reference:
            return cls()

        try:
            parts = urlsplit(reference)
        except ValueError as e:
            raise MalformedIssueReferenceError(reference, str(e)) from e

        mnemonic = None
        if parts.scheme:
            # urlsplit lowercases the scheme, the mnemonic keeps its case
            mnemonic = reference[: len(parts.scheme)]
            if not parts.netloc and not parts.path.startswith("/"):
                raise MalformedIssueReferenceError(reference)
        elif ":" in parts.path.partition("/")[0]:
            # a mnemonic that is not a valid scheme, e.g. 'cis_rhel7:/1.1'
            raise MalformedIssueReferenceError(reference, "invalid benchmark mnemonic")

        path = parts.path
        match = _PATH_RE.match(path)
        section = match.group("section") if match else None
        name = match.group("name") if match else None
        if section is not None:
            section = _SECTION_SEP_RE.sub(".", section)

        return cls(mnemonic=mnemonic, node=_host_of(parts.netloc), section=section, name=name)

"""
Reading of issue report files.

A report is a map, or a list of maps, each naming the nodes and the issues
found on them:

    - nodes: [kermit.example.com, gonzo.example.com]
      issues:
        - cis-rhel7:/1.1.1.1_Ensure_mounting_of_cramfs_filesystem_is_disabled
        - cis-rhel7:/1.1.1.2
    - node: piggy.example.com
      issue: cis-rhel7:/5.2.1

``node``/``issue`` are shorthands for one element lists.
"""

import re
from pathlib import Path
from typing import Any

import yaml
from loguru import logger
from pydantic import BaseModel

from fixplanner.models.errors import ConfigurationError, MalformedIssueReferenceError
from fixplanner.models.issue import Issue

_NODE_NAME_RE = re.compile(r"[a-zA-Z0-9]")


class IssueReport(BaseModel):
    issues: list[Issue]
    nodes: list[str]


def _one_of(section: dict, single: str, plural: str, where: str, source: str) -> list:
    one, many = section.get(single), section.get(plural)
    if one is not None and many is not None:
        raise ConfigurationError(
            f"{where} uses both '{single}' and '{plural}' - both not allowed at the same time.", source
        )
    if one is None and many is None:
        raise ConfigurationError(f"{where} must contain either '{single}' or '{plural}'", source)
    if many is not None:
        if not isinstance(many, list):
            raise ConfigurationError(f"{where} has a '{plural}' entry that is not a list", source)
        return many
    return [one]


def normalize_issue_report(data: Any, source: str = "<report>") -> list[IssueReport]:
    """Validates report content and normalizes ``node``/``issue`` to lists of nodes and parsed issues."""
    sections = data if isinstance(data, list) else [data]
    if not all(isinstance(s, dict) for s in sections):
        raise ConfigurationError("must be a map or a list of maps", source)

    reports = []
    for i, section in enumerate(sections):
        where = f"at index {i}"

        nodes = []
        for n in _one_of(section, "node", "nodes", where, source):
            if not isinstance(n, str) or not _NODE_NAME_RE.search(n):
                raise ConfigurationError(f"{where}: '{n}' is not acceptable as the name of a node", source)
            nodes.append(n.strip())

        issues = []
        for ii, ref in enumerate(_one_of(section, "issue", "issues", where, source)):
            try:
                issue = Issue.parse(str(ref))
            except MalformedIssueReferenceError as e:
                raise ConfigurationError(f"{where}, issue[{ii}]: {e}", source) from e
            if not issue.section:
                raise ConfigurationError(f"{where}, issue[{ii}] must contain 'section'", source)
            if not issue.mnemonic:
                raise ConfigurationError(f"{where}, issue[{ii}] must reference a benchmark.", source)
            issues.append(issue)

        reports.append(IssueReport(issues=issues, nodes=nodes))
    return reports


def load_issues_file(path) -> list[IssueReport]:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"cannot be read: {e}", str(path)) from e
    reports = normalize_issue_report(data, str(path))
    logger.info(f"{path}: {sum(len(r.issues) for r in reports)} issue(s) reported")
    return reports

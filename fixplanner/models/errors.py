"""
Fix Planner Exceptions

Every error raised by the plan building engine derives from FixPlannerError so
callers can catch the whole family in one place (the CLI does exactly that).

- InvalidArgumentError: wrong kind of value given to a constructor or method
- UnknownBenchmarkError: an issue references a benchmark that is not registered
- MalformedIssueReferenceError: an issue string is not a hierarchical reference
- FixProviderError: a fix provider failed to resolve fixes
- FixProviderContractViolation: a provider returned an invalid node partition
- ConfigurationError: a configuration, fix data or issue report file is invalid
"""

from typing import Optional


class FixPlannerError(Exception):
    """Base class for all fix planner errors."""


class InvalidArgumentError(FixPlannerError, TypeError):
    pass


class UnknownBenchmarkError(FixPlannerError, LookupError):
    def __init__(self, mnemonic: Optional[str]) -> None:
        self.mnemonic = mnemonic
        super().__init__(f"Given issue references unknown benchmark '{mnemonic}'")


class MalformedIssueReferenceError(FixPlannerError, ValueError):
    def __init__(self, reference: str, reason: Optional[str] = None) -> None:
        self.reference = reference
        message = (
            f"Issue reference '{reference}' does not have the correct form "
            "(must be a hierarchical URI like <mnemonic>://<node>/<section>_<name>)"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FixProviderError(FixPlannerError):
    """Raised by fix providers when fixes cannot be resolved."""


class FixProviderContractViolation(FixProviderError):
    def __init__(self, issue_ref: str, message: str) -> None:
        self.issue_ref = issue_ref
        super().__init__(f"Fix provider returned an invalid result for {issue_ref}: {message}")


class ConfigurationError(FixPlannerError, ValueError):
    def __init__(self, message: str, source: Optional[str] = None) -> None:
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)

from functools import cached_property
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fixplanner.models.errors import InvalidArgumentError


class Benchmark(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None        # "their" identity, e.g. an xccdf id
    name: Optional[str] = None      # the mnemonic used in issue references
    version: Optional[str] = None
    family: Optional[str] = None
    facts: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "version", mode="before")
    @classmethod
    def _as_text(cls, v):
        # yaml reads 2.2 as a float
        return None if v is None else str(v)

    @field_validator("facts", mode="before")
    @classmethod
    def _facts_or_empty(cls, v):
        return {} if v is None else v

    @classmethod
    def from_dict(cls, data: Any) -> "Benchmark":
        """Accepts a flat record or the nested ``{benchmark: {...}, facts: {...}}`` config shape."""
        if not isinstance(data, dict):
            raise InvalidArgumentError(
                f"A Benchmark must be created from a map, got '{type(data).__name__}'."
            )
        meta = data.get("benchmark") if isinstance(data.get("benchmark"), dict) else data
        return cls(
            id=meta.get("id"),
            name=meta.get("name"),
            version=meta.get("version"),
            family=meta.get("family"),
            facts=data.get("facts"),
        )

    @cached_property
    def all_facts(self) -> dict[str, Any]:
        """
        The configured facts plus a ``benchmark`` fact with the benchmark meta
        data, so fix lookup can select different fixes per benchmark.
        """
        merged = dict(self.facts)
        merged["benchmark"] = {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "family": self.family,
        }
        return merged

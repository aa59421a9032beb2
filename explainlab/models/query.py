"""
Pydantic models for query templates and the query pool.

Templates use `?` placeholders; each placeholder is filled with a random
integer drawn from the matching ParamRange when the template is instantiated.
"""

from __future__ import annotations

import random
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from explainlab.exceptions import UnknownQueryError


class Protocol(str, Enum):
    """Wire protocol used to submit a statement."""

    # Parse/Bind/Execute with `$N` parameters.
    EXTENDED = "extended"
    # Single Query message, parameters inlined as literals.
    SIMPLE = "simple"


def split_placeholders(sql: str) -> list[str]:
    """
    Split SQL text on `?` placeholders that are outside string literals.

    Returns the text segments around each placeholder, so a query with N
    placeholders yields N + 1 segments.
    """
    segments: list[str] = []
    current: list[str] = []
    in_string = False
    string_char = None

    for i, ch in enumerate(sql):
        # Track string literals to avoid treating ? inside them as placeholders
        if ch in ("'", '"') and (i == 0 or sql[i - 1] != "\\"):
            if not in_string:
                in_string = True
                string_char = ch
            elif ch == string_char:
                in_string = False
                string_char = None

        if ch == "?" and not in_string:
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)

    segments.append("".join(current))
    return segments


class ParamRange(BaseModel):
    """Inclusive integer range for one placeholder."""

    model_config = ConfigDict(frozen=True)

    low: int
    high: int

    @model_validator(mode="after")
    def _check_bounds(self) -> "ParamRange":
        if self.low > self.high:
            raise ValueError(f"low ({self.low}) must be <= high ({self.high})")
        return self


class QueryTemplate(BaseModel):
    """A named SQL statement with bounded random integer parameters."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=100)
    sql: str = Field(..., min_length=1)
    params: tuple[ParamRange, ...] = ()
    protocol: Protocol = Protocol.EXTENDED
    # Templates that are built to fail (permission errors, missing objects).
    expect_error: bool = False
    description: str = ""

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Template name cannot be empty")
        return v

    @model_validator(mode="after")
    def _check_placeholders(self) -> "QueryTemplate":
        placeholders = len(split_placeholders(self.sql)) - 1
        if placeholders != len(self.params):
            raise ValueError(
                f"Template {self.name!r} has {placeholders} placeholder(s) "
                f"but {len(self.params)} param range(s)"
            )
        return self


class QueryPool(BaseModel):
    """Ordered, immutable set of query templates."""

    model_config = ConfigDict(frozen=True)

    templates: tuple[QueryTemplate, ...] = Field(..., min_length=1)

    @field_validator("templates")
    @classmethod
    def _unique_names(cls, v: tuple[QueryTemplate, ...]) -> tuple[QueryTemplate, ...]:
        seen: set[str] = set()
        for template in v:
            if template.name in seen:
                raise ValueError(f"Duplicate template name: {template.name!r}")
            seen.add(template.name)
        return v

    def choose(self, rng: random.Random) -> QueryTemplate:
        """Pick one template uniformly at random."""
        return rng.choice(self.templates)

    def get(self, name: str) -> QueryTemplate:
        for template in self.templates:
            if template.name == name:
                return template
        raise UnknownQueryError(f"No query template named {name!r}", endpoint=name)

    def names(self) -> list[str]:
        return [t.name for t in self.templates]

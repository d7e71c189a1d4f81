"""Action model and the closed set of variant payloads (copy, move, run)."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class _Variant(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    action_type: ClassVar[str] = ""


class _Transfer(_Variant):
    """Shared shape of copy and move: a required source and an optional destination."""

    source: str = Field(alias="from", min_length=1)
    to: str = ""

    @field_validator("to", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    def destination(self, folder: str) -> str:
        """Return ``to``, or ``<folder>/<basename(from)>`` when it is not configured."""
        if self.to:
            return self.to
        return os.path.join(folder, os.path.basename(self.source))

    def resolve(self, folder: str) -> _Transfer:
        """Return the resolved form of this payload with ``to`` filled in."""
        if self.to:
            return self
        return self.model_copy(update={"to": self.destination(folder)})

    @property
    def resolved(self) -> bool:
        return bool(self.to)


class Copy(_Transfer):
    action_type: ClassVar[str] = "copy"


class Move(_Transfer):
    action_type: ClassVar[str] = "move"


class Run(_Variant):
    action_type: ClassVar[str] = "run"

    path: str = Field(min_length=1)
    timeout: float = 0
    environment: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("environment", "Environment"),
    )
    query: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("query", "Query"),
    )

    @field_validator("timeout", mode="before")
    @classmethod
    def _none_timeout(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("environment", "query", mode="before")
    @classmethod
    def _scalars_to_str(cls, value: Any) -> Any:
        # YAML turns `- 5` into an int; argv and env entries are always strings.
        if value is None:
            return []
        if isinstance(value, (list, tuple)):
            return [item if isinstance(item, str) else str(item) for item in value]
        return value

    @field_validator("environment")
    @classmethod
    def _key_value_pairs(cls, value: list[str]) -> list[str]:
        for entry in value:
            key, sep, _ = entry.partition("=")
            if not sep or not key:
                raise ValueError(f"environment entry {entry!r} must be KEY=VALUE")
        return value

    @property
    def unbounded(self) -> bool:
        return self.timeout <= 0


Variant = Union[Copy, Move, Run]

VARIANTS: dict[str, type[_Variant]] = {
    Copy.action_type: Copy,
    Move.action_type: Move,
    Run.action_type: Run,
}


@dataclass
class Action:
    """One configured deploy step.

    ``follow`` and ``next`` are continuation tokens owned by the deploy driver;
    nothing in this package interprets them. ``variant`` starts out as decoded
    and is replaced by its resolved form the first time the action executes.
    """

    name: str
    variant: Variant
    follow: str = ""
    next: Any = None

    @property
    def action_type(self) -> str:
        return self.variant.action_type

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.action_type, "name": self.name}
        if self.follow:
            payload["follow"] = self.follow
        payload.update(self.variant.model_dump(by_alias=True))
        return payload

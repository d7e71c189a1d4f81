"""Executor interface and result payload."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from deploy_actions.variants import Action


@dataclass
class ActionResult:
    """Outcome of processing one action.

    ``next`` is the action's continuation, handed back untouched whether or
    not the action failed.
    """

    next: Any = None
    error: BaseException | None = None
    elapsed_ms: int | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": "ok" if self.ok else "error"}
        if self.error is not None:
            payload["error"] = str(self.error)
            code = getattr(self.error, "code", None)
            if code is not None:
                payload["code"] = code
        if self.elapsed_ms is not None:
            payload["elapsed_ms"] = self.elapsed_ms
        return payload


class BaseExecutor:
    def execute(self, action: Action, folder: str) -> None:
        """Run the action's variant; raise on failure."""
        raise NotImplementedError

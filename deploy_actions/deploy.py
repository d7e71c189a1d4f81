"""Deploy driver: owns the target folder and walks the follow chain."""

from __future__ import annotations

import os
from typing import Sequence

from deploy_actions.dispatcher import ActionDispatcher
from deploy_actions.errors import ActionDecodeError
from deploy_actions.executors.base import ActionResult
from deploy_actions.logger import DeployLogger
from deploy_actions.variants import Action


def link_actions(actions: Sequence[Action]) -> Sequence[Action]:
    """Point each action's ``next`` at the action named by its ``follow``.

    The first action with a given name wins when names repeat.
    """
    by_name: dict[str, Action] = {}
    for action in actions:
        by_name.setdefault(action.name, action)
    for action in actions:
        if not action.follow:
            continue
        target = by_name.get(action.follow)
        if target is None:
            raise ActionDecodeError(
                f"action '{action.name}' follows unknown action '{action.follow}'"
            )
        action.next = target
    return actions


class Deploy:
    def __init__(
        self,
        folder: str | os.PathLike[str],
        *,
        dispatcher: ActionDispatcher | None = None,
        logger: DeployLogger | None = None,
    ) -> None:
        self.folder = os.fspath(folder)
        self.logger = logger or DeployLogger()
        self.dispatcher = dispatcher or ActionDispatcher(logger=self.logger)
        self.processed: list[Action] = []

    def process(self, action: Action) -> ActionResult:
        return self.dispatcher.process(action, self.folder)

    def run(self, actions: Sequence[Action], *, start: str | None = None) -> list[ActionResult]:
        """Process the entry action, then each continuation, until one fails or the chain ends."""
        self.processed = []
        if not actions:
            return []
        current: object = actions[0]
        if start is not None:
            current = next((action for action in actions if action.name == start), None)
            if current is None:
                raise ActionDecodeError(f"no action named '{start}'")

        results: list[ActionResult] = []
        while isinstance(current, Action):
            if any(current is seen for seen in self.processed):
                self.logger.warn(f"'{current.name}' already ran, stopping the chain")
                break
            self.processed.append(current)
            result = self.process(current)
            results.append(result)
            if not result.ok:
                break
            current = result.next
        return results

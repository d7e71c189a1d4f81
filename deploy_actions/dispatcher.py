"""Route decoded actions to the executor for their variant."""

from __future__ import annotations

import time

from deploy_actions.errors import ActionError, UnknownActionTypeError
from deploy_actions.executors.base import ActionResult, BaseExecutor
from deploy_actions.executors.process import RunExecutor
from deploy_actions.executors.transfer import CopyExecutor, MoveExecutor
from deploy_actions.logger import DeployLogger
from deploy_actions.variants import Action, Copy, Move, Run


class ActionDispatcher:
    def __init__(
        self,
        *,
        copy: BaseExecutor | None = None,
        move: BaseExecutor | None = None,
        run: BaseExecutor | None = None,
        logger: DeployLogger | None = None,
    ) -> None:
        self._copy = copy or CopyExecutor()
        self._move = move or MoveExecutor()
        self._run = run or RunExecutor()
        self.logger = logger or DeployLogger()

    def _executor_for(self, action: Action) -> BaseExecutor | None:
        variant = action.variant
        if isinstance(variant, Copy):
            return self._copy
        if isinstance(variant, Move):
            return self._move
        if isinstance(variant, Run):
            return self._run
        return None

    def process(self, action: Action, folder: str) -> ActionResult:
        """Execute ``action`` once and report the outcome.

        Execution failures are returned on the result, never raised.
        """
        result = ActionResult(next=action.next)
        executor = self._executor_for(action)
        if executor is None:
            result.error = UnknownActionTypeError(type(action.variant).__name__)
            self.logger.error(f"{action.name}: {result.error}")
            return result

        self.logger.info(f"Running {action.action_type} action '{action.name}'")
        start = time.monotonic()
        try:
            executor.execute(action, folder)
        except (OSError, ActionError) as exc:
            result.error = exc
        result.elapsed_ms = int((time.monotonic() - start) * 1000)

        if result.ok:
            self.logger.info(f"Completed '{action.name}' in {result.elapsed_ms} ms")
        else:
            self.logger.error(f"'{action.name}' failed: {result.error}")
        return result

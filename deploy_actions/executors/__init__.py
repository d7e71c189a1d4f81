from deploy_actions.executors.base import ActionResult, BaseExecutor
from deploy_actions.executors.process import RunExecutor
from deploy_actions.executors.transfer import CopyExecutor, MoveExecutor

__all__ = ["ActionResult", "BaseExecutor", "CopyExecutor", "MoveExecutor", "RunExecutor"]

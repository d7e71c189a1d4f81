"""Declarative deploy actions: decode copy/move/run records and execute them."""

from deploy_actions.decoder import decode_action, decode_actions, load_actions
from deploy_actions.deploy import Deploy, link_actions
from deploy_actions.dispatcher import ActionDispatcher
from deploy_actions.executors.base import ActionResult
from deploy_actions.variants import Action, Copy, Move, Run

__all__ = [
    "Action",
    "ActionDispatcher",
    "ActionResult",
    "Copy",
    "Deploy",
    "Move",
    "Run",
    "decode_action",
    "decode_actions",
    "link_actions",
    "load_actions",
]

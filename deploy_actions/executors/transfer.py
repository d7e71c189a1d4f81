"""Copy and move executors."""

from __future__ import annotations

import os
import shutil

from deploy_actions.executors.base import BaseExecutor
from deploy_actions.variants import Action, Copy, Move
from utils.settings_store import deep_log

COPY_BUFFER_SIZE = 64 * 1024


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


class CopyExecutor(BaseExecutor):
    def __init__(self, *, buffer_size: int = COPY_BUFFER_SIZE) -> None:
        self.buffer_size = buffer_size

    def execute(self, action: Action, folder: str) -> None:
        copy = action.variant
        if not isinstance(copy, Copy):
            raise TypeError(f"CopyExecutor cannot run {action.action_type} actions")

        with open(copy.source, "rb") as source:
            copy = copy.resolve(folder)
            action.variant = copy
            _ensure_parent(copy.to)
            deep_log(f"[DEEP][COPY] {copy.source} -> {copy.to}")
            # A failed transfer leaves whatever was written in place.
            with open(copy.to, "wb") as target:
                shutil.copyfileobj(source, target, self.buffer_size)


class MoveExecutor(BaseExecutor):
    def execute(self, action: Action, folder: str) -> None:
        move = action.variant
        if not isinstance(move, Move):
            raise TypeError(f"MoveExecutor cannot run {action.action_type} actions")

        with open(move.source, "rb"):
            pass

        # Directories come from the configured destination only; a defaulted
        # one lands directly in the deploy folder, which must already exist.
        if move.to:
            _ensure_parent(move.to)

        move = move.resolve(folder)
        action.variant = move
        deep_log(f"[DEEP][MOVE] {move.source} -> {move.to}")
        os.rename(move.source, move.to)

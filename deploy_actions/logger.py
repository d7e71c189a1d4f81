"""Console logger used by the dispatcher and the deploy driver."""

from utils.log_utils import tprint


class DeployLogger:
    def __init__(self, system: str = "DEPLOY") -> None:
        self.system = system

    def info(self, message: str) -> None:
        tprint(f"[{self.system}][INFO] {message}")

    def warn(self, message: str) -> None:
        tprint(f"[{self.system}][WARN] {message}")

    def error(self, message: str) -> None:
        tprint(f"[{self.system}][ERROR] {message}")

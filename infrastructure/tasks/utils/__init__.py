"""Dispatcher facade and base task class."""
from .dispatcher import TaskDispatcher
from .base_task import BaseTask, redact_payload

__all__ = ["TaskDispatcher", "BaseTask", "redact_payload"]

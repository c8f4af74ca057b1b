"""Workflow state machine for program generation sessions."""

from . import graph
from .manager import WorkflowManager

__all__ = ["WorkflowManager", "graph"]

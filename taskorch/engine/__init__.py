"""Orchestration engine for taskorch."""

from taskorch.engine.dependency_graph import DependencyGraph
from taskorch.engine.lifecycle import TransitionEffect, allowed_targets, is_legal
from taskorch.engine.recurrence import materialize_next, next_occurrence
from taskorch.engine.scoring import compute_points, compute_xp, derive_multipliers
from taskorch.engine.statistics import StatisticsPeriod, TaskStatistics, compute_statistics
from taskorch.engine.orchestrator import TaskOrchestrator

__all__ = [
    "DependencyGraph",
    "TransitionEffect",
    "allowed_targets",
    "is_legal",
    "materialize_next",
    "next_occurrence",
    "compute_points",
    "compute_xp",
    "derive_multipliers",
    "StatisticsPeriod",
    "TaskStatistics",
    "compute_statistics",
    "TaskOrchestrator",
]

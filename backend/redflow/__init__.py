"""Hierarchical flow/task/subtask execution with span propagation."""

__version__ = "0.1.0"

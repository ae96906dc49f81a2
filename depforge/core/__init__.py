"""Reconciliation engine: hashing, informational cache, dependency graph, planner, executor."""

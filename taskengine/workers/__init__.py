"""
Task worker module.

Long-running process that polls the task table and executes claimed
tasks. Several workers may run against the same database; claiming is
their only synchronization point.

Dependencies: taskengine.core, taskengine.application, taskengine.configs
System role: Background task processing
"""

from taskengine.workers.worker import build_executor, run_worker

__all__ = ["build_executor", "run_worker"]

"""
Worker module.
Contains the poll/execute/acknowledge loop and the job handlers.
"""

from jobqueue.worker.main import Worker, run

__all__ = ["Worker", "run"]

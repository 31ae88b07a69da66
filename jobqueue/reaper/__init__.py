"""
Reaper module.
Contains the lease reaper for recovering stuck jobs.
"""

from jobqueue.reaper.main import Reaper, run

__all__ = ["Reaper", "run"]

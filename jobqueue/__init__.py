"""
Durable Job Queue

A polling job queue backed by a relational store: producers push jobs,
workers claim bounded batches with FOR UPDATE SKIP LOCKED, execute them,
and acknowledge completion or failure.
"""

__version__ = "1.0.0"

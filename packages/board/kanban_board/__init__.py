"""
Kanban Board Ordering & Synchronization Engine

Keeps a dense, per-column ordering of tasks in a client-side cache, applies
drag-initiated moves optimistically and reconciles with the remote task store.
"""

__version__ = "0.1.0"

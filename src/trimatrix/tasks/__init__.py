"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Quadrants)
- task_store.py: the canonical in-memory task list, mirrored to a snapshot
- task_cache.py: text -> quadrant triple memo, mirrored to its own slot
"""

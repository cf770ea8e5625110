"""Persistence: key-value slots and the task-list snapshot / share link."""

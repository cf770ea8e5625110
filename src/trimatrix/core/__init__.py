"""Core: ports, the session orchestrator and the shared app state."""

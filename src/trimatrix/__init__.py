"""trimatrix: one task list, three prioritization matrices, LLM-backed classification."""

__version__ = "0.1.0"

"""
Classification pipeline.

Components:
- batch_queue.py: debounced queue that turns typed texts into batches
- gateway.py: one LLM call per batch, per-item validation
- reconciler.py: merges validated results into the store and the cache
- advisors.py: decomposition and "what next" suggestion boundaries
"""

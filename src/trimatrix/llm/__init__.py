"""LLM clients: OpenRouter (OpenAI-compatible) and the offline demo client."""

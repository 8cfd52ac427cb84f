"""
Integration tests for the Structured Generation Layer.

Test components together or against real external services:
- Full pipeline (prompt -> real backend over mock transport -> recovery)
- Ollama backend (real calls, skipped when no server is running)
- Redis usage sink (real Redis, skipped when unavailable)
"""

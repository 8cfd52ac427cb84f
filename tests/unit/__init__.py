"""
Unit tests for the Structured Generation Layer.

Test individual components in isolation:
- Retry controller (classification, backoff, cancellation)
- Role resolver and credential checks
- Generation runner (fallback, skips, telemetry)
- Recovery parser (strategies, schema, correction)
- Model backends over httpx.MockTransport
- Features and API routes with mock backends
"""

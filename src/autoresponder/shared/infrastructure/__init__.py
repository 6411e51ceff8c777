"""
Shared Infrastructure
=====================

Low-level technical concerns shared by every module:
- Structured JSON logging
- Correlation ID propagation
- Latency timing helpers
"""

"""
Infrastructure Layer
=====================

Process-wide technical adapters:
- database: SQLAlchemy async engine and sessions
- llm: chat completion clients
- mail: SMTP transport
"""

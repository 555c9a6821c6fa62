"""
ERP Kernel - shared infrastructure for the Order-to-Cash engine.

Provides:
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging
- SQLAlchemy declarative base, engine and session management
- Row-lock helpers and concurrency error translation
- Document number sequences
"""

__version__ = "0.1.0"

"""
Billing Kernel

Shared infrastructure for the billing ledger:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Database engine, declarative base, and decimal column adapters
- Injectable clock and explicit caller authorization context
"""

__version__ = "0.1.0"

"""
Billing modules.

Each module owns its ORM models, frozen DTOs, configuration schema,
workflow definitions and services.  Modules may import from
``billing_kernel`` and ``billing_engines``; never the other way round.
"""

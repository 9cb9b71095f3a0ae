"""
Module ORM Registry (``billing_modules._orm_registry``).

Ensures every module-level SQLAlchemy model is imported so that
``Base.metadata`` contains its table definitions before
``create_tables()`` runs.
"""


def import_all_orm_models() -> None:
    """Import every ``billing_modules.*.orm`` module.  Idempotent."""
    import billing_modules.invoicing.orm  # noqa: F401

"""
Invoicing Configuration Schema.

Defines the structure and defaults for invoicing settings.  Actual values
may be loaded from YAML at runtime (see ``billing_config.loader``).
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Self

from billing_kernel.domain.money import to_decimal
from billing_kernel.logging_config import get_logger

logger = get_logger("modules.invoicing.config")


@dataclass
class InvoicingConfig:
    """
    Configuration schema for the invoicing module.

    Override at instantiation with organisation-specific values:

        config = InvoicingConfig(
            default_tax_rate=Decimal("0.10"),
            payment_terms_days=14,
        )
    """

    # Tax
    default_tax_rate: Decimal = Decimal("0.15")

    # Payment terms
    payment_terms_days: int = 30

    # Invoice numbering: INV-2024-000001
    invoice_number_prefix: str = "INV"
    invoice_number_width: int = 6

    # Roles allowed to act on any customer's invoices
    staff_roles: tuple[str, ...] = ("owner", "admin", "instructor")

    # Input limits
    max_quantity: Decimal = Decimal("9999")
    max_amount: Decimal = Decimal("999999999.99")
    max_description_length: int = 500
    max_notes_length: int = 2000
    max_reference_length: int = 255

    def __post_init__(self):
        self.default_tax_rate = to_decimal(self.default_tax_rate)
        self.max_quantity = to_decimal(self.max_quantity)
        self.max_amount = to_decimal(self.max_amount)
        self.staff_roles = tuple(self.staff_roles)

        if not Decimal("0") <= self.default_tax_rate <= Decimal("1"):
            raise ValueError("default_tax_rate must be between 0 and 1")
        if self.payment_terms_days < 0:
            raise ValueError("payment_terms_days cannot be negative")
        if not self.invoice_number_prefix or not self.invoice_number_prefix.strip():
            raise ValueError("invoice_number_prefix cannot be empty")
        if self.invoice_number_width <= 0:
            raise ValueError("invoice_number_width must be positive")
        if not self.staff_roles:
            raise ValueError("staff_roles cannot be empty")
        if self.max_quantity <= 0:
            raise ValueError("max_quantity must be positive")
        if self.max_amount <= 0:
            raise ValueError("max_amount must be positive")
        for name in ("max_description_length", "max_notes_length", "max_reference_length"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")

        logger.info(
            "invoicing_config_initialized",
            extra={
                "default_tax_rate": str(self.default_tax_rate),
                "payment_terms_days": self.payment_terms_days,
                "invoice_number_prefix": self.invoice_number_prefix,
                "staff_roles": list(self.staff_roles),
            },
        )

    @property
    def staff_role_set(self) -> frozenset[str]:
        return frozenset(self.staff_roles)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the stock defaults."""
        logger.info("invoicing_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from dictionary (e.g., loaded from a YAML file)."""
        logger.info(
            "invoicing_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown invoicing config keys: {unknown}")
        values = dict(data)
        if "staff_roles" in values:
            values["staff_roles"] = tuple(values["staff_roles"])
        return cls(**values)

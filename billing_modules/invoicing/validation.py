"""
Input validation for invoicing operations.

Runs before any row is locked or written.  Every failure raises
``ValidationError`` naming the offending field; values that pass are
returned normalised (``Decimal``, stripped text).
"""

from decimal import Decimal

from billing_kernel.domain.money import round_money, to_decimal
from billing_kernel.exceptions import ValidationError
from billing_modules.invoicing.config import InvoicingConfig
from billing_modules.invoicing.models import PaymentMethod


def parse_decimal(field: str, value: object) -> Decimal:
    try:
        return to_decimal(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(field, "must be a number") from exc


def validate_description(description: object, config: InvoicingConfig) -> str:
    if not isinstance(description, str) or not description.strip():
        raise ValidationError("description", "is required")
    text = description.strip()
    if len(text) > config.max_description_length:
        raise ValidationError(
            "description",
            f"must be at most {config.max_description_length} characters",
        )
    return text


def validate_quantity(value: object, config: InvoicingConfig) -> Decimal:
    quantity = parse_decimal("quantity", value)
    if quantity <= 0:
        raise ValidationError("quantity", "must be greater than 0")
    if quantity > config.max_quantity:
        raise ValidationError("quantity", f"must be at most {config.max_quantity}")
    return quantity


def validate_unit_price(value: object, config: InvoicingConfig) -> Decimal:
    price = parse_decimal("unit_price", value)
    if price < 0:
        raise ValidationError("unit_price", "cannot be negative")
    if price > config.max_amount:
        raise ValidationError("unit_price", f"must be at most {config.max_amount}")
    return price


def validate_tax_rate(value: object) -> Decimal:
    rate = parse_decimal("tax_rate", value)
    if rate < 0 or rate > 1:
        raise ValidationError("tax_rate", "must be between 0 and 1")
    return rate


def validate_optional_text(
    field: str, value: str | None, max_length: int
) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field, "must be text")
    if len(value) > max_length:
        raise ValidationError(field, f"must be at most {max_length} characters")
    return value


def validate_item_inputs(
    *,
    description: object,
    quantity: object,
    unit_price: object,
    tax_rate: object | None,
    notes: str | None,
    config: InvoicingConfig,
) -> tuple[str, Decimal, Decimal, Decimal | None, str | None]:
    """Validate a full set of line-item fields."""
    return (
        validate_description(description, config),
        validate_quantity(quantity, config),
        validate_unit_price(unit_price, config),
        validate_tax_rate(tax_rate) if tax_rate is not None else None,
        validate_optional_text("notes", notes, config.max_notes_length),
    )


def validate_payment_inputs(
    *,
    amount: object,
    method: object,
    reference: str | None,
    notes: str | None,
    config: InvoicingConfig,
) -> tuple[Decimal, PaymentMethod, str | None, str | None]:
    """Validate payment fields; the amount is rounded half-up to cents first."""
    raw = parse_decimal("amount", amount)
    if raw > config.max_amount:
        raise ValidationError("amount", f"must be at most {config.max_amount}")
    value = round_money(raw)
    if value <= 0:
        raise ValidationError("amount", "must be greater than 0")
    if value > config.max_amount:
        raise ValidationError("amount", f"must be at most {config.max_amount}")

    try:
        payment_method = method if isinstance(method, PaymentMethod) else PaymentMethod(method)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError("method", f"must be one of: {allowed}") from exc

    return (
        value,
        payment_method,
        validate_optional_text("reference", reference, config.max_reference_length),
        validate_optional_text("notes", notes, config.max_notes_length),
    )

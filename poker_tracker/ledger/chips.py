"""Chip colors, values and pricing."""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Mapping, Union

from poker_tracker.errors import ValidationError

CHIP_COLORS = ("white", "red", "green", "black", "blue")

DEFAULT_CHIP_VALUES: dict[str, Decimal] = {
    "white": Decimal("1.00"),
    "red": Decimal("2.00"),
    "green": Decimal("5.00"),
    "black": Decimal("20.00"),
    "blue": Decimal("50.00"),
}

MAX_CHIP_VALUE = Decimal("10000")

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Convert a number to a Decimal rounded to cents.

    Floats go through str() so 0.1 becomes Decimal("0.10"), not the binary
    expansion.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def validate_chip_values(values: Mapping[str, Number]) -> dict[str, Decimal]:
    """Validate a color -> value mapping.

    Args:
        values: Proposed chip values.

    Returns:
        The mapping with values normalised to cents.

    Raises:
        ValidationError: If the mapping is empty, names an unknown color, or
            a value is not positive or exceeds MAX_CHIP_VALUE.
    """
    if not values:
        raise ValidationError("At least one chip value is required")

    errors = []
    normalised = {}
    for color, raw in values.items():
        if color not in CHIP_COLORS:
            errors.append({
                "field": color,
                "message": f"Chip color must be one of: {', '.join(CHIP_COLORS)}",
            })
            continue
        try:
            value = to_money(raw)
        except ValidationError as e:
            errors.append({"field": color, "message": e.message})
            continue
        if value <= 0:
            errors.append({"field": color, "message": "Chip value must be positive"})
        elif value > MAX_CHIP_VALUE:
            errors.append({"field": color, "message": f"Chip value must not exceed {MAX_CHIP_VALUE}"})
        else:
            normalised[color] = value

    if errors:
        raise ValidationError("Invalid chip values", details=errors)
    return normalised


def chip_total(breakdown: Mapping[str, int], chip_values: Mapping[str, Decimal]) -> Decimal:
    """Price a chip breakdown.

    Args:
        breakdown: Color -> chip count.
        chip_values: Color -> value per chip.

    Returns:
        Total value in cents. Colors without a configured value count as zero.

    Raises:
        ValidationError: If a count is negative.
    """
    total = Decimal("0")
    for color, count in breakdown.items():
        if count < 0:
            raise ValidationError(f"Chip count for {color} cannot be negative")
        total += chip_values.get(color, Decimal("0")) * count
    return to_money(total)

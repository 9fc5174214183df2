"""Amount parsing and rounding utilities."""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Union[Decimal, int, float, str]) -> Decimal:
    """Quantize a value to cents using half-up rounding.

    Floats are converted through ``str`` so ``0.1`` stays ``0.10``.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(amount_str: str) -> Decimal:
    """Parse an amount string into a Decimal quantized to cents.

    Handles:
    - "123.45"
    - "Bs 123,45" / "123,45 Bs."
    - "$123.45"
    - "1,234.56" and "1.234,56"

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("Empty amount string")

    cleaned = re.sub(r"(?i)bs\.?|usd|\$", "", amount_str).strip()

    # The right-most separator is the decimal mark when both are present
    if "," in cleaned and "." in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    elif "," in cleaned:
        head, _, tail = cleaned.rpartition(",")
        if len(tail) == 3 and head:
            cleaned = cleaned.replace(",", "")
        else:
            cleaned = head.replace(",", "") + "." + tail

    try:
        return to_money(cleaned)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}'") from e

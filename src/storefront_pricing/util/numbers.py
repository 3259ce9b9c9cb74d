from __future__ import annotations

from decimal import Decimal
from typing import Any


def to_decimal(value: Any) -> Any:
    """Prepare a JSON number for a Decimal field.

    Floats go through ``str`` so 0.1 stays 0.1; anything else is left for
    pydantic to validate.
    """
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        return value.strip()
    return value

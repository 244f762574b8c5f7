"""Kubernetes resource quantity helpers.

Parsing goes through the kubernetes client's own ``parse_quantity`` so every
suffix the API server can emit (``n``, ``u``, ``m``, ``Ki`` ... ``Ei``, ``k`` ... ``E``,
exponent notation) is understood. Normalized values round up, the way
``MilliValue()``/``Value()`` do on the server side.
"""
from __future__ import annotations

import math
from decimal import Decimal

from kubernetes.utils.quantity import parse_quantity

_CPU_SUFFIXES = (("", Decimal(1)), ("m", Decimal("1e-3")), ("u", Decimal("1e-6")), ("n", Decimal("1e-9")))
_MEMORY_SUFFIXES = (("Ti", 1024**4), ("Gi", 1024**3), ("Mi", 1024**2), ("Ki", 1024))


def parse(value: str | int | float | None) -> Decimal:
    """Parse a quantity; ``None`` and empty strings count as zero. Raises ``ValueError`` on garbage."""
    if value is None or value == "":
        return Decimal(0)
    return parse_quantity(value)


def cpu_millicores(value: str | int | float | Decimal | None) -> int:
    quantity = value if isinstance(value, Decimal) else parse(value)
    return math.ceil(quantity * 1000)


def memory_bytes(value: str | int | float | Decimal | None) -> int:
    quantity = value if isinstance(value, Decimal) else parse(value)
    return math.ceil(quantity)


def format_cpu(quantity: Decimal) -> str:
    """Render cores in the largest unit that represents ``quantity`` exactly."""
    if quantity == 0:
        return "0"
    for suffix, scale in _CPU_SUFFIXES:
        scaled = quantity / scale
        if scaled == scaled.to_integral_value():
            return f"{int(scaled)}{suffix}"
    return f"{math.ceil(quantity / Decimal('1e-9'))}n"


def format_memory(quantity: Decimal) -> str:
    """Render bytes with the largest binary suffix that divides them exactly."""
    total = math.ceil(quantity)
    if total == 0:
        return "0"
    for suffix, scale in _MEMORY_SUFFIXES:
        if total % scale == 0:
            return f"{total // scale}{suffix}"
    return str(total)


def percentage(used: int, capacity: int | None) -> float | None:
    """``used / capacity * 100``; ``None`` when there is no capacity to compare against."""
    if not capacity or capacity <= 0:
        return None
    return used / capacity * 100.0

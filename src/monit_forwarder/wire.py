"""
Collector plaintext protocol helpers.

One sample per line: ``monit.<name> <value> <timestamp>\\n``.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Iterator, List, Sequence, Union

from .models import Sample

METRIC_ROOT = "monit"

# %g switches to exponent form at this decimal exponent when digits are shortest
_EXP_FORM_AT = 6


def format_float(value: float) -> str:
    """Shortest round-trippable digits in %g layout.

    12.5 -> "12.5", 3.0 -> "3", 123456.0 -> "123456", 1e6 -> "1e+06",
    0.000015 -> "1.5e-05".
    """
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"

    sign, digit_tuple, exponent = Decimal(repr(value)).as_tuple()
    digits = "".join(str(d) for d in digit_tuple).lstrip("0")
    prefix = "-" if sign else ""
    if not digits:
        return prefix + "0"

    # repr() may carry trailing zeros ("100.0"); fold them into the exponent
    stripped = digits.rstrip("0")
    exponent += len(digits) - len(stripped)
    digits = stripped

    point = len(digits) + exponent  # position of the decimal point
    exp10 = point - 1

    if exp10 < -4 or exp10 >= _EXP_FORM_AT:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        exp_sign = "-" if exp10 < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp10):02d}"

    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= len(digits):
        return prefix + digits + "0" * (point - len(digits))
    return f"{prefix}{digits[:point]}.{digits[point:]}"


def format_value(value: Union[int, float]) -> str:
    """Integers render as plain decimal, floats via format_float."""
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, int):
        return str(value)
    return format_float(float(value))


def render_line(sample: Sample) -> str:
    return f"{METRIC_ROOT}.{sample.name} {sample.value} {sample.timestamp}\n"


def render_chunk(samples: Sequence[Sample]) -> bytes:
    return "".join(render_line(s) for s in samples).encode("ascii")


def chunked(samples: Sequence[Sample], size: int) -> Iterator[List[Sample]]:
    """Yield consecutive slices of at most `size` samples."""
    if size <= 0:
        raise ValueError("size must be > 0")
    for start in range(0, len(samples), size):
        yield list(samples[start : start + size])

"""Parsing of resource quantity strings such as ``10M``, ``1Gi`` or ``1500m``."""

from __future__ import annotations

import math
import re
from fractions import Fraction

_BINARY_SUFFIXES = {
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
    "Pi": 2**50,
    "Ei": 2**60,
}

_DECIMAL_SUFFIXES = {
    "n": Fraction(1, 10**9),
    "u": Fraction(1, 10**6),
    "m": Fraction(1, 10**3),
    "": Fraction(1),
    "k": Fraction(10**3),
    "M": Fraction(10**6),
    "G": Fraction(10**9),
    "T": Fraction(10**12),
    "P": Fraction(10**15),
    "E": Fraction(10**18),
}

_QUANTITY = re.compile(r"(?P<sign>[+-]?)(?P<number>[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?P<suffix>.*)")
_EXPONENT = re.compile(r"[eE](?P<exponent>[+-]?[0-9]+)")


class QuantityError(ValueError):
    """Raised when a quantity string cannot be parsed."""


def _multiplier(suffix: str) -> Fraction:
    if suffix in _BINARY_SUFFIXES:
        return Fraction(_BINARY_SUFFIXES[suffix])
    if suffix in _DECIMAL_SUFFIXES:
        return _DECIMAL_SUFFIXES[suffix]
    exponent = _EXPONENT.fullmatch(suffix)
    if exponent is not None:
        return Fraction(10) ** int(exponent.group("exponent"))
    raise QuantityError(f"unable to parse quantity's suffix: {suffix!r}")


def parse_quantity(value: str) -> int:
    """Return the integer value of a quantity, rounded up to the next whole unit."""
    text = value.strip()
    match = _QUANTITY.fullmatch(text)
    if match is None:
        raise QuantityError(f"quantities must match the regular expression: {value!r}")
    amount = Fraction(match.group("number")) * _multiplier(match.group("suffix"))
    if match.group("sign") == "-":
        amount = -amount
    return math.ceil(amount)
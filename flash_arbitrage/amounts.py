"""
Fixed-point token amounts.

Every monetary value in the toolkit is an integer count of base units
(wei for 18-decimal tokens, 1e-6 for USDC). Decimal strings only appear at
the edges: config files, log lines and reports.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Union

from .exceptions import ValidationError

# uint256 can hold at most 77 full decimal digits
MAX_DECIMALS = 77
UINT256_MAX = 2**256 - 1


def _check_decimals(decimals: int) -> None:
    if not isinstance(decimals, int) or isinstance(decimals, bool):
        raise ValidationError(f"decimals must be an int, got {type(decimals).__name__}")
    if decimals < 0 or decimals > MAX_DECIMALS:
        raise ValidationError(f"decimals out of range [0, {MAX_DECIMALS}]: {decimals}")


def parse_units(value: Union[str, int, Decimal], decimals: int) -> int:
    """
    Parse a human-readable token quantity into base units.

    Args:
        value: Quantity such as "1000", "0.5" or Decimal("1.25")
        decimals: Token decimals

    Returns:
        Integer amount in base units

    Raises:
        ValidationError: If the value is negative, not a number, does not fit
            in a uint256, or has more fractional digits than the token supports
    """
    _check_decimals(decimals)
    if isinstance(value, float):
        raise ValidationError("Refusing to parse a float amount; pass a string")
    try:
        quantity = Decimal(str(value).strip().replace("_", ""))
    except InvalidOperation as e:
        raise ValidationError(f"Not a decimal amount: {value!r}") from e

    if not quantity.is_finite():
        raise ValidationError(f"Amount must be finite: {value!r}")
    if quantity < 0:
        raise ValidationError(f"Amount must be non-negative: {value!r}")

    _, digits, exponent = quantity.as_tuple()
    coefficient = int("".join(str(d) for d in digits)) if digits else 0
    if coefficient == 0:
        return 0

    # Bound the exponent before raising 10 to it
    shift = exponent + decimals
    if shift > MAX_DECIMALS:
        raise ValidationError(f"Amount {value!r} does not fit in a uint256")
    if shift < 0 and -shift > len(digits):
        raise ValidationError(
            f"Amount {value!r} has more than {decimals} fractional digits"
        )

    if shift >= 0:
        units = coefficient * 10**shift
    else:
        divisor = 10 ** (-shift)
        if coefficient % divisor:
            raise ValidationError(
                f"Amount {value!r} has more than {decimals} fractional digits"
            )
        units = coefficient // divisor

    if units > UINT256_MAX:
        raise ValidationError(f"Amount {value!r} does not fit in a uint256")
    return units


def format_units(value: int, decimals: int) -> str:
    """
    Format base units as a decimal string without trailing zeros.

    >>> format_units(1_500_000, 6)
    '1.5'
    >>> format_units(10**18, 18)
    '1'
    """
    _check_decimals(decimals)
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**decimals)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0") if decimals else ""
    if frac_str:
        return f"{sign}{whole}.{frac_str}"
    return f"{sign}{whole}"


@dataclass(frozen=True)
class AssetAmount:
    """
    A token quantity as (base units, decimals).

    The decimals must match the token's on-chain ``decimals()``; mixing a
    6-decimal USDC amount with an 18-decimal pod amount is rejected rather
    than silently misscaled.
    """

    value: int
    decimals: int

    def __post_init__(self):
        _check_decimals(self.decimals)
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise ValidationError(
                f"value must be an int, got {type(self.value).__name__}"
            )
        if self.value < 0:
            raise ValidationError(f"value must be non-negative: {self.value}")

    @classmethod
    def parse(cls, text: Union[str, int, Decimal], decimals: int) -> "AssetAmount":
        """Build an amount from a decimal string."""
        return cls(parse_units(text, decimals), decimals)

    def format(self) -> str:
        """Inverse of ``parse``."""
        return format_units(self.value, self.decimals)

    def to_decimal(self) -> Decimal:
        return Decimal(self.format())

    def _require_same_scale(self, other: "AssetAmount") -> None:
        if not isinstance(other, AssetAmount):
            raise ValidationError(f"Expected AssetAmount, got {type(other).__name__}")
        if other.decimals != self.decimals:
            raise ValidationError(
                f"Decimals mismatch: {self.decimals} vs {other.decimals}",
                details={"left": self.decimals, "right": other.decimals},
            )

    def __add__(self, other: "AssetAmount") -> "AssetAmount":
        self._require_same_scale(other)
        return AssetAmount(self.value + other.value, self.decimals)

    def __sub__(self, other: "AssetAmount") -> "AssetAmount":
        self._require_same_scale(other)
        if other.value > self.value:
            raise ValidationError(
                f"Subtraction would go negative: {self.format()} - {other.format()}"
            )
        return AssetAmount(self.value - other.value, self.decimals)

    def __lt__(self, other: "AssetAmount") -> bool:
        self._require_same_scale(other)
        return self.value < other.value

    def __le__(self, other: "AssetAmount") -> bool:
        self._require_same_scale(other)
        return self.value <= other.value

    def __str__(self) -> str:
        return self.format()

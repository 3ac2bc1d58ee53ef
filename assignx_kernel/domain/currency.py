"""Currency -- minor-unit arithmetic and the single rounding rule."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

from assignx_kernel.exceptions import ConfigurationError


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str
    symbol: str

    @property
    def minor_per_major(self) -> int:
        return 10 ** self.decimal_places


class CurrencyRegistry:
    """Currencies the marketplace settles in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "INR": CurrencyInfo("INR", 2, "Indian Rupee", "Rs."),
        "USD": CurrencyInfo("USD", 2, "US Dollar", "$"),
        "EUR": CurrencyInfo("EUR", 2, "Euro", "EUR"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling", "GBP"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham", "AED"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen", "JPY"),
    }

    @classmethod
    def get(cls, code: str) -> CurrencyInfo:
        info = cls._CURRENCIES.get(code.upper())
        if info is None:
            raise ConfigurationError("currency", f"unsupported currency {code!r}")
        return info

    @classmethod
    def is_supported(cls, code: str) -> bool:
        return code.upper() in cls._CURRENCIES


def round_half_up(value: Decimal) -> int:
    """Round a Decimal amount of minor units to an int, halves away from zero.

    This is the only rounding rule used for money.  It is applied once per
    computed figure, never to intermediate products.
    """
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor_units(amount: Decimal | int | str, currency: str = "INR") -> int:
    """Convert a major-unit amount (e.g. rupees) to integer minor units."""
    info = CurrencyRegistry.get(currency)
    return round_half_up(Decimal(str(amount)) * info.minor_per_major)


def format_minor(amount: int, currency: str = "INR") -> str:
    """Render minor units for log lines and notifications: ``Rs.1500.00``."""
    info = CurrencyRegistry.get(currency)
    major = Decimal(amount) / info.minor_per_major
    if info.decimal_places == 0:
        return f"{info.symbol}{major:.0f}"
    return f"{info.symbol}{major:.{info.decimal_places}f}"

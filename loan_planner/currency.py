"""Currency display helpers.

The engine works in a single implicit unit. Amounts are converted only when
they are shown, using a rate table expressed in a common base currency. The
table is passed into :class:`CurrencyConverter` so callers can load their own
rates instead of the defaults below.
"""

from __future__ import annotations

from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional, Union

CURRENCY_OPTIONS = {
    "AED": {"label": "UAE Dirham", "symbol": "AED"},
    "USD": {"label": "US Dollar", "symbol": "$"},
    "EUR": {"label": "Euro", "symbol": "€"},
    "GBP": {"label": "British Pound", "symbol": "£"},
    "INR": {"label": "Indian Rupee", "symbol": "₹"},
    "SAR": {"label": "Saudi Riyal", "symbol": "SAR"},
    "KWD": {"label": "Kuwaiti Dinar", "symbol": "KWD"},
    "QAR": {"label": "Qatari Riyal", "symbol": "QAR"},
    "BHD": {"label": "Bahraini Dinar", "symbol": "BHD"},
    "OMR": {"label": "Omani Rial", "symbol": "OMR"},
}

# Value of one unit of each currency in AED
DEFAULT_FX_RATES = MappingProxyType(
    {
        "AED": Decimal("1"),
        "USD": Decimal("3.6725"),
        "EUR": Decimal("3.982"),
        "GBP": Decimal("4.64"),
        "INR": Decimal("0.0441"),
        "SAR": Decimal("0.979"),
        "KWD": Decimal("11.97"),
        "QAR": Decimal("1.009"),
        "BHD": Decimal("9.74"),
        "OMR": Decimal("9.54"),
    }
)

Number = Union[Decimal, float, int]


class CurrencyConverter:
    """Convert and format amounts using an injected rate table."""

    def __init__(self, rates: Optional[Mapping[str, Decimal]] = None) -> None:
        self._rates = MappingProxyType(dict(rates if rates is not None else DEFAULT_FX_RATES))

    def rate(self, code: str) -> Decimal:
        # Unknown codes are displayed unconverted
        return self._rates.get(code, Decimal("1"))

    def convert(self, amount: Optional[Number], from_code: str, to_code: str) -> Decimal:
        if not amount:
            return Decimal("0")
        return Decimal(str(amount)) * self.rate(from_code) / self.rate(to_code)

    @staticmethod
    def symbol(code: str) -> str:
        option = CURRENCY_OPTIONS.get(code)
        return option["symbol"] if option else code

    def format_amount(self, amount: Number, code: str, decimals: int = 2) -> str:
        """Format ``amount`` with thousands separators, e.g. ``$1,234.50``."""
        return f"{self.symbol(code)}{Decimal(str(amount or 0)):,.{decimals}f}"

    def format_compact(self, amount: Number, code: str) -> str:
        """Short form for chart axes: ``1.2M``, ``3.4K`` or the full amount."""
        value = Decimal(str(amount or 0))
        magnitude = abs(value)
        if magnitude >= 1_000_000:
            return f"{self.symbol(code)}{value / 1_000_000:.1f}M"
        if magnitude >= 1_000:
            return f"{self.symbol(code)}{value / 1_000:.1f}K"
        return self.format_amount(value, code)


def money_formatter(currency: str, display_currency: Optional[str] = None,
                    converter: Optional[CurrencyConverter] = None):
    """Return a callable that converts amounts in ``currency`` and formats them."""
    converter = converter or CurrencyConverter()
    target = display_currency or currency

    def fmt(amount: Number) -> str:
        return converter.format_amount(converter.convert(amount, currency, target), target)

    return fmt

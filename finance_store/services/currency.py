"""
Currency Conversion

Amounts arrive in many currencies, written either as ISO-like codes
("NIS", "usd") or as symbols ("₪", "$"). Both spellings are normalized to
the same code before a rate is looked up, so "₪" and "NIS" always convert
identically.

Rates are static configuration: how many base-currency units one unit of
the currency is worth. A code without a configured rate converts at 1.
"""

from typing import Optional

from finance_store.config import CurrencySettings, get_settings


SYMBOL_TO_CODE = {
    "₪": "NIS",
    "$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "RP": "IDR",
    "RUPIAH": "IDR",
}


class CurrencyConverter:
    """Converts amounts between currencies through the base currency."""

    def __init__(
        self,
        rates: Optional[dict[str, float]] = None,
        base_currency: Optional[str] = None,
    ):
        if rates is None or base_currency is None:
            settings: CurrencySettings = get_settings().currency
            rates = settings.rates if rates is None else rates
            base_currency = base_currency or settings.base_currency
        self._base = base_currency.strip().upper()
        self._rates = {code.strip().upper(): rate for code, rate in rates.items()}
        self._rates.setdefault(self._base, 1.0)

    @property
    def base_currency(self) -> str:
        return self._base

    def normalize_code(self, currency: Optional[str]) -> str:
        """Map a code or symbol to its canonical code. Blank means base currency."""
        raw = (currency or "").strip()
        if not raw:
            return self._base
        upper = raw.upper()
        return SYMBOL_TO_CODE.get(upper, upper)

    def rate_for(self, currency: Optional[str]) -> float:
        return self._rates.get(self.normalize_code(currency), 1.0)

    def convert_to_base(self, amount: float, currency: Optional[str]) -> float:
        return amount * self.rate_for(currency)


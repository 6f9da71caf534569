"""Currency -- ISO 4217 registry for settlement currencies."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single settlement currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """Registry of currencies that partner agreements may be denominated in."""

    # Interconnect and roaming agreements are mostly settled in a small set of
    # hard currencies plus SDR (XDR), which TAP files use for roaming charges.
    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "XDR": CurrencyInfo("XDR", 2, "Special Drawing Rights"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "XAF": CurrencyInfo("XAF", 0, "Central African CFA Franc"),
        "XOF": CurrencyInfo("XOF", 0, "West African CFA Franc"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Omani Rial"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "BRL": CurrencyInfo("BRL", 2, "Brazilian Real"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "EGP": CurrencyInfo("EGP", 2, "Egyptian Pound"),
        "GHS": CurrencyInfo("GHS", 2, "Ghanaian Cedi"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "IDR": CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "KES": CurrencyInfo("KES", 2, "Kenyan Shilling"),
        "MAD": CurrencyInfo("MAD", 2, "Moroccan Dirham"),
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso"),
        "MYR": CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
        "NGN": CurrencyInfo("NGN", 2, "Nigerian Naira"),
        "PHP": CurrencyInfo("PHP", 2, "Philippine Peso"),
        "PKR": CurrencyInfo("PKR", 2, "Pakistani Rupee"),
        "PLN": CurrencyInfo("PLN", 2, "Polish Zloty"),
        "QAR": CurrencyInfo("QAR", 2, "Qatari Riyal"),
        "SAR": CurrencyInfo("SAR", 2, "Saudi Riyal"),
        "SEK": CurrencyInfo("SEK", 2, "Swedish Krona"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "THB": CurrencyInfo("THB", 2, "Thai Baht"),
        "TRY": CurrencyInfo("TRY", 2, "Turkish Lira"),
        "ZAR": CurrencyInfo("ZAR", 2, "South African Rand"),
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check whether a currency code is registered."""
        if not code or len(code) != 3:
            return False
        return code.upper() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        if not code:
            return None
        return cls._CURRENCIES.get(code.upper())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        if info is None:
            return cls.DEFAULT_DECIMAL_PLACES
        return info.decimal_places

    @classmethod
    def validate(cls, code: str) -> str:
        """
        Validate and normalize a currency code.

        Raises:
            InvalidCurrencyError: If the code is not registered.
        """
        from settlement_kernel.exceptions import InvalidCurrencyError

        normalized = code.upper().strip() if code else ""
        if not cls.is_valid(normalized):
            raise InvalidCurrencyError(code)
        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)

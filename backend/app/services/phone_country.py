from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
import enum
import re


@dataclass(frozen=True)
class PhoneCountry:
    phone_code: str
    country_code: str
    country_name: str
    # Expected national number length (digits after the country code)
    national_length: int


# Supported markets; the prefix table is static
PHONE_COUNTRIES: List[PhoneCountry] = [
    PhoneCountry("+234", "NG", "Nigeria", 10),
    PhoneCountry("+254", "KE", "Kenya", 9),
    PhoneCountry("+256", "UG", "Uganda", 9),
    PhoneCountry("+27", "ZA", "South Africa", 9),
    PhoneCountry("+233", "GH", "Ghana", 9),
    PhoneCountry("+255", "TZ", "Tanzania", 9),
    PhoneCountry("+250", "RW", "Rwanda", 9),
    PhoneCountry("+260", "ZM", "Zambia", 9),
    PhoneCountry("+264", "NA", "Namibia", 9),
    PhoneCountry("+267", "BW", "Botswana", 8),
    PhoneCountry("+265", "MW", "Malawi", 9),
    PhoneCountry("+221", "SN", "Senegal", 9),
    PhoneCountry("+251", "ET", "Ethiopia", 9),
    PhoneCountry("+237", "CM", "Cameroon", 9),
    PhoneCountry("+232", "SL", "Sierra Leone", 8),
    PhoneCountry("+263", "ZW", "Zimbabwe", 9),
]

_BY_COUNTRY: Dict[str, PhoneCountry] = {p.country_code: p for p in PHONE_COUNTRIES}

SUPPORTED_COUNTRY_CODES = frozenset(_BY_COUNTRY)


class PhoneCountryError(str, enum.Enum):
    unsupported_prefix = "unsupported_prefix"
    invalid_length = "invalid_length"
    invalid_format = "invalid_format"


@dataclass(frozen=True)
class PhoneCountryResult:
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    phone_code: Optional[str] = None
    formatted_number: Optional[str] = None
    error: Optional[PhoneCountryError] = None
    message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


def _match(mapping: PhoneCountry, national: str, formatted: str) -> PhoneCountryResult:
    if len(national) != mapping.national_length:
        return PhoneCountryResult(
            error=PhoneCountryError.invalid_length,
            message=(
                f"Invalid phone number length for {mapping.country_name}. "
                f"Expected {mapping.national_length} digits after country code."
            ),
        )
    return PhoneCountryResult(
        country_code=mapping.country_code,
        country_name=mapping.country_name,
        phone_code=mapping.phone_code,
        formatted_number=formatted,
    )


def resolve_phone_country(phone_number: Optional[str], default_country: Optional[str] = None) -> PhoneCountryResult:
    """Map a raw phone number to its country using the static prefix table.

    Accepts ``+264812345678``, ``264812345678`` and, when ``default_country``
    is given, the trunk-prefixed national form ``0812345678``. Never raises;
    failures come back as a typed ``error``.
    """
    cleaned = re.sub(r"[^\d+]", "", phone_number or "")
    if not cleaned:
        return PhoneCountryResult(error=PhoneCountryError.invalid_format, message="Phone number is required.")

    if cleaned.startswith("+"):
        for mapping in PHONE_COUNTRIES:
            if cleaned.startswith(mapping.phone_code):
                return _match(mapping, cleaned[len(mapping.phone_code):], cleaned)
        return PhoneCountryResult(
            error=PhoneCountryError.unsupported_prefix,
            message="Phone number country code not supported. Please check our list of supported countries.",
        )

    for mapping in PHONE_COUNTRIES:
        bare = mapping.phone_code[1:]
        if cleaned.startswith(bare):
            return _match(mapping, cleaned[len(bare):], "+" + cleaned)

    if cleaned.startswith("0") and default_country:
        mapping = _BY_COUNTRY.get(default_country.upper())
        if mapping:
            national = cleaned[1:]
            return _match(mapping, national, mapping.phone_code + national)

    if cleaned.startswith("0"):
        return PhoneCountryResult(
            error=PhoneCountryError.invalid_format,
            message="Invalid phone number format. Please include your country code (e.g., +264 for Namibia).",
        )
    return PhoneCountryResult(
        error=PhoneCountryError.unsupported_prefix,
        message="Phone number country code not supported. Please check our list of supported countries.",
    )


def format_phone_number(phone_number: str, country_code: str) -> str:
    """Normalise a number to E.164 for a known country; unknown countries pass through."""
    mapping = _BY_COUNTRY.get((country_code or "").upper())
    if not mapping:
        return phone_number
    digits = re.sub(r"\D", "", phone_number)
    bare = mapping.phone_code[1:]
    if digits.startswith(bare):
        return "+" + digits
    if digits.startswith("0"):
        return mapping.phone_code + digits[1:]
    return mapping.phone_code + digits


def supported_phone_countries() -> List[Dict[str, Any]]:
    return [
        {
            "code": m.country_code,
            "name": m.country_name,
            "phone_code": m.phone_code,
            "example": m.phone_code + "0" * m.national_length,
        }
        for m in PHONE_COUNTRIES
    ]


def is_country_supported(country_code: Optional[str]) -> bool:
    return bool(country_code) and country_code.upper() in SUPPORTED_COUNTRY_CODES

"""
Tests for phone number to country resolution.
"""
import pytest
from app.services.phone_country import (
    PhoneCountryError,
    format_phone_number,
    is_country_supported,
    resolve_phone_country,
    supported_phone_countries,
)


class TestResolvePhoneCountry:
    """Test cases for the static prefix table lookup."""

    @pytest.mark.parametrize("phone,country", [
        ("+254712345678", "KE"),
        ("+264812345678", "NA"),
        ("+2348031234567", "NG"),
        ("+27821234567", "ZA"),
        ("+26771234567", "BW"),
    ])
    def test_international_numbers(self, phone, country):
        """E.164 numbers resolve to the country owning the prefix."""
        result = resolve_phone_country(phone)
        assert result.success
        assert result.country_code == country
        assert result.formatted_number == phone

    def test_spaces_and_dashes_are_ignored(self):
        result = resolve_phone_country("+254 712-345-678")
        assert result.country_code == "KE"
        assert result.formatted_number == "+254712345678"

    def test_bare_country_code_without_plus(self):
        result = resolve_phone_country("264812345678")
        assert result.country_code == "NA"
        assert result.formatted_number == "+264812345678"

    def test_trunk_prefix_uses_default_country(self):
        """A leading 0 is read as a national number of the default country."""
        result = resolve_phone_country("0712345678", default_country="ke")
        assert result.success
        assert result.country_code == "KE"
        assert result.formatted_number == "+254712345678"

    def test_trunk_prefix_without_default_is_invalid_format(self):
        result = resolve_phone_country("0712345678")
        assert result.error is PhoneCountryError.invalid_format
        assert result.country_code is None

    def test_unsupported_prefix(self):
        """Numbers outside the supported markets are rejected, not guessed."""
        result = resolve_phone_country("+12025550100")
        assert not result.success
        assert result.error is PhoneCountryError.unsupported_prefix
        assert "not supported" in result.message

    def test_unsupported_bare_digits(self):
        result = resolve_phone_country("12025550100")
        assert result.error is PhoneCountryError.unsupported_prefix

    def test_wrong_length_for_country(self):
        result = resolve_phone_country("+25471234")
        assert result.error is PhoneCountryError.invalid_length
        assert "Kenya" in result.message

    @pytest.mark.parametrize("phone", ["", None, "   ", "abc"])
    def test_empty_input_never_raises(self, phone):
        result = resolve_phone_country(phone)
        assert result.error is PhoneCountryError.invalid_format


class TestPhoneCountryHelpers:
    """Test cases for formatting and the supported-country list."""

    def test_format_national_number(self):
        assert format_phone_number("0812345678", "NA") == "+264812345678"

    def test_format_already_international(self):
        assert format_phone_number("264812345678", "NA") == "+264812345678"

    def test_format_unknown_country_passes_through(self):
        assert format_phone_number("5550100", "US") == "5550100"

    def test_supported_countries_listing(self):
        countries = supported_phone_countries()
        codes = {c["code"] for c in countries}
        assert {"KE", "NG", "NA", "ZA"} <= codes
        kenya = next(c for c in countries if c["code"] == "KE")
        assert kenya["phone_code"] == "+254"
        assert kenya["example"].startswith("+254")
        # Example numbers must themselves resolve
        assert resolve_phone_country(kenya["example"]).country_code == "KE"

    @pytest.mark.parametrize("code,expected", [("KE", True), ("ke", True), ("US", False), (None, False), ("", False)])
    def test_is_country_supported(self, code, expected):
        assert is_country_supported(code) is expected

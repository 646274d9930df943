"""Tests for the value coercion cascade."""

import datetime
import sys
from decimal import Decimal
from typing import Any, Optional

import pytest
from babel import Locale
from babel.numbers import format_decimal
from bridge.coercion import NOT_APPLICABLE, TypeConverter, boolean_value, double_value, long_value
from bridge.errors import ConversionError, UnrecoverableStateError
from bridge.scalars import Byte, Char, Long, Short


class Amount(Decimal):
    """A Decimal subclass with a string factory."""

    @classmethod
    def parse(cls, text: str) -> "Amount":
        return cls(text)


class Code:
    def __init__(self, value: str) -> None:
        self.value = value

    @staticmethod
    def value_of(text: str) -> "Code":
        if not text.isalpha():
            raise ValueError(text)
        return Code(text.upper())


class Broken:
    @staticmethod
    def parse(text: str) -> "Broken":
        raise RuntimeError("boom")


class Opaque:
    pass


@pytest.fixture
def gb():
    return TypeConverter("en_GB")


# ── Cheap rules ──────────────────────────────────────────────────────


class TestIdentityAndNull:
    def test_instance_is_returned_unchanged(self, gb):
        value = Decimal("1.5")
        assert gb.convert(value, Decimal) is value

    def test_converting_twice_is_stable(self, gb):
        once = gb.convert("1,234.5", float)
        assert gb.convert(once, float) == once == 1234.5

    def test_bool_is_not_an_int(self, gb):
        assert gb.convert(True, int) == 1
        assert type(gb.convert(True, int)) is int

    @pytest.mark.parametrize(
        "target, expected",
        [(int, 0), (float, 0.0), (bool, False), (Char, "\0"), (Byte, 0), (Short, 0), (Long, 0)],
    )
    def test_null_primitive_gets_zero(self, gb, target, expected):
        assert gb.convert(None, target) == expected

    @pytest.mark.parametrize("target", [Optional[int], str, Decimal, datetime.date, Opaque])
    def test_null_reference_is_none(self, gb, target):
        assert gb.convert(None, target) is None

    def test_any_accepts_everything(self, gb):
        assert gb.convert({"a": 1}, Any) == {"a": 1}


class TestSingletonAndBlank:
    def test_singleton_list_unwraps(self, gb):
        assert gb.convert(["42"], int) == 42

    def test_longer_list_does_not_unwrap(self, gb):
        with pytest.raises(ConversionError):
            gb.convert(["1", "2"], int)

    @pytest.mark.parametrize("target", [str, bool, float, Decimal, Code])
    def test_longer_list_is_never_stringified(self, gb, target):
        with pytest.raises(ConversionError, match="Cannot convert"):
            gb.convert(["a", "b"], target)

    def test_blank_string(self, gb):
        assert gb.convert("", Optional[int]) is None
        assert gb.convert("", Decimal) is None
        assert gb.convert("", datetime.date) is None
        assert gb.convert("", int) == 0
        assert gb.convert("", str) == ""


class TestCharacters:
    def test_char_takes_first_character(self, gb):
        assert gb.convert("xyz", Char) == "x"

    def test_byte_takes_code_point(self, gb):
        assert gb.convert("A", Byte) == 65

    def test_numeric_char(self, gb):
        assert gb.convert(66, Char) == "B"


# ── Numbers ──────────────────────────────────────────────────────────


class TestNumbers:
    @pytest.mark.parametrize("locale", ["en_GB", "en_US"])
    def test_parenthesis_negative(self, locale):
        assert TypeConverter(locale).convert("(1,234.56)", float) == -1234.56

    def test_long_grouping(self, gb):
        assert gb.convert("9,999", Long) == 9999

    def test_long_bad_grouping_offset(self, gb):
        with pytest.raises(ConversionError) as exc_info:
            gb.convert("9,99", Long)
        assert exc_info.value.offset == 1

    def test_long_out_of_range(self, gb):
        with pytest.raises(ConversionError, match="Long"):
            gb.convert("9223372036854775808", Long)

    def test_indian_grouping(self):
        assert TypeConverter("en_IN").convert("5,00,000", int) == 500000

    def test_currency(self, gb):
        assert gb.convert("£3,999.99", Decimal) == Decimal("3999.99")

    def test_integer_rejects_fraction(self, gb):
        with pytest.raises(ConversionError):
            gb.convert("1.5", int)
        with pytest.raises(ConversionError):
            gb.convert(1.5, int)

    def test_machine_numbers(self, gb):
        assert gb.convert(7, float) == 7.0
        assert gb.convert(2.0, int) == 2
        assert gb.convert(0.1, Decimal) == Decimal("0.1")

    def test_short_and_byte_wrap(self, gb):
        assert gb.convert("70000", Short) == 70000 - 65536
        assert gb.convert(300, Byte) == 44

    def test_swedish_stray_dot(self):
        assert TypeConverter("sv_SE").convert("1.234,5", float) == 1234.5

    def test_custom_number_type_uses_factory(self):
        value = TypeConverter("fr_FR").convert("12 345,67", Amount)
        assert isinstance(value, Amount)
        assert value == Decimal("12345.67")


ROUND_TRIP_LOCALES = ["en_GB", "en_US", "fr_FR", "de_DE", "de_CH", "sv_SE", "en_IN", "es_ES", "it_IT", "nl_NL"]


class TestLocaleRoundTrip:
    """A number rendered for a locale converts back to the same value."""

    @pytest.mark.parametrize("locale", ROUND_TRIP_LOCALES)
    @pytest.mark.parametrize("value", [Decimal("1234567.891"), Decimal("-98765.4"), Decimal("0.5"), Decimal("42")])
    def test_decimal(self, locale, value):
        text = format_decimal(value, locale=locale)
        assert TypeConverter(locale).convert(text, Decimal) == value

    @pytest.mark.parametrize("locale", ROUND_TRIP_LOCALES)
    @pytest.mark.parametrize("value", [7, 1234567, -250000])
    def test_integer(self, locale, value):
        text = format_decimal(value, locale=locale)
        assert TypeConverter(locale).convert(text, int) == value
        assert TypeConverter(locale).convert(text, Long) == value


# ── Dates, locales and classes ───────────────────────────────────────


class TestTemporal:
    def test_legacy_year(self, gb):
        assert gb.convert("0050-01-01", datetime.date) == datetime.date(2050, 1, 1)

    @pytest.mark.parametrize("text", ["3000-01-01", "0500-01-01"])
    def test_out_of_window(self, gb, text):
        with pytest.raises(ConversionError):
            gb.convert(text, datetime.date)

    def test_locale_date(self, gb):
        assert gb.convert("29/03/2019", datetime.date) == datetime.date(2019, 3, 29)

    def test_datetime_target(self, gb):
        assert gb.convert("2019-03-29T10:15", datetime.datetime) == datetime.datetime(2019, 3, 29, 10, 15)

    def test_datetime_value_for_date(self, gb):
        assert gb.convert(datetime.datetime(2019, 3, 29, 10, 15), datetime.date) == datetime.date(2019, 3, 29)


class TestLocales:
    def test_language_and_country(self, gb):
        assert gb.convert("fr_FR", Locale) == Locale("fr", "FR")

    def test_language_only(self, gb):
        assert gb.convert("de", Locale) == Locale("de")

    @pytest.mark.parametrize("text", ["french", "FR_fr", "xx_YY"])
    def test_rejects(self, gb, text):
        with pytest.raises(ConversionError):
            gb.convert(text, Locale)


class TestClassReferences:
    def test_resolves_dotted_name(self, gb):
        assert gb.convert("decimal.Decimal", type) is Decimal

    def test_subclass_constraint(self, gb):
        assert gb.convert("bridge.scalars.Long", type[int]) is Long

    def test_unresolvable_falls_through(self, gb):
        with pytest.raises(ConversionError, match="Cannot convert"):
            gb.convert("no.such.Thing", type)

    def test_unloaded_module_is_not_imported(self, gb, monkeypatch):
        monkeypatch.delitem(sys.modules, "fractions", raising=False)
        with pytest.raises(ConversionError, match="Cannot convert"):
            gb.convert("fractions.Fraction", type)
        assert "fractions" not in sys.modules

    def test_configured_modules_may_be_imported(self, monkeypatch):
        monkeypatch.delitem(sys.modules, "fractions", raising=False)
        found = TypeConverter("en_GB", class_modules=("fractions",)).convert("fractions.Fraction", type)
        assert found.__name__ == "Fraction"
        assert "fractions" in sys.modules


# ── Sequences and raw conversion ─────────────────────────────────────


class TestSequences:
    def test_element_wise(self, gb):
        assert gb.convert(["1", "2,000"], list[int]) == [1, 2000]

    def test_single_value_is_wrapped(self, gb):
        assert gb.convert("7", list[int]) == [7]

    def test_other_containers(self, gb):
        assert gb.convert(["a", "b", "a"], set[str]) == {"a", "b"}
        assert gb.convert(["1", "x"], tuple[int, str]) == (1, "x")

    def test_element_failure_propagates(self, gb):
        with pytest.raises(ConversionError):
            gb.convert(["1", "two"], list[int])


class TestRawValues:
    @pytest.mark.parametrize("value, expected", [("true", True), ("ON", True), ("yes", False), (2, True), (0, False)])
    def test_boolean_value(self, value, expected):
        assert boolean_value(value) is expected

    def test_double_value(self):
        assert double_value(True) == 1.0
        assert double_value(Char("A")) == 65.0
        with pytest.raises(ConversionError):
            double_value("abc")

    def test_long_value(self):
        assert long_value(" 12 ") == 12
        assert long_value(3.9) == 3
        with pytest.raises(ConversionError):
            long_value("x")

    def test_number_to_string(self, gb):
        assert gb.convert(12, str) == "12"
        assert gb.convert(False, str) == "false"


# ── Factories ────────────────────────────────────────────────────────


class TestFactories:
    def test_static_factory(self, gb):
        assert gb.convert("abc", Code).value == "ABC"

    def test_factory_value_error_is_not_fatal(self, gb):
        with pytest.raises(ConversionError, match="Cannot convert"):
            gb.convert("123", Code)

    def test_factory_defect_is_unrecoverable(self, gb):
        with pytest.raises(UnrecoverableStateError):
            gb.convert("x", Broken)

    def test_no_factory(self, gb):
        with pytest.raises(ConversionError, match="Opaque"):
            gb.convert("x", Opaque)

    def test_custom_cascade(self):
        converter = TypeConverter("en_GB", cascade=(lambda c, a: NOT_APPLICABLE,))
        with pytest.raises(ConversionError):
            converter.convert("1", int)

"""
Tests for Finnish creditor reference numbers (7-3-1 weighted mod 10).
"""

import pytest

from erp_engines.reference_number import (
    check_digit,
    format_reference,
    generate_reference,
    is_valid_reference,
    reference_from_document_number,
)


class TestCheckDigit:

    def test_known_reference(self):
        assert generate_reference("123") == "1232"

    def test_digit_can_be_zero(self):
        # 7*1 + 3*1 = 10 -> check digit 0
        assert check_digit("11") == 0

    @pytest.mark.parametrize("base", ["12", "", "12a4", "1" * 20])
    def test_invalid_base(self, base):
        with pytest.raises(ValueError):
            generate_reference(base)


class TestFromDocumentNumber:

    def test_invoice_number(self):
        assert reference_from_document_number("INV-24-00001") == "24000015"

    def test_no_digits(self):
        with pytest.raises(ValueError):
            reference_from_document_number("INV")

    def test_result_is_valid(self):
        assert is_valid_reference(reference_from_document_number("INV-25-01234"))


class TestValidation:

    def test_valid(self):
        assert is_valid_reference("1232")

    def test_spaces_ignored(self):
        assert is_valid_reference("240 00015")

    def test_wrong_check_digit(self):
        assert not is_valid_reference("1233")

    def test_too_short(self):
        assert not is_valid_reference("12")


def test_format_groups_from_right():
    assert format_reference("24000015") == "240 00015"
    assert format_reference("1232") == "1232"
    assert format_reference("1234567890") == "12345 67890"

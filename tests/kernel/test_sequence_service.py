"""
Tests for document numbering.

Validates:
- Sequences start at 1 and increment by one
- Numbers are PREFIX-YY-NNNNN and restart per calendar year
- Independent prefixes do not share counters
"""

from datetime import date

from erp_kernel.services.sequence_service import SequenceService, format_document_number


class TestFormatDocumentNumber:

    def test_format(self):
        assert format_document_number("INV", 2024, 7) == "INV-24-00007"

    def test_custom_width(self):
        assert format_document_number("ORD", 2031, 42, width=3) == "ORD-31-042"

    def test_value_wider_than_width_is_kept(self):
        assert format_document_number("CN", 2024, 123456) == "CN-24-123456"


class TestSequenceService:

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("TEST-A") == 1

    def test_monotonic(self, session):
        service = SequenceService(session)
        values = [service.next_value("TEST-B") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]
        assert service.current_value("TEST-B") == 5

    def test_unknown_sequence_has_no_current_value(self, session):
        assert SequenceService(session).current_value("NEVER-USED") is None

    def test_document_numbers_restart_each_year(self, session):
        service = SequenceService(session)
        assert service.next_document_number("INV", date(2024, 12, 31)) == "INV-24-00001"
        assert service.next_document_number("INV", date(2024, 12, 31)) == "INV-24-00002"
        assert service.next_document_number("INV", date(2025, 1, 1)) == "INV-25-00001"

    def test_prefixes_are_independent(self, session):
        service = SequenceService(session)
        assert service.next_document_number("ORD", date(2024, 1, 1)) == "ORD-24-00001"
        assert service.next_document_number("CN", date(2024, 1, 1)) == "CN-24-00001"
        assert service.next_document_number("ORD", date(2024, 1, 1)) == "ORD-24-00002"

"""
Finnish creditor reference numbers (viitenumero).

Pure functions. No I/O.

A reference is a 3-19 digit base followed by one check digit.  Base
digits are weighted 7, 3, 1, 7, 3, 1, ... from the right; the check digit
is ``(10 - sum % 10) % 10``.  Invoices carry a reference derived from
the digits of their invoice number.
"""

import re

_WEIGHTS = (7, 3, 1)
_BASE_PATTERN = re.compile(r"^\d{3,19}$")
_REFERENCE_PATTERN = re.compile(r"^\d{4,20}$")


def check_digit(base: str) -> int:
    """Mod-10 check digit of a digit string with 7-3-1 weighting."""
    total = sum(
        int(digit) * _WEIGHTS[position % 3]
        for position, digit in enumerate(reversed(base))
    )
    return (10 - total % 10) % 10


def generate_reference(base: str) -> str:
    """
    Append the check digit to a base number.

    Raises:
        ValueError: base is not 3-19 digits.
    """
    if not _BASE_PATTERN.match(base or ""):
        raise ValueError(f"Reference base must be 3-19 digits, got {base!r}")
    return f"{base}{check_digit(base)}"


def reference_from_document_number(document_number: str) -> str:
    """
    Derive a reference from the digits of a document number.

    Example:
        reference_from_document_number("INV-24-00001") -> "24000015"

    Raises:
        ValueError: the document number contains no digits, or too many.
    """
    digits = re.sub(r"\D", "", document_number)
    if not digits:
        raise ValueError(f"Document number has no digits: {document_number!r}")
    return generate_reference(digits.zfill(3))


def format_reference(reference: str) -> str:
    """Group digits in blocks of five, counted from the right."""
    clean = reference.replace(" ", "")
    head = len(clean) % 5
    groups = [clean[:head]] if head else []
    groups.extend(clean[i:i + 5] for i in range(head, len(clean), 5))
    return " ".join(groups)


def is_valid_reference(reference: str) -> bool:
    """True for a 4-20 digit reference (spaces ignored) with a correct check digit."""
    clean = re.sub(r"\s", "", reference)
    if not _REFERENCE_PATTERN.match(clean):
        return False
    return check_digit(clean[:-1]) == int(clean[-1])

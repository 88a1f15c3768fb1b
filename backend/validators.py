"""
Marie Reconciliation - Data Validation

PURPOSE: Validation of untrusted input (AI output, form fields)
SCOPE: Strict parse of extracted transactions, form sanitizing
DEPENDENCIES: typing, models
"""

import math
from dataclasses import dataclass
from typing import Dict, Any, List, Tuple, Union, Optional

from .models import Transaction, CREDIT
from .parsers import parse_brl_amount


@dataclass
class ParseError:
    """An item of the extraction response that could not become a Transaction."""
    index: int
    errors: List[str]
    raw: Any = None


def validate_extracted_transaction(item: Any) -> Tuple[bool, List[str]]:
    """Validate one item of the extraction response and return (valid, errors)."""
    if not isinstance(item, dict):
        return False, ["Item is not an object"]

    errors = []

    if not isinstance(item.get('date'), str):
        errors.append("Date is required and must be a string")

    if not isinstance(item.get('description'), str):
        errors.append("Description is required and must be a string")

    amount = item.get('amount')
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        errors.append("Amount is required and must be a number")
    elif not math.isfinite(amount) or amount < 0:
        errors.append("Amount must be a non-negative number")

    document = item.get('document')
    if document is not None and not isinstance(document, (str, int)):
        errors.append("Document must be a string")

    item_id = item.get('id')
    if item_id is not None and not isinstance(item_id, (str, int)):
        errors.append("Id must be a string")

    return len(errors) == 0, errors


def parse_extracted_transaction(index: int, item: Any) -> Union[Transaction, ParseError]:
    """Turn one raw extraction item into a Transaction, or a ParseError.

    The id is copied as given (possibly empty); the extraction adapter is
    responsible for synthesizing missing or duplicated ids.
    """
    is_valid, errors = validate_extracted_transaction(item)
    if not is_valid:
        return ParseError(index=index, errors=errors, raw=item)

    document = item.get('document')
    return Transaction(
        id=str(item.get('id') or ''),
        date=item['date'].strip(),
        description=item['description'].strip(),
        amount=float(item['amount']),
        type=CREDIT,
        document=str(document) if document not in (None, '') else None,
    )


def parse_min_amount(value: Optional[str]) -> Optional[float]:
    """Read the minimum-amount filter; blank or unreadable means no lower bound."""
    if value is None or not str(value).strip():
        return None
    amount = parse_brl_amount(value)
    if amount is None or not math.isfinite(amount):
        return None
    return amount


def validate_category_name(name: str) -> Tuple[bool, List[str]]:
    """Validate a category name typed in the UI."""
    errors = []

    if not name or not name.strip():
        errors.append("Category name is required")
    elif len(name.strip()) > 100:
        errors.append("Category name must be 100 characters or less")

    return len(errors) == 0, errors


def sanitize_form_data(form_data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize form data by stripping whitespace and dropping unset fields."""
    sanitized = {}

    for key, value in form_data.items():
        if value is None:
            continue
        if isinstance(value, str):
            sanitized[key] = value.strip()
        else:
            sanitized[key] = value

    return sanitized

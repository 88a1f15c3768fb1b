"""
Marie Reconciliation - Text Parsers

PURPOSE: Small parsing helpers shared by the extraction adapter and the API
SCOPE: Brazilian amount parsing, data URI splitting, model output cleanup
DEPENDENCIES: re, base64, logging
"""

import re
import base64
import binascii
import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DATA_URI_PATTERN = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[\w=-]+)*;base64,(?P<data>.*)$', re.DOTALL)


def parse_brl_amount(amount_str: Optional[str]) -> Optional[float]:
    """Parse a user-typed amount in Brazilian or plain decimal notation.

    Accepts ``1.524,55``, ``1524,55``, ``1,524.55``, ``R$ 150`` and the like.
    Returns None when the value cannot be read as a number.
    """
    if amount_str is None:
        return None

    cleaned = re.sub(r'(R\$|\s)', '', str(amount_str))
    if not cleaned:
        return None

    if '.' in cleaned and ',' in cleaned:
        if cleaned.rfind(',') > cleaned.rfind('.'):
            # 1.524,55
            cleaned = cleaned.replace('.', '').replace(',', '.')
        else:
            # 1,524.55
            cleaned = cleaned.replace(',', '')
    elif ',' in cleaned:
        comma_pos = cleaned.rfind(',')
        after_comma = cleaned[comma_pos + 1:]

        # Up to two digits after the comma is a decimal comma
        if cleaned.count(',') == 1 and 0 < len(after_comma) <= 2 and after_comma.isdigit():
            cleaned = cleaned.replace(',', '.')
        else:
            cleaned = cleaned.replace(',', '')
    elif re.match(r'^-?\d{1,3}(\.\d{3})+$', cleaned):
        # 1.000 is one thousand reais, not one real
        cleaned = cleaned.replace('.', '')

    try:
        return float(cleaned)
    except ValueError:
        logger.warning(f"Could not parse amount: {amount_str}")
        return None


def split_data_uri(payload: str) -> Tuple[Optional[str], bytes]:
    """Decode a base64 data URI (or bare base64 string) into (mime_type, bytes)."""
    match = DATA_URI_PATTERN.match(payload.strip())
    if match:
        mime_type, encoded = match.group('mime'), match.group('data')
    else:
        mime_type, encoded = None, payload.strip()

    try:
        return mime_type, base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 document payload: {e}") from e


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence from model output, if any."""
    stripped = text.strip()
    if not stripped.startswith('```'):
        return stripped

    stripped = stripped[3:]
    # Drop an optional language tag such as ```json
    newline = stripped.find('\n')
    if newline != -1 and stripped[:newline].strip().isalpha():
        stripped = stripped[newline + 1:]
    if stripped.rstrip().endswith('```'):
        stripped = stripped.rstrip()[:-3]
    return stripped.strip()

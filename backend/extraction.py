"""
Marie Reconciliation - Transaction Extraction

PURPOSE: Single call to the Gemini API turning a statement into credit lines
SCOPE: Request building, response envelope handling, strict item parsing
DEPENDENCIES: httpx, validators, parsers

Main workflow: document bytes (+ OCR text) -> generateContent -> JSON array
-> validated Transaction list. There is no retry or caching here; a failed
call is reported once to the caller.
"""

import json
import uuid
import base64
import logging
from typing import List, Optional, Union

import httpx

from .models import Transaction
from .parsers import split_data_uri, strip_code_fences
from .validators import ParseError, parse_extracted_transaction

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """
Analise este extrato bancário da Clínica Marie.
Extraia APENAS os lançamentos de CRÉDITO (marcados com 'C' ou que representem entrada de dinheiro, como Pix Recebido, Transferências Recebidas).
Ignore débitos ('D') e transferências enviadas.
Para cada crédito, extraia: data, descrição (histórico), valor e número do documento se disponível.
Converta o valor para um número (ex: 1.000,00 -> 1000).
"""

RESPONSE_SCHEMA = {
    'type': 'ARRAY',
    'items': {
        'type': 'OBJECT',
        'properties': {
            'date': {'type': 'STRING'},
            'description': {'type': 'STRING'},
            'amount': {'type': 'NUMBER'},
            'document': {'type': 'STRING'},
            'id': {'type': 'STRING', 'description': 'Um ID único gerado para esta transação'},
        },
        'required': ['date', 'description', 'amount'],
    },
}


class ExtractionError(Exception):
    """The extraction service could not be reached or answered unusably."""


class TransactionExtractionService:
    """Wraps the Gemini ``generateContent`` endpoint for bank statements."""

    def __init__(self, api_key: str, model: str,
                 base_url: str = 'https://generativelanguage.googleapis.com/v1beta',
                 timeout: float = 120.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.transport = transport

    def build_request(self, document: bytes, mime_type: str, ocr_text: str = '') -> dict:
        parts = [{
            'inline_data': {
                'mime_type': mime_type or 'image/png',
                'data': base64.b64encode(document).decode('ascii'),
            }
        }]
        if ocr_text:
            parts.append({'text': f"Texto do Extrato: {ocr_text}"})
        parts.append({'text': EXTRACTION_PROMPT})

        return {
            'contents': [{'parts': parts}],
            'generationConfig': {
                'responseMimeType': 'application/json',
                'responseSchema': RESPONSE_SCHEMA,
            },
        }

    async def extract_credits(self, document: Union[bytes, str], mime_type: str = '',
                              ocr_text: str = '') -> List[Transaction]:
        """Return the credit transactions found in ``document``.

        ``document`` may be raw bytes or a base64 data URI. Raises
        ExtractionError on transport or envelope failures; a model answer
        that is not a JSON array yields an empty list.
        """
        if isinstance(document, str):
            try:
                uri_mime, document = split_data_uri(document)
            except ValueError as e:
                raise ExtractionError(str(e)) from e
            mime_type = mime_type or uri_mime or 'image/png'

        if not self.api_key:
            raise ExtractionError("GEMINI_API_KEY is not configured")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = self.build_request(document, mime_type, ocr_text)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    url, json=payload, headers={'x-goog-api-key': self.api_key}
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Extraction service returned HTTP {e.response.status_code}")
            raise ExtractionError(f"Extraction service returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"Extraction service request failed: {e}")
            raise ExtractionError(f"Extraction service request failed: {e}") from e
        except ValueError as e:
            logger.error(f"Extraction service sent a non-JSON envelope: {e}")
            raise ExtractionError("Extraction service sent a non-JSON envelope") from e

        text = self._response_text(body)
        return self.parse_response_text(text)

    @staticmethod
    def _response_text(body: dict) -> str:
        """Concatenate the text parts of the first candidate."""
        try:
            candidate = body['candidates'][0]
        except (KeyError, IndexError, TypeError) as e:
            feedback = body.get('promptFeedback') if isinstance(body, dict) else None
            raise ExtractionError(f"Extraction service returned no candidates ({feedback})") from e

        parts = (candidate.get('content') or {}).get('parts') or []
        return ''.join(part.get('text', '') for part in parts if isinstance(part, dict))

    def parse_response_text(self, text: str) -> List[Transaction]:
        """Parse the model's JSON answer into validated, uniquely identified credits."""
        try:
            data = json.loads(strip_code_fences(text or '[]'))
        except json.JSONDecodeError as e:
            logger.error(f"Could not parse extraction response as JSON: {e}")
            return []

        if not isinstance(data, list):
            logger.error(f"Extraction response is not a JSON array: {type(data).__name__}")
            return []

        transactions = []
        seen_ids = set()
        for index, item in enumerate(data):
            parsed = parse_extracted_transaction(index, item)
            if isinstance(parsed, ParseError):
                logger.warning(f"Skipping extracted item {index}: {'; '.join(parsed.errors)}")
                continue

            if not parsed.id or parsed.id in seen_ids:
                parsed.id = uuid.uuid4().hex
            seen_ids.add(parsed.id)
            transactions.append(parsed)

        logger.info(f"Extracted {len(transactions)} credit(s) from {len(data)} item(s)")
        return transactions

"""Tests for the Gemini extraction adapter."""
import base64
import json

import httpx
import pytest

from backend.extraction import ExtractionError, TransactionExtractionService

from helpers import gemini_envelope, make_extractor


@pytest.mark.asyncio
async def test_extract_credits_builds_request_and_parses_items():
    calls = []
    extractor = make_extractor(
        [{"date": "10/05", "description": "PIX RECEBIDO", "amount": 150.0, "document": "123", "id": "t1"}],
        calls=calls,
    )

    transactions = await extractor.extract_credits(b"\x89PNG...", "image/png", "SALDO 10/05 PIX")

    assert len(transactions) == 1
    credit = transactions[0]
    assert (credit.id, credit.date, credit.amount, credit.document, credit.type) == (
        "t1", "10/05", 150.0, "123", "C"
    )

    request = calls[0]
    assert request.url.path.endswith("/models/gemini-test:generateContent")
    assert request.headers["x-goog-api-key"] == "test-key"
    body = json.loads(request.content)
    parts = body["contents"][0]["parts"]
    assert parts[0]["inline_data"]["data"] == base64.b64encode(b"\x89PNG...").decode()
    assert parts[1]["text"] == "Texto do Extrato: SALDO 10/05 PIX"
    assert body["generationConfig"]["responseMimeType"] == "application/json"


@pytest.mark.asyncio
async def test_data_uri_payload_is_decoded():
    calls = []
    extractor = make_extractor([], calls=calls)
    payload = "data:image/jpeg;base64," + base64.b64encode(b"jpeg-bytes").decode()

    await extractor.extract_credits(payload)

    part = json.loads(calls[0].content)["contents"][0]["parts"][0]["inline_data"]
    assert part["mime_type"] == "image/jpeg"
    assert base64.b64decode(part["data"]) == b"jpeg-bytes"


@pytest.mark.asyncio
async def test_missing_and_duplicate_ids_are_synthesized():
    extractor = make_extractor([
        {"date": "01/02", "description": "PIX A", "amount": 10},
        {"date": "01/02", "description": "PIX B", "amount": 20, "id": "dup"},
        {"date": "01/02", "description": "PIX C", "amount": 30, "id": "dup"},
    ])

    transactions = await extractor.extract_credits(b"img", "image/png")

    ids = [t.id for t in transactions]
    assert len(set(ids)) == 3
    assert ids[1] == "dup"
    assert all(ids)


@pytest.mark.asyncio
async def test_invalid_items_are_dropped():
    extractor = make_extractor([
        {"date": "01/02", "description": "PIX OK", "amount": 10.5},
        {"date": "01/02", "description": "sem valor"},
        {"date": "01/02", "description": "texto", "amount": "10,00"},
        {"date": "01/02", "description": "debito", "amount": -5},
        "not an object",
    ])

    transactions = await extractor.extract_credits(b"img", "image/png")

    assert [t.description for t in transactions] == ["PIX OK"]


@pytest.mark.asyncio
@pytest.mark.parametrize("answer", ["not json at all", '{"date": "01/02"}', ""])
async def test_unusable_answer_means_no_transactions(answer):
    extractor = make_extractor(answer)

    assert await extractor.extract_credits(b"img", "image/png") == []


@pytest.mark.asyncio
async def test_fenced_answer_is_accepted():
    fenced = '```json\n[{"date": "05/05", "description": "PIX", "amount": 1}]\n```'
    extractor = make_extractor(fenced)

    assert len(await extractor.extract_credits(b"img", "image/png")) == 1


@pytest.mark.asyncio
async def test_http_error_raises_extraction_error():
    calls = []
    extractor = make_extractor(status_code=500, calls=calls)

    with pytest.raises(ExtractionError):
        await extractor.extract_credits(b"img", "image/png")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_network_error_raises_extraction_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    extractor = TransactionExtractionService("key", "gemini-test", transport=httpx.MockTransport(handler))

    with pytest.raises(ExtractionError):
        await extractor.extract_credits(b"img", "image/png")


@pytest.mark.asyncio
async def test_envelope_without_candidates_raises():
    def handler(request):
        return httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}})

    extractor = TransactionExtractionService("key", "gemini-test", transport=httpx.MockTransport(handler))

    with pytest.raises(ExtractionError):
        await extractor.extract_credits(b"img", "image/png")


@pytest.mark.asyncio
async def test_missing_api_key_raises():
    extractor = TransactionExtractionService("", "gemini-test")

    with pytest.raises(ExtractionError):
        await extractor.extract_credits(b"img", "image/png")


def test_parse_response_text_directly():
    extractor = TransactionExtractionService("key", "gemini-test")
    text = gemini_envelope([{"date": "d", "description": "x", "amount": 0}])["candidates"][0]["content"]["parts"][0]["text"]

    assert extractor.parse_response_text(text)[0].amount == 0.0

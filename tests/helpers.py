"""Builders shared by the test modules."""
import json

import httpx

from backend.extraction import TransactionExtractionService
from backend.models import ReconcileSession, ReconciledTransaction


def gemini_envelope(items) -> dict:
    """Wrap ``items`` the way generateContent returns a JSON answer."""
    text = items if isinstance(items, str) else json.dumps(items)
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


def make_extractor(items=None, status_code: int = 200, calls: list = None) -> TransactionExtractionService:
    """Extraction service whose HTTP traffic is answered locally."""
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": {"message": "boom"}})
        return httpx.Response(200, json=gemini_envelope(items if items is not None else []))

    return TransactionExtractionService(
        api_key="test-key",
        model="gemini-test",
        transport=httpx.MockTransport(handler),
    )


def reconciled(amount: float, category: str = "Consulta", date: str = "10/05",
               payer: str = "Ana Silva", **extra) -> ReconciledTransaction:
    return ReconciledTransaction(
        id=extra.pop("id", f"t-{amount}-{category}-{date}"),
        date=date,
        description=extra.pop("description", "PIX RECEBIDO"),
        amount=amount,
        payer_name=payer,
        category=category,
        reconciled_at=extra.pop("reconciled_at", "2026-01-15T10:00:00+00:00"),
        **extra,
    )


def session_on(timestamp: str, *transactions: ReconciledTransaction) -> ReconcileSession:
    return ReconcileSession.create(f"session-{timestamp}", timestamp, list(transactions))

"""
Marie Reconciliation - Reporting

PURPOSE: Dashboard and report figures derived from the stored sessions
SCOPE: Pure functions over a session snapshot; nothing here writes state
DEPENDENCIES: models
"""

from datetime import datetime
from typing import List, Dict, Tuple, Optional, NamedTuple

from .models import ReconcileSession

MONTH_ABBREVIATIONS = [
    'jan', 'fev', 'mar', 'abr', 'mai', 'jun',
    'jul', 'ago', 'set', 'out', 'nov', 'dez'
]


class DashboardTotals(NamedTuple):
    total_amount: float
    transaction_count: int
    last_session_date: Optional[str]


def dashboard_totals(sessions: List[ReconcileSession]) -> DashboardTotals:
    """Overall totals; ``sessions`` is newest first so the head is the latest."""
    return DashboardTotals(
        total_amount=sum(s.total_amount for s in sessions),
        transaction_count=sum(len(s.transactions) for s in sessions),
        last_session_date=sessions[0].date if sessions else None,
    )


def recent_sessions(sessions: List[ReconcileSession], limit: int = 5) -> List[ReconcileSession]:
    return sessions[:limit]


def month_label(timestamp: str) -> str:
    """Format an ISO timestamp as a month label such as ``jan/2026``."""
    moment = datetime.fromisoformat(timestamp.replace('Z', '+00:00'))
    return f"{MONTH_ABBREVIATIONS[moment.month - 1]}/{moment.year}"


def monthly_totals(sessions: List[ReconcileSession]) -> List[Tuple[str, float]]:
    """Sum of session totals per month, oldest month first."""
    totals: Dict[str, float] = {}
    for session in sessions:
        label = month_label(session.date)
        totals[label] = totals.get(label, 0.0) + session.total_amount
    return list(reversed(list(totals.items())))


def daily_totals(sessions: List[ReconcileSession]) -> List[Tuple[str, float]]:
    """Sum of amounts per statement date string.

    Statement dates are not normalized, so the ordering is a plain string
    sort ("10/05" comes before "2/06").
    """
    totals: Dict[str, float] = {}
    for session in sessions:
        for transaction in session.transactions:
            totals[transaction.date] = totals.get(transaction.date, 0.0) + transaction.amount
    return sorted(totals.items(), key=lambda item: item[0])


def category_totals(sessions: List[ReconcileSession]) -> List[Tuple[str, float]]:
    """Sum of amounts per category, largest first."""
    totals: Dict[str, float] = {}
    for session in sessions:
        for transaction in session.transactions:
            totals[transaction.category] = totals.get(transaction.category, 0.0) + transaction.amount
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def top_category(sessions: List[ReconcileSession]) -> Optional[Tuple[str, float]]:
    ranking = category_totals(sessions)
    return ranking[0] if ranking else None


def average_ticket(sessions: List[ReconcileSession]) -> float:
    totals = dashboard_totals(sessions)
    if not totals.transaction_count:
        return 0.0
    return totals.total_amount / totals.transaction_count


def search_sessions(sessions: List[ReconcileSession], query: str) -> List[ReconcileSession]:
    """Restrict every session to the transactions matching ``query``.

    Matching is a case-insensitive substring test on payer, category,
    description, patient and email. Sessions without a match are left out and
    the survivors carry ``matching_count``. Stored sessions are not modified.
    """
    raw = query or ''
    if not raw.strip():
        return list(sessions)
    needle = raw.lower()

    result = []
    for session in sessions:
        matching = [
            t for t in session.transactions
            if any(needle in (value or '').lower() for value in (
                t.payer_name, t.category, t.description, t.patient_name, t.email
            ))
        ]
        if matching:
            result.append(session.project(matching))
    return result

"""
Marie Reconciliation - Reconciliation Workspace

PURPOSE: The batch of freshly extracted credits being annotated by the user
SCOPE: Annotations, filtering, progress and finalization into a session
DEPENDENCIES: models, config
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Dict, Optional

from .config import config
from .models import Transaction, ReconciledTransaction, ReconcileSession

logger = logging.getLogger(__name__)

ANNOTATION_FIELDS = ('payer_name', 'patient_name', 'phone', 'email', 'category')


class WorkspaceBusyError(Exception):
    """Raised when an extraction is requested while another is in flight."""


@dataclass
class Annotation:
    """User-entered details for one pending transaction."""
    payer_name: str = ''
    patient_name: str = ''
    phone: str = ''
    email: str = ''
    category: str = ''

    def to_dict(self) -> Dict[str, str]:
        return {
            'payerName': self.payer_name,
            'patientName': self.patient_name,
            'phone': self.phone,
            'email': self.email,
            'category': self.category,
        }


class ReconciliationWorkspace:
    """Holds one unsaved extraction batch and the user's annotations."""

    def __init__(self, unidentified_payer: str = None, default_category: str = None):
        self.unidentified_payer = unidentified_payer or config.UNIDENTIFIED_PAYER
        self.default_category = default_category or config.DEFAULT_CATEGORY
        self.transactions: List[Transaction] = []
        self.annotations: Dict[str, Annotation] = {}
        self.busy = False

    # ------------------------------------------------------------------
    # Batch lifecycle
    # ------------------------------------------------------------------

    def begin_extraction(self) -> None:
        if self.busy:
            raise WorkspaceBusyError("An extraction is already in progress")
        self.busy = True

    def end_extraction(self) -> None:
        self.busy = False

    def load(self, transactions: List[Transaction]) -> None:
        """Replace the batch with a new extraction result."""
        self.transactions = list(transactions)
        self.annotations = {}
        logger.info(f"Workspace loaded with {len(self.transactions)} credit(s)")

    def clear(self) -> None:
        self.transactions = []
        self.annotations = {}

    def get(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    def annotation_for(self, transaction_id: str) -> Annotation:
        return self.annotations.get(transaction_id) or Annotation()

    def set_field(self, transaction_id: str, field_name: str, value: str) -> None:
        """Overwrite a single annotation field. Values are not validated."""
        if field_name not in ANNOTATION_FIELDS:
            raise ValueError(f"Unknown annotation field: {field_name}")
        annotation = self.annotations.setdefault(transaction_id, Annotation())
        setattr(annotation, field_name, value)

    def rename_category(self, old_name: str, new_name: str) -> None:
        """Keep pending category choices in step with a registry rename."""
        for annotation in self.annotations.values():
            if annotation.category == old_name:
                annotation.category = new_name

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def filter(self, date_contains: str = '', payer_contains: str = '',
               min_amount: Optional[float] = None) -> List[Transaction]:
        """Return the batch rows matching all three criteria, in batch order."""
        date_query = (date_contains or '').lower()
        payer_query = (payer_contains or '').lower()

        result = []
        for transaction in self.transactions:
            if date_query not in transaction.date.lower():
                continue
            if payer_query not in self.annotation_for(transaction.id).payer_name.lower():
                continue
            if min_amount is not None and transaction.amount < min_amount:
                continue
            result.append(transaction)
        return result

    def filtered_total(self, date_contains: str = '', payer_contains: str = '',
                       min_amount: Optional[float] = None) -> float:
        return sum(t.amount for t in self.filter(date_contains, payer_contains, min_amount))

    def categorized_count(self) -> int:
        return sum(1 for t in self.transactions if self.annotation_for(t.id).category)

    def pending_count(self) -> int:
        return len(self.transactions) - self.categorized_count()

    def completion(self) -> float:
        """Share of the batch with a category chosen, between 0.0 and 1.0."""
        if not self.transactions:
            return 0.0
        return self.categorized_count() / len(self.transactions)

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def finalize(self, now: Optional[datetime] = None) -> ReconcileSession:
        """Turn the whole batch into a session and empty the workspace."""
        reconciled_at = (now or datetime.now(timezone.utc)).isoformat()

        reconciled = []
        for transaction in self.transactions:
            annotation = self.annotation_for(transaction.id)
            reconciled.append(ReconciledTransaction(
                id=transaction.id,
                date=transaction.date,
                description=transaction.description,
                amount=transaction.amount,
                type=transaction.type,
                document=transaction.document,
                payer_name=annotation.payer_name or self.unidentified_payer,
                category=annotation.category or self.default_category,
                reconciled_at=reconciled_at,
                patient_name=annotation.patient_name or '',
                phone=annotation.phone or '',
                email=annotation.email or '',
            ))

        session = ReconcileSession.create(
            session_id=f"session-{uuid.uuid4().hex}",
            date=reconciled_at,
            transactions=reconciled,
        )
        self.clear()
        return session

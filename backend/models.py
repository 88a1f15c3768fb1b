"""
Marie Reconciliation - Data Model

PURPOSE: Transaction, reconciled transaction and session records
SCOPE: Dataclasses plus their JSON (camelCase) representation
DEPENDENCIES: dataclasses
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Dict, Any, Optional

CREDIT = 'C'


@dataclass
class Transaction:
    """A credit line extracted from a bank statement, not yet reconciled."""
    id: str
    date: str
    description: str
    amount: float
    type: str = CREDIT
    document: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'date': self.date,
            'description': self.description,
            'amount': self.amount,
            'type': self.type,
        }
        if self.document is not None:
            data['document'] = self.document
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=str(data['id']),
            date=str(data.get('date', '')),
            description=str(data.get('description', '')),
            amount=float(data.get('amount', 0.0)),
            type=str(data.get('type', CREDIT)),
            document=str(data['document']) if data.get('document') is not None else None,
        )


@dataclass
class ReconciledTransaction(Transaction):
    """A transaction after the user has identified payer and category."""
    payer_name: str = ''
    category: str = ''
    reconciled_at: str = ''
    patient_name: str = ''
    phone: str = ''
    email: str = ''

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            'payerName': self.payer_name,
            'category': self.category,
            'reconciledAt': self.reconciled_at,
            'patientName': self.patient_name,
            'phone': self.phone,
            'email': self.email,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReconciledTransaction':
        base = Transaction.from_dict(data)
        return cls(
            id=base.id,
            date=base.date,
            description=base.description,
            amount=base.amount,
            type=base.type,
            document=base.document,
            payer_name=str(data.get('payerName', '')),
            category=str(data.get('category', '')),
            reconciled_at=str(data.get('reconciledAt', '')),
            patient_name=str(data.get('patientName') or ''),
            phone=str(data.get('phone') or ''),
            email=str(data.get('email') or ''),
        )


@dataclass
class ReconcileSession:
    """One confirmed batch of reconciled transactions.

    ``total_amount`` is computed once when the session is created and stored
    with it. ``matching_count`` only exists on search projections and is never
    written to storage.
    """
    id: str
    date: str
    transactions: List[ReconciledTransaction] = field(default_factory=list)
    total_amount: float = 0.0
    matching_count: Optional[int] = None

    @classmethod
    def create(cls, session_id: str, date: str,
               transactions: List[ReconciledTransaction]) -> 'ReconcileSession':
        return cls(
            id=session_id,
            date=date,
            transactions=list(transactions),
            total_amount=sum(t.amount for t in transactions),
        )

    def project(self, transactions: List[ReconciledTransaction]) -> 'ReconcileSession':
        """Return a search view of this session restricted to ``transactions``."""
        return replace(self, transactions=list(transactions), matching_count=len(transactions))

    def to_dict(self, include_matching: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'date': self.date,
            'transactions': [t.to_dict() for t in self.transactions],
            'totalAmount': self.total_amount,
        }
        if include_matching and self.matching_count is not None:
            data['matchingCount'] = self.matching_count
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReconcileSession':
        date = str(data['date'])
        # Reports group sessions by month, so the date must be ISO-8601
        datetime.fromisoformat(date.replace('Z', '+00:00'))
        return cls(
            id=str(data['id']),
            date=date,
            transactions=[ReconciledTransaction.from_dict(t) for t in data.get('transactions', [])],
            total_amount=float(data.get('totalAmount', 0.0)),
        )

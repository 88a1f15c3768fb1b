"""
Marie Reconciliation - CSV Export

PURPOSE: Spreadsheet-friendly export of one reconciliation session
DEPENDENCIES: models
"""

from typing import List

from .models import ReconcileSession

BOM = '\ufeff'

CSV_HEADERS = [
    'Data Banco',
    'Documento',
    'Descricao Original',
    'Pagador Identificado',
    'Paciente',
    'Telefone',
    'Email',
    'Categoria',
    'Valor (BRL)',
]


def _no_commas(value) -> str:
    # The format has no quoting, so commas and line breaks would shift the columns
    if value is None:
        return ''
    text = str(value).replace(',', ';')
    return text.replace('\r\n', ' ').replace('\n', ' ').replace('\r', ' ')


def format_amount(amount: float) -> str:
    """150.0 -> '150', 150.5 -> '150.5'."""
    if amount == int(amount):
        return str(int(amount))
    return repr(amount)


def session_rows(session: ReconcileSession) -> List[List[str]]:
    return [
        [
            _no_commas(t.date),
            _no_commas(t.document),
            _no_commas(t.description),
            _no_commas(t.payer_name),
            _no_commas(t.patient_name),
            _no_commas(t.phone),
            _no_commas(t.email),
            _no_commas(t.category),
            format_amount(t.amount),
        ]
        for t in session.transactions
    ]


def session_to_csv(session: ReconcileSession) -> str:
    """Render a session as CSV text prefixed with a UTF-8 byte-order mark."""
    lines = [','.join(CSV_HEADERS)]
    lines.extend(','.join(row) for row in session_rows(session))
    return BOM + '\n'.join(lines)


def export_filename(session: ReconcileSession) -> str:
    return f"conciliacao_marie_{session.date.split('T')[0]}.csv"

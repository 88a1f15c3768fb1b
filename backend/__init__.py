"""
Marie Reconciliation Backend Package

PURPOSE: Package initialization for the bank-credit reconciliation backend
SCOPE: Module imports and package configuration
"""

__version__ = "1.0.0"
__author__ = "Clínica Marie"
__description__ = "Bank statement credit reconciliation with AI extraction"

# Package imports for easier access
from .config import config
from .database import DatabaseManager, SqliteStorage, MemoryStorage
from .extraction import TransactionExtractionService, ExtractionError
from .managers import SessionManager, CategoryManager
from .workspace import ReconciliationWorkspace, WorkspaceBusyError

__all__ = [
    "config",
    "DatabaseManager",
    "SqliteStorage",
    "MemoryStorage",
    "TransactionExtractionService",
    "ExtractionError",
    "SessionManager",
    "CategoryManager",
    "ReconciliationWorkspace",
    "WorkspaceBusyError"
]

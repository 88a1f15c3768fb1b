"""Shared fixtures for the reconciliation backend tests."""
import pytest

from backend.config import AppConfig
from backend.database import MemoryStorage
from backend.managers import CategoryManager, SessionManager
from backend.models import Transaction


@pytest.fixture
def app_config(tmp_path):
    return AppConfig(DB_FILE=str(tmp_path / "marie.db"), OCR_ENABLED=False)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def session_manager(storage):
    return SessionManager(storage, "marie_sessions")


@pytest.fixture
def category_manager(storage, session_manager):
    return CategoryManager(
        storage, "marie_categories",
        ["Consulta", "Procedimento", "Venda de Produtos", "Estética", "Outros"],
        session_manager,
    )


@pytest.fixture
def statement_batch():
    return [
        Transaction(id="a", date="10/05", description="PIX RECEBIDO MARIA", amount=150.0, document="123"),
        Transaction(id="b", date="11/05", description="TED RECEBIDA JOAO", amount=80.5),
        Transaction(id="c", date="11/05", description="PIX RECEBIDO CARLA", amount=300.0),
    ]

"""
Marie Reconciliation - Configuration and Constants

PURPOSE: Central configuration management for the application
SCOPE: Application settings, constants, and environment variables
DEPENDENCIES: None (foundational module)
"""

import os
import logging
from dataclasses import dataclass
from typing import List


@dataclass
class AppConfig:
    """Application configuration constants."""
    DB_FILE: str = 'marie.db'
    FRONTEND_DIR: str = 'frontend'
    DEFAULT_CATEGORIES: List[str] = None

    # Sentinels applied when a row is saved without annotations
    UNIDENTIFIED_PAYER: str = 'Não Identificado'
    DEFAULT_CATEGORY: str = 'Outros'

    # Keys of the two durable records
    SESSIONS_KEY: str = 'marie_sessions'
    CATEGORIES_KEY: str = 'marie_categories'

    GEMINI_API_KEY: str = ''
    GEMINI_MODEL: str = 'gemini-2.5-flash'
    GEMINI_BASE_URL: str = 'https://generativelanguage.googleapis.com/v1beta'
    GEMINI_TIMEOUT: float = 120.0

    OCR_ENABLED: bool = True
    OCR_LANGUAGES: str = 'por+eng'

    ALLOWED_CONTENT_TYPES: List[str] = None
    RECENT_SESSIONS_LIMIT: int = 5

    def __post_init__(self):
        if self.DEFAULT_CATEGORIES is None:
            self.DEFAULT_CATEGORIES = [
                'Consulta', 'Procedimento', 'Venda de Produtos', 'Estética', 'Outros'
            ]
        if self.ALLOWED_CONTENT_TYPES is None:
            self.ALLOWED_CONTENT_TYPES = [
                'image/png', 'image/jpeg', 'image/webp', 'application/pdf'
            ]

        self.DB_FILE = os.getenv('MARIE_DB_FILE', self.DB_FILE)
        self.GEMINI_API_KEY = os.getenv('GEMINI_API_KEY', self.GEMINI_API_KEY)
        self.GEMINI_MODEL = os.getenv('GEMINI_MODEL', self.GEMINI_MODEL)
        self.OCR_ENABLED = os.getenv('MARIE_OCR_ENABLED', '1' if self.OCR_ENABLED else '0') == '1'


# Global configuration instance
config = AppConfig()

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# mtgcollection/config.py
"""Runtime configuration, read from the environment once at import."""
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


DATA_DIR = Path(os.environ.get('MTGCM_DATA_DIR', 'data'))
DB_PATH = Path(os.environ.get('MTGCM_DB_PATH', str(DATA_DIR / 'mtg_collection.db')))
SETTINGS_PATH = Path(os.environ.get('MTGCM_SETTINGS_PATH', str(DATA_DIR / 'settings.json')))
UPLOAD_DIR = Path(os.environ.get('MTGCM_UPLOAD_DIR', str(DATA_DIR / 'uploads')))

SCRYFALL_URL = os.environ.get('MTGCM_SCRYFALL_URL', 'https://api.scryfall.com').rstrip('/')
USER_AGENT = os.environ.get('MTGCM_USER_AGENT', 'MTGCollectionManager/0.3 (+https://scryfall.com/docs/api)')
HTTP_TIMEOUT = _env_float('MTGCM_HTTP_TIMEOUT', 15.0)
# Scryfall asks for 50-100ms between requests
REQUEST_DELAY = _env_float('MTGCM_REQUEST_DELAY', 0.1)

RECOGNITION_CANDIDATES = _env_int('MTGCM_RECOGNITION_CANDIDATES', 10)
TESSERACT_CMD = os.environ.get('TESSERACT_CMD', '')

PORT = _env_int('PORT', 5000)
SECRET_KEY = os.environ.get('SECRET_KEY', '')
MAX_UPLOAD_BYTES = 16 * 1024 * 1024

DEFAULT_CURRENCY = 'EUR'
CURRENCIES = ('USD', 'EUR')
CONDITIONS = ('NM', 'LP', 'MP', 'HP', 'DMG')
DEFAULT_LANGUAGE = 'English'

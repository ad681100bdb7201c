# mtgcollection/image_utils.py
import base64
import binascii
import io
import logging
import os
import re
import shutil
from pathlib import Path

import pytesseract
from PIL import Image, ImageEnhance, ImageFilter, UnidentifiedImageError

from . import config
from .errors import ValidationError

logger = logging.getLogger(__name__)

_WINDOWS_TESSERACT = (
    r"C:\Program Files\Tesseract-OCR\tesseract.exe",
    r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
)


def decode_image_data(data: str) -> bytes:
    """Decode base64 image data, with or without a ``data:image/...;base64,`` prefix."""
    text = str(data or '').strip()
    if not text:
        raise ValidationError("No image data provided")
    if text.startswith('data:'):
        _, _, text = text.partition(',')
    try:
        return base64.b64decode(text, validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64 image data: {e}") from e


def load_image(raw: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Failed to load image: {e}") from e
    # Fixes PNG palette/alpha issues downstream
    return img.convert('RGB')


def preprocess_for_ocr(img: Image.Image) -> Image.Image:
    img = img.convert('L')
    img = img.filter(ImageFilter.SHARPEN)
    return ImageEnhance.Contrast(img).enhance(2)


def title_region(img: Image.Image) -> Image.Image:
    width, height = img.size
    return img.crop((0, 0, width, max(1, int(height * 0.10))))


def clean_ocr_text(raw: str) -> str:
    """Keep letters only and drop words of two characters or fewer."""
    text = re.sub(r"\{[A-Z0-9]+\}", "", raw or '')
    text = re.sub(r"[^A-Za-z\s]", "", text)
    return ' '.join(w for w in text.split() if len(w) > 2)


def detect_tesseract_path() -> str:
    """Resolved tesseract executable, or '' when none is installed."""
    if config.TESSERACT_CMD and Path(config.TESSERACT_CMD).exists():
        return str(Path(config.TESSERACT_CMD))
    cmd = getattr(pytesseract.pytesseract, 'tesseract_cmd', '') or ''
    if cmd and Path(cmd).exists():
        return str(Path(cmd))
    found = shutil.which(cmd or 'tesseract')
    if found:
        return str(Path(found))
    if os.name == 'nt':
        for c in _WINDOWS_TESSERACT:
            if Path(c).exists():
                return c
    return ''


def configure_tesseract() -> str:
    path = detect_tesseract_path()
    if path:
        pytesseract.pytesseract.tesseract_cmd = path
    return path


def extract_card_name(img: Image.Image) -> str:
    """OCR the title band of a card photo; '' when Tesseract is missing or fails."""
    band = title_region(preprocess_for_ocr(img)).convert('RGB')
    configure_tesseract()
    try:
        raw = pytesseract.image_to_string(band)
    except (pytesseract.TesseractNotFoundError, pytesseract.TesseractError, OSError) as e:
        logger.warning("OCR failed: %s", e)
        return ''
    cleaned = clean_ocr_text(raw)
    logger.debug("OCR raw=%r cleaned=%r", raw, cleaned)
    return cleaned

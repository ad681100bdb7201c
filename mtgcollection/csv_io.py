# mtgcollection/csv_io.py
"""Collection CSV export and Moxfield / Archidekt / generic import parsing."""
import csv
import io
import logging
from typing import Any, Dict, List, Optional

from . import tags_sql

logger = logging.getLogger(__name__)

EXPORT_HEADER = [
    'name', 'set_code', 'collector_number', 'condition', 'purchase_price',
    'current_price', 'quantity', 'is_foil', 'language', 'finish', 'tags', 'scryfall_id',
]


def _int(value, default: int = 1) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _float(value) -> Optional[float]:
    if value is None or str(value).strip() == '':
        return None
    try:
        return float(str(value).strip())
    except ValueError:
        return None


def _opt(value) -> Optional[str]:
    v = str(value or '').strip()
    return v or None


def _row(name, set_code=None, collector_number=None, quantity=1, condition='NM',
         language='English', is_foil=False, finish=None, tags=None, scryfall_id=None,
         purchase_price=None) -> Dict[str, Any]:
    return {
        'name': str(name or '').strip(),
        'set_code': _opt(set_code),
        'collector_number': _opt(collector_number),
        'quantity': quantity,
        'condition': _opt(condition) or 'NM',
        'language': _opt(language) or 'English',
        'is_foil': is_foil,
        'finish': _opt(finish) or ('foil' if is_foil else 'nonfoil'),
        'tags': _opt(tags),
        'scryfall_id': _opt(scryfall_id),
        'purchase_price': purchase_price,
    }


class _Record:
    """Case-insensitive view over a DictReader row."""

    def __init__(self, raw: Dict[str, Any]):
        self._data = {str(k or '').strip().lower(): v for k, v in raw.items()}

    def get(self, key: str, default=None):
        v = self._data.get(key.lower())
        return default if v is None else v


def detect_format(headers: List[str]) -> str:
    keys = {str(h or '').strip().lower() for h in headers}
    if {'count', 'name', 'edition'} <= keys:
        return 'moxfield'
    if {'quantity', 'name', 'set code'} <= keys:
        return 'archidekt'
    return 'generic'


def _parse_moxfield(r: _Record) -> Dict[str, Any]:
    return _row(
        r.get('Name'),
        set_code=r.get('Edition'),
        collector_number=r.get('Collector Number'),
        quantity=_int(r.get('Count')),
        condition=r.get('Condition'),
        language=r.get('Language'),
        is_foil=str(r.get('Foil', '')).strip().lower() == 'true',
        purchase_price=_float(r.get('Purchase Price')),
    )


def _parse_archidekt(r: _Record) -> Dict[str, Any]:
    return _row(
        r.get('Name'),
        set_code=r.get('Set Code'),
        quantity=_int(r.get('Quantity')),
        is_foil=str(r.get('Foil', '')).strip().lower() == 'true',
    )


def _parse_generic(r: _Record) -> Dict[str, Any]:
    foil = str(r.get('is_foil', '')).strip().lower()
    return _row(
        r.get('name'),
        set_code=r.get('set_code'),
        collector_number=r.get('collector_number'),
        quantity=_int(r.get('quantity')),
        condition=r.get('condition'),
        language=r.get('language'),
        is_foil=foil in ('1', 'true'),
        finish=r.get('finish'),
        tags=r.get('tags'),
        scryfall_id=r.get('scryfall_id'),
        purchase_price=_float(r.get('purchase_price')),
    )


_PARSERS = {
    'moxfield': _parse_moxfield,
    'archidekt': _parse_archidekt,
    'generic': _parse_generic,
}


def parse_csv(content: str) -> List[Dict[str, Any]]:
    """Parse collection CSV text into import rows; rows without a name are dropped."""
    text = str(content or '').lstrip('\ufeff')
    reader = csv.DictReader(io.StringIO(text))
    fmt = detect_format(reader.fieldnames or [])
    logger.info("Parsing CSV as %s format", fmt)
    parse = _PARSERS[fmt]
    rows = []
    for raw in reader:
        row = parse(_Record(raw))
        if not row['name'] and not row['scryfall_id']:
            continue
        if row['quantity'] < 1:
            row['quantity'] = 1
        rows.append(row)
    return rows


def resolve_query(row: Dict[str, Any]) -> str:
    """Scryfall query used to find the printing for a row without an id."""
    name = row.get('name') or ''
    set_code = (row.get('set_code') or '').lower()
    number = row.get('collector_number')
    if set_code and number:
        return f"set:{set_code} cn:{number}"
    if set_code:
        return f'!"{name}" set:{set_code}'
    return f'!"{name}"'


def import_tags(row: Dict[str, Any]) -> List[str]:
    raw = row.get('tags') or ''
    return [t for t in (s.strip() for s in raw.split(';')) if t and tags_sql.parse_tag_string(t)[0]]


def export_csv(cards: List[Dict[str, Any]]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\n')
    writer.writerow(EXPORT_HEADER)
    for c in cards:
        writer.writerow([
            c.get('name', ''),
            c.get('set_code', ''),
            c.get('collector_number', ''),
            c.get('condition', ''),
            c.get('purchase_price', 0.0),
            c.get('current_price', 0.0),
            c.get('quantity', 1),
            1 if c.get('is_foil') else 0,
            c.get('language', ''),
            c.get('finish', ''),
            tags_sql.format_tag_string(c.get('tags') or []),
            c.get('scryfall_id', ''),
        ])
    return buf.getvalue()

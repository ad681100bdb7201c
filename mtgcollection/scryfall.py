# mtgcollection/scryfall.py
"""Thin Scryfall REST client.

Responses are normalized into plain dicts so they can be stored, serialized to
the UI and compared in tests without a model layer.
"""
import logging

import httpx

from . import config
from .errors import NotFoundError, ScryfallError

logger = logging.getLogger(__name__)

IMAGE_SIZES = ('small', 'normal', 'large', 'png', 'art_crop', 'border_crop')
PRICE_KEYS = ('usd', 'usd_foil', 'usd_etched', 'eur', 'eur_foil')


def _image_uris(c: dict) -> dict | None:
    # Prefer top-level image_uris; double-faced cards only carry them per face
    uris = c.get('image_uris')
    if not isinstance(uris, dict):
        faces = c.get('card_faces')
        if isinstance(faces, list) and faces and isinstance(faces[0].get('image_uris'), dict):
            uris = faces[0]['image_uris']
    if not isinstance(uris, dict):
        return None
    return {k: str(uris.get(k) or '') for k in IMAGE_SIZES}


def normalize_card(c: dict) -> dict:
    """Keep the card fields the application uses, with stable defaults."""
    prices = c.get('prices') if isinstance(c.get('prices'), dict) else {}
    type_line = c.get('type_line')
    oracle_text = c.get('oracle_text')
    faces = c.get('card_faces')
    if isinstance(faces, list) and faces:
        if not type_line:
            type_line = faces[0].get('type_line')
        if not oracle_text:
            oracle_text = ' // '.join(f.get('oracle_text', '') for f in faces if f.get('oracle_text'))
    return {
        'id': str(c.get('id') or ''),
        'oracle_id': c.get('oracle_id'),
        'name': str(c.get('name') or ''),
        'lang': c.get('lang'),
        'set': str(c.get('set') or ''),
        'set_name': str(c.get('set_name') or ''),
        'collector_number': str(c.get('collector_number') or ''),
        'released_at': str(c.get('released_at') or ''),
        'artist': c.get('artist'),
        'rarity': str(c.get('rarity') or ''),
        'type_line': type_line,
        'oracle_text': oracle_text,
        'image_uris': _image_uris(c),
        'prices': {k: prices.get(k) for k in PRICE_KEYS},
        'finishes': list(c.get('finishes') or []),
    }


def normalize_set(s: dict) -> dict:
    return {
        'id': str(s.get('id') or ''),
        'code': str(s.get('code') or ''),
        'name': str(s.get('name') or ''),
        'released_at': s.get('released_at'),
        'icon_svg_uri': s.get('icon_svg_uri'),
        'set_type': s.get('set_type'),
        'card_count': s.get('card_count'),
    }


def empty_page() -> dict:
    return {'data': [], 'has_more': False, 'total_cards': 0}


class ScryfallClient:
    def __init__(self, base_url: str | None = None, timeout: float | None = None,
                 transport: httpx.BaseTransport | None = None):
        self.base_url = (base_url or config.SCRYFALL_URL).rstrip('/')
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else config.HTTP_TIMEOUT,
            headers={'User-Agent': config.USER_AGENT, 'Accept': 'application/json'},
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        try:
            resp = self._client.get(path, params=params)
        except httpx.HTTPError as e:
            logger.warning("Scryfall request %s failed: %s", path, e)
            raise ScryfallError(f"Scryfall request failed: {e}") from e
        logger.debug("GET %s -> %s", resp.request.url, resp.status_code)
        return resp

    def _json(self, resp: httpx.Response) -> dict:
        if resp.status_code != 200:
            detail = ''
            try:
                detail = resp.json().get('details', '')
            except ValueError:
                detail = resp.text[:200]
            raise ScryfallError(f"Scryfall returned HTTP {resp.status_code}: {detail}".rstrip(': '))
        try:
            data = resp.json()
        except ValueError as e:
            raise ScryfallError(f"Failed to parse Scryfall response: {resp.text[:200]}") from e
        if not isinstance(data, dict):
            raise ScryfallError("Unexpected Scryfall response shape")
        return data

    def _page(self, params: dict) -> dict:
        resp = self._get('/cards/search', params=params)
        # Scryfall answers 404 when a search has no results
        if resp.status_code == 404:
            return empty_page()
        data = self._json(resp)
        cards = [normalize_card(c) for c in data.get('data') or [] if isinstance(c, dict)]
        return {
            'data': cards,
            'has_more': bool(data.get('has_more')),
            'total_cards': data.get('total_cards'),
        }

    # --- sets ---
    def fetch_sets(self) -> list[dict]:
        data = self._json(self._get('/sets'))
        return [normalize_set(s) for s in data.get('data') or [] if isinstance(s, dict)]

    # --- cards ---
    def fetch_card(self, scryfall_id: str) -> dict:
        sid = str(scryfall_id or '').strip()
        if not sid:
            raise NotFoundError("Card id required")
        resp = self._get(f"/cards/{sid}")
        if resp.status_code == 404:
            raise NotFoundError(f"Card not found on Scryfall: {sid}")
        return normalize_card(self._json(resp))

    def named_fuzzy(self, name: str) -> dict | None:
        """Resolve a possibly misspelled card name, or None when Scryfall can't."""
        q = str(name or '').strip()
        if not q:
            return None
        resp = self._get('/cards/named', params={'fuzzy': q})
        if resp.status_code == 404:
            return None
        return normalize_card(self._json(resp))

    def search_cards(self, query: str, page: int = 1) -> dict:
        q = str(query or '').strip()
        if not q:
            return empty_page()
        logger.info("Searching Scryfall: %s (page %s)", q, page)
        return self._page({'q': q, 'unique': 'prints', 'page': max(1, int(page or 1))})

    def fetch_cards_by_set(self, set_code: str, page: int = 1) -> dict:
        code = str(set_code or '').strip().lower()
        if not code:
            return empty_page()
        return self._page({
            'q': f"e:{code}",
            'unique': 'prints',
            'order': 'set',
            'page': max(1, int(page or 1)),
        })

    def get_card_languages(self, oracle_id: str, set_code: str) -> list[str]:
        query = f"oracle_id:{oracle_id} set:{set_code}"
        resp = self._get('/cards/search', params={
            'q': query,
            'unique': 'prints',
            'include_multilingual': 'true',
        })
        if resp.status_code == 404:
            return []
        data = self._json(resp)
        return sorted({c['lang'] for c in data.get('data') or [] if isinstance(c, dict) and c.get('lang')})

    def get_top_cards(self, query: str, order: str, direction: str, limit: int = 10) -> list[dict]:
        page = self._page({'q': query, 'order': order, 'dir': direction})
        return page['data'][:limit]

    def fetch_image(self, url: str) -> bytes:
        try:
            resp = self._client.get(url)
        except httpx.HTTPError as e:
            raise ScryfallError(f"Image download failed: {e}") from e
        if resp.status_code != 200:
            raise ScryfallError(f"Image download returned HTTP {resp.status_code}")
        return resp.content

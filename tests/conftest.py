import io

import httpx
import pytest
from PIL import Image, ImageDraw

from backend import Api
from mtgcollection.scryfall import ScryfallClient

API_BASE = 'https://api.scryfall.test'
IMAGE_HOST = 'img.scryfall.test'


def raw_card(card_id='card-1', name='Lightning Bolt', set_code='lea', number='161',
             eur='8.50', usd='10.00', eur_foil=None, usd_foil=None, lang='en', **extra):
    card = {
        'object': 'card',
        'id': card_id,
        'oracle_id': f"oracle-{card_id}",
        'name': name,
        'lang': lang,
        'set': set_code,
        'set_name': 'Limited Edition Alpha',
        'collector_number': number,
        'released_at': '1993-08-05',
        'artist': 'Christopher Rush',
        'rarity': 'common',
        'type_line': 'Instant',
        'oracle_text': 'Lightning Bolt deals 3 damage to any target.',
        'image_uris': {
            'small': f"https://{IMAGE_HOST}/small/{card_id}.png",
            'normal': f"https://{IMAGE_HOST}/normal/{card_id}.png",
        },
        'prices': {'usd': usd, 'usd_foil': usd_foil, 'eur': eur, 'eur_foil': eur_foil},
        'finishes': ['nonfoil', 'foil'],
    }
    card.update(extra)
    return card


def raw_set(code, name=None, released_at='2020-01-01'):
    return {
        'object': 'set',
        'id': f"set-{code}",
        'code': code,
        'name': name or code.upper(),
        'released_at': released_at,
        'icon_svg_uri': f"https://svgs.scryfall.test/{code}.svg",
        'set_type': 'expansion',
        'card_count': 100,
    }


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()


def solid(color, size=(200, 280)) -> Image.Image:
    return Image.new('RGB', size, color)


def stripes(size=(90, 80)) -> Image.Image:
    """Alternating 10px white/black columns; its dHash is far from a flat image's."""
    img = Image.new('RGB', size, 'black')
    draw = ImageDraw.Draw(img)
    for x in range(0, size[0], 20):
        draw.rectangle((x, 0, x + 9, size[1]), fill='white')
    return img


def _not_found():
    return httpx.Response(404, json={'object': 'error', 'code': 'not_found',
                                     'details': 'No cards found'})


class ScryfallStub:
    """Routes httpx requests to in-memory cards, searches, sets and images."""

    def __init__(self):
        self.cards: dict[str, dict] = {}
        self.searches: dict[str, list] = {}
        self.sets: list[dict] = []
        self.images: dict[str, bytes] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def add(self, card: dict) -> dict:
        self.cards[card['id']] = card
        return card

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == IMAGE_HOST:
            body = self.images.get(request.url.path)
            return httpx.Response(200, content=body) if body is not None else httpx.Response(404)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={'object': 'error', 'details': 'upstream broke'})
        path = request.url.path
        if path == '/sets':
            return httpx.Response(200, json={'object': 'list', 'data': self.sets})
        if path == '/cards/search':
            data = self.searches.get(request.url.params.get('q'))
            if not data:
                return _not_found()
            return httpx.Response(200, json={
                'object': 'list', 'total_cards': len(data), 'has_more': False, 'data': data,
            })
        if path == '/cards/named':
            fuzzy = (request.url.params.get('fuzzy') or '').lower()
            for card in self.cards.values():
                if fuzzy and fuzzy in card['name'].lower():
                    return httpx.Response(200, json=card)
            return _not_found()
        if path.startswith('/cards/'):
            card = self.cards.get(path.rsplit('/', 1)[1])
            return httpx.Response(200, json=card) if card else _not_found()
        return _not_found()

    def queries(self) -> list[str]:
        return [r.url.params.get('q') for r in self.requests if r.url.path == '/cards/search']


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / 'collection.db'


@pytest.fixture
def stub():
    return ScryfallStub()


@pytest.fixture
def scryfall(stub):
    client = ScryfallClient(base_url=API_BASE, transport=httpx.MockTransport(stub.handler))
    yield client
    client.close()


@pytest.fixture
def api(db_path, scryfall):
    return Api(db_path=db_path, scryfall=scryfall, request_delay=0)


@pytest.fixture
def bolt(stub):
    return stub.add(raw_card())


@pytest.fixture
def add_args():
    def make(scryfall_id='card-1', **overrides):
        args = {
            'scryfall_id': scryfall_id,
            'condition': 'NM',
            'purchase_price': 5.0,
            'quantity': 1,
            'is_foil': False,
            'language': 'English',
            'finish': 'nonfoil',
        }
        args.update(overrides)
        return args
    return make

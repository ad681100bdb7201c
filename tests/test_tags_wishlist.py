import pytest

from conftest import raw_card
from mtgcollection import collection_sql as csql
from mtgcollection import sets_sql, tags_sql, wishlist_sql
from mtgcollection.errors import NotFoundError, ValidationError
from mtgcollection.scryfall import normalize_card


@pytest.fixture
def card_id(db_path):
    card = normalize_card(raw_card())
    args = {'scryfall_id': card['id'], 'condition': 'NM', 'purchase_price': 1.0,
            'quantity': 1, 'is_foil': False}
    return csql.insert_card(db_path, 'c1', card, args, 1.0)


def test_parse_tag_string():
    assert tags_sql.parse_tag_string('Burn:#ff0000') == ('Burn', '#ff0000')
    assert tags_sql.parse_tag_string(' Trade ') == ('Trade', tags_sql.DEFAULT_COLOR)


def test_tag_lifecycle(db_path, card_id):
    trade = tags_sql.create_tag(db_path, 'Trade', '#00ff00')
    burn = tags_sql.create_tag(db_path, 'Burn', '#ff0000')

    tags_sql.add_tag_to_card(db_path, card_id, trade)
    tags_sql.add_tag_to_card(db_path, card_id, trade)
    tags_sql.add_tag_to_card(db_path, card_id, burn)

    assert [t['name'] for t in tags_sql.get_all_tags(db_path)] == ['Burn', 'Trade']
    assert [t['name'] for t in tags_sql.get_card_tags(db_path, card_id)] == ['Burn', 'Trade']

    tags_sql.remove_tag_from_card(db_path, card_id, burn)
    assert [t['name'] for t in tags_sql.get_card_tags(db_path, card_id)] == ['Trade']

    tags_sql.delete_tag(db_path, trade)
    assert tags_sql.get_card_tags(db_path, card_id) == []
    assert csql.get_card(db_path, card_id)['tags'] == []


def test_create_tag_validation(db_path):
    with pytest.raises(ValidationError):
        tags_sql.create_tag(db_path, '  ')
    tags_sql.create_tag(db_path, 'Trade')
    with pytest.raises(ValidationError):
        tags_sql.create_tag(db_path, 'Trade')


def test_tag_unknown_ids(db_path, card_id):
    with pytest.raises(NotFoundError):
        tags_sql.delete_tag(db_path, 999)
    with pytest.raises(NotFoundError):
        tags_sql.add_tag_to_card(db_path, card_id, 999)


def test_wishlist_ordering_and_update(db_path):
    low = wishlist_sql.add_to_wishlist(db_path, 'w1', normalize_card(raw_card('a', 'Bolt')), priority=1)
    high = wishlist_sql.add_to_wishlist(db_path, 'w2', normalize_card(raw_card('b', 'Ring')),
                                        target_price='5.5', notes='foil please', priority=3)

    items = wishlist_sql.get_wishlist(db_path)
    assert [i['id'] for i in items] == [high, low]
    assert items[0]['target_price'] == 5.5
    assert items[0]['set_code'] == 'lea'
    assert items[1]['target_price'] is None

    wishlist_sql.update_wishlist_card(db_path, low, target_price=2, notes=None, priority=3)
    updated = {i['id']: i for i in wishlist_sql.get_wishlist(db_path)}[low]
    assert (updated['target_price'], updated['priority']) == (2.0, 3)

    wishlist_sql.remove_from_wishlist(db_path, high)
    assert [i['id'] for i in wishlist_sql.get_wishlist(db_path)] == [low]


def test_wishlist_validation(db_path):
    card = normalize_card(raw_card())
    with pytest.raises(ValidationError):
        wishlist_sql.add_to_wishlist(db_path, 'w1', card, priority=4)
    with pytest.raises(ValidationError):
        wishlist_sql.add_to_wishlist(db_path, 'w1', card, target_price=-1)
    with pytest.raises(NotFoundError):
        wishlist_sql.remove_from_wishlist(db_path, 'missing')


def test_sets_upsert_newest_first(db_path):
    sets_sql.save_sets(db_path, [
        {'id': 's1', 'code': 'lea', 'name': 'Alpha', 'released_at': '1993-08-05'},
        {'id': 's2', 'code': 'mh3', 'name': 'Modern Horizons 3', 'released_at': '2024-06-14'},
    ])
    sets_sql.save_sets(db_path, [{'id': 's1', 'code': 'lea', 'name': 'Limited Edition Alpha',
                                  'released_at': '1993-08-05'}])

    stored = sets_sql.get_sets(db_path)

    assert sets_sql.count_sets(db_path) == 2
    assert [s['code'] for s in stored] == ['mh3', 'lea']
    assert stored[1]['name'] == 'Limited Edition Alpha'

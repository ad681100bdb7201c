import csv
import io

from mtgcollection import csv_io


def test_parse_moxfield():
    content = "Count,Name,Edition,Condition,Language,Foil,Tag\n1,Black Lotus,LEA,NM,English,false,Power 9"

    rows = csv_io.parse_csv(content)

    assert len(rows) == 1
    assert rows[0]['name'] == 'Black Lotus'
    assert rows[0]['set_code'] == 'LEA'
    assert rows[0]['quantity'] == 1
    assert rows[0]['is_foil'] is False
    assert rows[0]['finish'] == 'nonfoil'


def test_parse_archidekt():
    rows = csv_io.parse_csv("Quantity,Name,Set Code,Foil\n2,Sol Ring,C19,true")

    assert rows[0]['name'] == 'Sol Ring'
    assert rows[0]['set_code'] == 'C19'
    assert rows[0]['quantity'] == 2
    assert rows[0]['is_foil'] is True
    assert rows[0]['finish'] == 'foil'
    assert (rows[0]['condition'], rows[0]['language']) == ('NM', 'English')


def test_parse_generic_defaults():
    rows = csv_io.parse_csv("name,set_code,quantity,is_foil\nLightning Bolt,LEA,4,1\nShock,,,\n")

    assert rows[0]['quantity'] == 4
    assert rows[0]['is_foil'] is True
    assert rows[1]['quantity'] == 1
    assert rows[1]['set_code'] is None
    assert rows[1]['condition'] == 'NM'


def test_headers_are_case_insensitive():
    assert csv_io.detect_format(['COUNT', 'name', 'Edition']) == 'moxfield'
    assert csv_io.detect_format(['quantity', 'NAME', 'set code']) == 'archidekt'
    assert csv_io.detect_format(['name', 'set_code']) == 'generic'


def test_empty_content():
    assert csv_io.parse_csv('') == []
    assert csv_io.parse_csv('name,set_code\n') == []


def test_resolve_query():
    assert csv_io.resolve_query({'name': 'Sol Ring', 'set_code': 'C19', 'collector_number': '221'}) == 'set:c19 cn:221'
    assert csv_io.resolve_query({'name': 'Sol Ring', 'set_code': 'C19'}) == '!"Sol Ring" set:c19'
    assert csv_io.resolve_query({'name': 'Sol Ring'}) == '!"Sol Ring"'


def test_export_round_trips_through_generic_parser():
    cards = [{
        'name': 'Lightning Bolt, Alpha', 'set_code': 'lea', 'collector_number': '161',
        'condition': 'NM', 'purchase_price': 5.0, 'current_price': 8.5, 'quantity': 2,
        'is_foil': True, 'language': 'English', 'finish': 'foil',
        'tags': [{'name': 'Burn', 'color': '#ff0000'}, {'name': 'Trade', 'color': '#00ff00'}],
        'scryfall_id': 'card-1',
    }]

    text = csv_io.export_csv(cards)

    header, row = list(csv.reader(io.StringIO(text)))
    assert header == csv_io.EXPORT_HEADER
    assert row[7] == '1'
    assert row[10] == 'Burn:#ff0000;Trade:#00ff00'
    parsed = csv_io.parse_csv(text)[0]
    assert parsed['name'] == 'Lightning Bolt, Alpha'
    assert parsed['scryfall_id'] == 'card-1'
    assert parsed['purchase_price'] == 5.0
    assert csv_io.import_tags(parsed) == ['Burn:#ff0000', 'Trade:#00ff00']

import pytest

pytest.importorskip('PySide6.QtWidgets')

import scanner_gui  # noqa: E402
from conftest import png_bytes, raw_card, solid  # noqa: E402
from mtgcollection import image_utils  # noqa: E402
from mtgcollection.client import LocalBridge  # noqa: E402


def test_format_size():
    assert scanner_gui.format_size(512) == '0.5 KB'
    assert scanner_gui.format_size(3 * 1024 * 1024) == '3.00 MB'


def test_best_candidate():
    assert scanner_gui.best_candidate({'candidates': []}) is None
    assert scanner_gui.best_candidate({'candidates': [{'id': 'a'}, {'id': 'b'}]}) == {'id': 'a'}


def test_recognize_file(api, stub, tmp_path, monkeypatch):
    monkeypatch.setattr(image_utils, 'extract_card_name', lambda img: 'Counterspell')
    stub.searches['Counterspell c:u border:black'] = [raw_card('cs', name='Counterspell')]
    photo = tmp_path / 'scan.png'
    photo.write_bytes(png_bytes(solid((0, 0, 255))))

    result = scanner_gui.recognize_file(LocalBridge(api), str(photo))

    assert result['detected_name'] == 'Counterspell'
    assert scanner_gui.best_candidate(result)['id'] == 'cs'

"""Desktop scanner: recognize card photos and add the best match to the collection."""
import argparse
import base64
import logging
import os
import sys

from PySide6.QtCore import Qt
from PySide6.QtGui import QCursor, QPixmap
from PySide6.QtWidgets import (
    QAbstractItemView, QApplication, QComboBox, QFileDialog, QHBoxLayout, QHeaderView,
    QLabel, QMainWindow, QProgressBar, QPushButton, QTableWidget, QTableWidgetItem,
    QTextEdit, QVBoxLayout, QWidget,
)

from mtgcollection import config
from mtgcollection.client import HttpBridge, LocalBridge
from mtgcollection.errors import CommandError
from mtgcollection.logging_setup import setup_logging
from mtgcollection.viewmodels import AddCardForm, SettingsStore

logger = logging.getLogger('mtgcollection.scanner')

IMAGE_FILTER = "Images (*.png *.jpg *.jpeg)"
IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg')

STYLE = """
    QMainWindow { background-color: #1e1e1e; }
    QLabel { color: #ffffff; font-size: 10pt; }
    QPushButton {
        background-color: #0e639c; color: white; border: none; padding: 10px;
        font-size: 11pt; font-weight: bold; border-radius: 4px;
    }
    QPushButton:hover { background-color: #1177bb; }
    QPushButton:pressed { background-color: #005a9e; }
    QPushButton:disabled { background-color: #3e3e42; color: #888888; }
    QTextEdit {
        background-color: #252526; color: #cccccc; border: 1px solid #3e3e42;
        font-family: 'Consolas', 'Courier New', monospace; font-size: 9pt;
    }
    QProgressBar {
        background-color: #3e3e42; border: 1px solid #555555; border-radius: 4px;
        text-align: center; color: #ffffff;
    }
    QProgressBar::chunk { background-color: #0e639c; border-radius: 3px; }
    QTableWidget {
        background-color: #252526; color: #cccccc; border: 1px solid #3e3e42;
        gridline-color: #3e3e42;
    }
    QTableWidget::item:selected { background-color: #094771; }
    QHeaderView::section {
        background-color: #2d2d30; color: #ffffff; padding: 5px;
        border: 1px solid #3e3e42; font-weight: bold;
    }
"""

COL_FILE, COL_SIZE, COL_DETECTED, COL_MATCH, COL_STATUS = range(5)


def format_size(num_bytes: int) -> str:
    size_kb = num_bytes / 1024
    size_mb = size_kb / 1024
    return f"{size_mb:.2f} MB" if size_mb >= 1 else f"{size_kb:.1f} KB"


def encode_image_file(path: str) -> str:
    with open(path, 'rb') as f:
        return base64.b64encode(f.read()).decode('ascii')


def recognize_file(bridge, path: str) -> dict:
    """Run recognition on one image file through the bridge."""
    return bridge.invoke('recognize_card_with_features', {'imageData': encode_image_file(path)})


def best_candidate(result: dict) -> dict | None:
    candidates = result.get('candidates') or []
    return candidates[0] if candidates else None


class ScannerWindow(QMainWindow):
    def __init__(self, bridge, settings: SettingsStore):
        super().__init__()
        self.bridge = bridge
        self.settings = settings
        self.setWindowTitle("MTG Card Scanner")
        self.setGeometry(200, 200, 900, 650)
        self.setStyleSheet(STYLE)

        self.status_label = QLabel("Ready - Load images to scan", self)
        self.status_label.setAlignment(Qt.AlignCenter)

        self.load_button = QPushButton("Load Images")
        self.load_folder_button = QPushButton("Load Folder")
        self.scan_button = QPushButton("Recognize")
        self.add_button = QPushButton("Add Best Matches")
        self.clear_button = QPushButton("Clear")

        self.currency_box = QComboBox()
        self.currency_box.addItems(list(config.CURRENCIES))
        self.currency_box.setCurrentText(settings.currency)
        self.currency_box.currentTextChanged.connect(self.settings.set_currency)

        self.file_table = QTableWidget()
        self.file_table.setColumnCount(5)
        self.file_table.setHorizontalHeaderLabels(["Filename", "Size", "Detected", "Best Match", "Status"])
        header = self.file_table.horizontalHeader()
        header.setSectionResizeMode(COL_FILE, QHeaderView.Stretch)
        header.setSectionResizeMode(COL_SIZE, QHeaderView.ResizeToContents)
        header.setSectionResizeMode(COL_DETECTED, QHeaderView.Stretch)
        header.setSectionResizeMode(COL_MATCH, QHeaderView.Stretch)
        header.setSectionResizeMode(COL_STATUS, QHeaderView.ResizeToContents)
        self.file_table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.file_table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.file_table.itemEntered.connect(self.on_table_hover)
        self.file_table.viewport().installEventFilter(self)
        self.file_table.setMouseTracking(True)
        self.file_table.setMinimumHeight(200)

        self.hover_preview = QLabel(self)
        self.hover_preview.setWindowFlags(Qt.ToolTip)
        self.hover_preview.setStyleSheet("border: 2px solid #007acc; background-color: #1e1e1e;")
        self.hover_preview.hide()

        self.progress_bar = QProgressBar()
        self.progress_bar.setValue(0)

        self.output_text = QTextEdit()
        self.output_text.setReadOnly(True)

        buttons = QHBoxLayout()
        for w in (self.load_button, self.load_folder_button, self.scan_button,
                  self.add_button, self.clear_button, self.currency_box):
            buttons.addWidget(w)

        layout = QVBoxLayout()
        layout.addWidget(self.status_label)
        layout.addLayout(buttons)
        layout.addWidget(self.file_table)
        layout.addWidget(self.progress_bar)
        layout.addWidget(self.output_text)
        container = QWidget()
        container.setLayout(layout)
        self.setCentralWidget(container)

        self.load_button.clicked.connect(self.load_images)
        self.load_folder_button.clicked.connect(self.load_folder)
        self.scan_button.clicked.connect(self.recognize_all)
        self.add_button.clicked.connect(self.add_matches)
        self.clear_button.clicked.connect(self.clear_all)

        self.images: list[str] = []
        self.results: dict[int, dict] = {}

    def log(self, text: str) -> None:
        self.output_text.append(text)

    def _set(self, row: int, col: int, text: str) -> None:
        item = self.file_table.item(row, col)
        if item is not None:
            item.setText(text)

    def add_paths(self, paths) -> None:
        for path in paths:
            row = self.file_table.rowCount()
            self.file_table.setRowCount(row + 1)
            name_item = QTableWidgetItem(os.path.basename(path))
            name_item.setData(Qt.UserRole, path)
            self.file_table.setItem(row, COL_FILE, name_item)
            self.file_table.setItem(row, COL_SIZE, QTableWidgetItem(format_size(os.path.getsize(path))))
            for col in (COL_DETECTED, COL_MATCH):
                self.file_table.setItem(row, col, QTableWidgetItem("-"))
            self.file_table.setItem(row, COL_STATUS, QTableWidgetItem("Pending"))
            self.images.append(path)
        self.status_label.setText(f"{len(self.images)} image(s) loaded - click Recognize")

    def load_images(self):
        paths, _ = QFileDialog.getOpenFileNames(self, "Select Card Images", "", IMAGE_FILTER)
        if paths:
            self.add_paths(paths)
            self.log(f"Loaded {len(paths)} image(s)")

    def load_folder(self):
        folder = QFileDialog.getExistingDirectory(self, "Select Folder with Card Images")
        if not folder:
            return
        paths = sorted(
            os.path.join(folder, f) for f in os.listdir(folder)
            if f.lower().endswith(IMAGE_EXTENSIONS)
        )
        if not paths:
            self.log("No image files found in selected folder")
            self.status_label.setText("No images found")
            return
        self.add_paths(paths)
        self.log(f"Loaded {len(paths)} images from {folder}")

    def clear_all(self):
        self.file_table.setRowCount(0)
        self.images = []
        self.results = {}
        self.progress_bar.setValue(0)
        self.log("Cleared all loaded images")
        self.status_label.setText("Ready - Load images to scan")

    def recognize_all(self):
        if not self.images:
            self.log("No images loaded!")
            return
        total = len(self.images)
        for idx, path in enumerate(self.images):
            self.status_label.setText(f"Recognizing {idx + 1}/{total}: {os.path.basename(path)}")
            self._set(idx, COL_STATUS, "Processing...")
            QApplication.processEvents()
            try:
                result = recognize_file(self.bridge, path)
            except (CommandError, OSError) as e:
                logger.warning("Recognition failed for %s: %s", path, e)
                self._set(idx, COL_STATUS, "Failed")
                self.log(f"[{idx + 1}/{total}] {os.path.basename(path)}: {e}")
                continue
            finally:
                self.progress_bar.setValue(int((idx + 1) / total * 100))
            self.results[idx] = result
            best = best_candidate(result)
            self._set(idx, COL_DETECTED, result.get('detected_name') or '?')
            self._set(idx, COL_MATCH, f"{best['name']} ({best['set'].upper()})" if best else 'No match')
            self._set(idx, COL_STATUS, "Recognized" if best else "No match")
            self.log(f"[{idx + 1}/{total}] {result.get('feature_description')} | query: {result.get('search_query')}")
        self.status_label.setText(f"Recognized {len(self.results)}/{total} images")

    def add_matches(self):
        added = 0
        for idx, result in sorted(self.results.items()):
            best = best_candidate(result)
            if best is None:
                continue
            form = AddCardForm(self.bridge, self.settings, best)
            if form.submit():
                added += 1
                self._set(idx, COL_STATUS, "Added")
                self.log(f"Added {best['name']} at {self.settings.format_price(form.price)}")
            else:
                self._set(idx, COL_STATUS, "Add failed")
                self.log(form.error)
        self.status_label.setText(f"Added {added} card(s) to the collection")

    def on_table_hover(self, item):
        path = self.file_table.item(item.row(), COL_FILE).data(Qt.UserRole)
        if path and os.path.exists(path):
            pixmap = QPixmap(path).scaled(400, 400, Qt.KeepAspectRatio, Qt.SmoothTransformation)
            self.hover_preview.setPixmap(pixmap)
            self.hover_preview.adjustSize()
            pos = QCursor.pos()
            self.hover_preview.move(pos.x() + 20, pos.y() + 20)
            self.hover_preview.show()
        else:
            self.hover_preview.hide()

    def eventFilter(self, obj, event):
        if obj == self.file_table.viewport() and event.type() == event.Type.Leave:
            self.hover_preview.hide()
        return super().eventFilter(obj, event)


def make_bridge(url: str | None):
    if url:
        return HttpBridge(url)
    from backend import Api
    return LocalBridge(Api())


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='MTG card scanner')
    parser.add_argument('--url', help='server URL; runs the backend in-process when omitted')
    parser.add_argument('-v', '--verbose', action='count', default=0)
    args, qt_args = parser.parse_known_args(argv)
    setup_logging(args.verbose)
    app = QApplication([sys.argv[0], *qt_args])
    window = ScannerWindow(make_bridge(args.url), SettingsStore())
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())

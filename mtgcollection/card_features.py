# mtgcollection/card_features.py
"""Visual features of a photographed card: border, frame colour, corner dots and a dHash.

The features narrow the Scryfall search built from OCR text, and the hash ranks
the returned printings against the photo.
"""
import colorsys
import enum
import logging
from dataclasses import dataclass

import imagehash
from PIL import Image, ImageStat

logger = logging.getLogger(__name__)


class BorderType(str, enum.Enum):
    BLACK = 'Black'
    WHITE = 'White'
    SILVER = 'Silver'
    UNKNOWN = 'Unknown'


class FrameColor(str, enum.Enum):
    BLACK = 'Black'
    BLUE = 'Blue'
    RED = 'Red'
    GREEN = 'Green'
    WHITE = 'White'
    GOLD = 'Gold'
    LAND = 'Land'
    UNKNOWN = 'Unknown'


class FrameStyle(str, enum.Enum):
    OLD = 'OldFrame'
    MODERN = 'ModernFrame'
    M15 = 'M15Frame'
    UNKNOWN = 'Unknown'


@dataclass
class CardFeatures:
    border_type: BorderType
    frame_color: FrameColor
    frame_style: FrameStyle
    has_corner_dots: bool
    is_foil: bool
    phash: int

    def to_dict(self) -> dict:
        return {
            'border_type': self.border_type.value,
            'frame_color': self.frame_color.value,
            'frame_style': self.frame_style.value,
            'has_corner_dots': self.has_corner_dots,
            'is_foil': self.is_foil,
            # 64-bit ints don't survive JSON numbers in the browser
            'phash': f"{self.phash:016x}",
        }


def rgb_to_hsv(r: int, g: int, b: int) -> tuple[float, float, float]:
    """HSV with hue in degrees [0, 360) and saturation/value in [0, 1]."""
    h, s, v = colorsys.rgb_to_hsv(r / 255.0, g / 255.0, b / 255.0)
    return h * 360.0, s, v


def _mean_rgb(img: Image.Image, boxes) -> tuple[int, int, int] | None:
    total = [0.0, 0.0, 0.0]
    count = 0
    for box in boxes:
        left, top, right, bottom = box
        if right <= left or bottom <= top:
            continue
        region = img.crop(box)
        stat = ImageStat.Stat(region)
        n = region.size[0] * region.size[1]
        for i in range(3):
            total[i] += stat.sum[i]
        count += n
    if count == 0:
        return None
    return tuple(int(t // count) for t in total)


def detect_border_type(img: Image.Image) -> BorderType:
    """Average a 5% strip sitting 15% inside each edge; bright and unsaturated means white."""
    img = img.convert('RGB')
    w, h = img.size
    mx, my = int(w * 0.15), int(h * 0.15)
    strip = int(w * 0.05)
    boxes = [
        (mx, my, w - mx, my + strip),
        (mx, h - my - strip, w - mx, h - my),
        (mx, my, mx + strip, h - my),
        (w - mx - strip, my, w - mx, h - my),
    ]
    avg = _mean_rgb(img, boxes)
    if avg is None:
        return BorderType.UNKNOWN
    _, s, v = rgb_to_hsv(*avg)
    # Silver is rare enough that guessing it does more harm than good
    if s < 0.20 and v > 0.60:
        return BorderType.WHITE
    return BorderType.BLACK


def classify_frame_hsv(h: float, s: float, v: float) -> FrameColor:
    if v < 0.25:
        return FrameColor.BLACK
    if s < 0.20 and v > 0.60:
        return FrameColor.WHITE
    if 200.0 <= h <= 260.0 and s > 0.25:
        return FrameColor.BLUE
    if (h <= 20.0 or h >= 345.0) and s > 0.25:
        return FrameColor.RED
    if 90.0 <= h <= 150.0 and s > 0.25:
        return FrameColor.GREEN
    if 35.0 <= h <= 65.0 and s > 0.35 and v > 0.40:
        return FrameColor.GOLD
    # brown artifact frames
    if 15.0 <= h <= 45.0 and 0.15 < s < 0.50 and 0.25 < v < 0.65:
        return FrameColor.BLACK
    if 20.0 <= h <= 50.0 and v > 0.50:
        return FrameColor.LAND
    return FrameColor.UNKNOWN


def detect_frame_color(img: Image.Image) -> FrameColor:
    img = img.convert('RGB')
    w, h = img.size
    xs = (int(w * 0.05), int(w * 0.95))
    start_y, end_y = int(h * 0.15), int(h * 0.85)
    total = [0, 0, 0]
    count = 0
    for x in xs:
        if x >= w:
            continue
        for y in range(start_y, end_y, 10):
            px = img.getpixel((x, y))
            for i in range(3):
                total[i] += px[i]
            count += 1
    if count == 0:
        return FrameColor.UNKNOWN
    avg = [t // count for t in total]
    return classify_frame_hsv(*rgb_to_hsv(*avg))


def detect_frame_style(img: Image.Image) -> FrameStyle:
    # TODO: tell old/modern/M15 frames apart from the title bar and P/T box geometry
    return FrameStyle.UNKNOWN


def detect_corner_dots(img: Image.Image, corner: int = 20) -> bool:
    """White dots in both bottom corners, each over 30% of all sampled pixels."""
    img = img.convert('RGB')
    w, h = img.size
    y0 = max(0, h - corner)
    half = corner // 2
    counts = []
    total = 0
    for cx in (int(w * 0.05), int(w * 0.95)):
        white = 0
        for y in range(y0, h):
            for x in range(max(0, cx - half), min(w, cx + half)):
                _, s, v = rgb_to_hsv(*img.getpixel((x, y)))
                if s < 0.2 and v > 0.8:
                    white += 1
                total += 1
        counts.append(white)
    threshold = int(total * 0.3)
    return all(c > threshold for c in counts)


def dhash(img: Image.Image) -> int:
    return int(str(imagehash.dhash(img, hash_size=8)), 16)


def hamming_distance(a: int, b: int) -> int:
    return bin((a ^ b) & 0xFFFFFFFFFFFFFFFF).count('1')


def extract_features(img: Image.Image) -> CardFeatures:
    rgb = img.convert('RGB')
    features = CardFeatures(
        border_type=detect_border_type(rgb),
        frame_color=detect_frame_color(rgb),
        frame_style=detect_frame_style(rgb),
        has_corner_dots=detect_corner_dots(rgb),
        is_foil=False,
        phash=dhash(rgb),
    )
    logger.debug("Extracted features: %s", features)
    return features


_COLOR_FILTERS = {
    FrameColor.BLUE: 'c:u',
    FrameColor.RED: 'c:r',
    FrameColor.GREEN: 'c:g',
    FrameColor.WHITE: 'c:w',
    FrameColor.BLACK: 'c:b',
    FrameColor.GOLD: 'c:m',
    FrameColor.LAND: 't:land',
}
_BORDER_FILTERS = {
    BorderType.BLACK: 'border:black',
    BorderType.WHITE: 'border:white',
    BorderType.SILVER: 'border:silver',
}
_STYLE_FILTERS = {
    FrameStyle.OLD: 'frame:old',
    FrameStyle.MODERN: 'frame:modern',
    FrameStyle.M15: 'frame:2015',
}


def build_search_query(features: CardFeatures, ocr_text: str | None = None) -> str:
    parts = []
    text = (ocr_text or '').strip()
    if text:
        parts.append(text)
    for table, key in ((_COLOR_FILTERS, features.frame_color),
                       (_BORDER_FILTERS, features.border_type),
                       (_STYLE_FILTERS, features.frame_style)):
        if key in table:
            parts.append(table[key])
    return ' '.join(parts) if parts else '*'


_FRAME_NAMES = {FrameColor.GOLD: 'Multicolor frame', FrameColor.UNKNOWN: 'Unknown frame color'}
_STYLE_NAMES = {
    FrameStyle.OLD: 'Old frame style',
    FrameStyle.MODERN: 'Modern frame style',
    FrameStyle.M15: 'M15 frame style',
}


def describe_features(features: CardFeatures) -> str:
    parts = [
        f"{features.border_type.value} border",
        _FRAME_NAMES.get(features.frame_color, f"{features.frame_color.value} frame"),
    ]
    if features.frame_style in _STYLE_NAMES:
        parts.append(_STYLE_NAMES[features.frame_style])
    if features.has_corner_dots:
        parts.append('Has corner dots')
    if features.is_foil:
        parts.append('Foil')
    return ', '.join(parts)

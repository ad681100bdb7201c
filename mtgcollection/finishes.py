# mtgcollection/finishes.py
"""Card finish catalogue: labels, icons and categories used by forms."""

CARD_FINISHES = {
    # Standard finishes
    'nonfoil': {'label': 'Non-foil', 'icon': '📄', 'category': 'Standard'},
    'foil': {'label': 'Foil', 'icon': '⭐', 'category': 'Standard'},
    'etched': {'label': 'Etched Foil', 'icon': '✨', 'category': 'Standard'},
    # Special variants
    'showcase': {'label': 'Showcase', 'icon': '🎨', 'category': 'Special'},
    'extended_art': {'label': 'Extended Art', 'icon': '🖼️', 'category': 'Special'},
    'borderless': {'label': 'Borderless', 'icon': '🔲', 'category': 'Special'},
    'full_art': {'label': 'Full Art', 'icon': '🌅', 'category': 'Special'},
    # Promotional
    'promo': {'label': 'Promo', 'icon': '🎁', 'category': 'Promotional'},
    'prerelease': {'label': 'Prerelease', 'icon': '🎯', 'category': 'Promotional'},
    'buy_a_box': {'label': 'Buy-a-Box', 'icon': '📦', 'category': 'Promotional'},
    'fnm': {'label': 'FNM Promo', 'icon': '🏆', 'category': 'Promotional'},
    # Premium
    'serialized': {'label': 'Serialized', 'icon': '🔢', 'category': 'Premium'},
    'gilded': {'label': 'Gilded Foil', 'icon': '✨', 'category': 'Premium'},
    'textured': {'label': 'Textured Foil', 'icon': '🌟', 'category': 'Premium'},
}

DEFAULT_FINISH = 'nonfoil'


def finish_label(finish: str) -> str:
    entry = CARD_FINISHES.get(str(finish or ''))
    return entry['label'] if entry else str(finish or '')


def finish_icon(finish: str) -> str:
    entry = CARD_FINISHES.get(str(finish or ''))
    return entry['icon'] if entry else '📄'


def finishes_by_category() -> dict[str, list[dict]]:
    """Group finishes by category for select widgets, preserving catalogue order."""
    out: dict[str, list[dict]] = {}
    for value, meta in CARD_FINISHES.items():
        out.setdefault(meta['category'], []).append(
            {'value': value, 'label': meta['label'], 'icon': meta['icon']}
        )
    return out


def is_finish_foil(finish: str) -> bool:
    """True when the finish (key or label) names a foil print.

    "nonfoil" / "Non-foil" contain the word too, so the non- prefix is excluded.
    """
    text = f"{finish or ''} {finish_label(finish)}".lower()
    for token in ('nonfoil', 'non-foil', 'non foil'):
        text = text.replace(token, '')
    return 'foil' in text

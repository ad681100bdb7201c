# mtgcollection/analytics.py
"""Portfolio statistics computed from collection rows and price history."""
from typing import Any, Dict, List, Optional


def card_performance(card: Dict[str, Any]) -> Dict[str, Any]:
    qty = int(card.get('quantity') or 0)
    investment = float(card.get('purchase_price') or 0.0) * qty
    value = float(card.get('current_price') or 0.0) * qty
    gain = value - investment
    if investment > 0:
        roi = gain / investment * 100
    elif value > 0:
        roi = 100.0
    else:
        roi = 0.0
    return {
        'id': card.get('id'),
        'name': card.get('name'),
        'set_code': card.get('set_code'),
        'image_uri': card.get('image_uri'),
        'quantity': qty,
        'purchase_price': float(card.get('purchase_price') or 0.0),
        'current_price': float(card.get('current_price') or 0.0),
        'investment': investment,
        'current_value': value,
        'gain': gain,
        'roi_percentage': roi,
    }


def collection_stats(cards: List[Dict[str, Any]], top_n: int = 5) -> Dict[str, Any]:
    perf = [card_performance(c) for c in cards]
    total_investment = sum(p['investment'] for p in perf)
    total_value = sum(p['current_value'] for p in perf)
    total_gain = total_value - total_investment
    total_roi = total_gain / total_investment * 100 if total_investment > 0 else 0.0
    # sorted() is stable, so ties keep collection order
    winners = sorted(perf, key=lambda p: p['gain'], reverse=True)[:top_n]
    losers = sorted(perf, key=lambda p: p['gain'])[:top_n]
    return {
        'total_cards': sum(p['quantity'] for p in perf),
        'unique_cards': len(perf),
        'total_investment': total_investment,
        'total_value': total_value,
        'total_gain': total_gain,
        'total_roi_percentage': total_roi,
        'top_winners': winners,
        'top_losers': losers,
    }


def price_stats(history: List[Dict[str, Any]], purchase_price: Optional[float]) -> Optional[Dict[str, Any]]:
    """Min/max/average/current over a price series, or None for an empty one."""
    prices = [float(p['price']) for p in history]
    if not prices:
        return None
    current = prices[-1]
    purchase = float(purchase_price or 0.0)
    change = (current - purchase) / purchase * 100 if purchase else 0.0
    return {
        'min': min(prices),
        'max': max(prices),
        'average': sum(prices) / len(prices),
        'current': current,
        'change_percent': change,
    }


def format_change_percent(change: float) -> str:
    return f"{'+' if change >= 0 else ''}{change:.2f}%"

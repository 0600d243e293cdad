import html
from decimal import Decimal
from typing import Iterable, Optional

"""
utils.py
Различные функции утилиты:
- экранирование html
- форматирование цены и остатка для сообщений
"""

def esc(s: Optional[str]) -> str:
    """
    Экранирование строк, для безопасного отображения в HTML
    """
    return html.escape(s) if s else "-"

def format_price(price: Decimal) -> str:
    """
    Цена в формате 1.234,56 (разделители как в исходном прайсе)
    """
    text = f"{price:,.2f}"
    return text.replace(",", " ").replace(".", ",").replace(" ", ".")

def format_codes(codes: Iterable[str], limit: int = 15) -> str:
    """
    Список кодов через запятую, отсортированный, с обрезкой длинного списка
    """
    ordered = sorted(codes)
    if not ordered:
        return "-"
    shown = ", ".join(esc(code) for code in ordered[:limit])
    if len(ordered) > limit:
        shown += f" … (+{len(ordered) - limit})"
    return shown

def truncate(text: str, max_length: int = 60) -> str:
    """
    Обрезает текст для кнопок Telegram
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - 1] + "…"

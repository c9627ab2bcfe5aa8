from datetime import date
from typing import Optional

from finboard.config import get_settings


def _ptbr(text: str) -> str:
    # 1,234.56 -> 1.234,56
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def format_currency(value: float, compact: bool = False, symbol: Optional[str] = None) -> str:
    symbol = symbol if symbol is not None else get_settings().currency_symbol
    sign = "-" if value < 0 else ""
    magnitude = abs(value)

    if compact and magnitude >= 1_000_000:
        return f"{sign}{symbol} {_ptbr(f'{magnitude / 1_000_000:.1f}')} mi"
    if compact and magnitude >= 1_000:
        return f"{sign}{symbol} {_ptbr(f'{magnitude / 1_000:.1f}')} mil"
    return f"{sign}{symbol} {_ptbr(f'{magnitude:,.2f}')}"


def format_percentage(ratio: float) -> str:
    """0.1234 -> '12,34%'"""
    return f"{_ptbr(f'{ratio * 100:,.2f}')}%"


def format_date(value: date) -> str:
    return value.strftime("%d/%m/%Y")

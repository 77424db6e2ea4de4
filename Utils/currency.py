"""Taka (BDT) formatting helpers shared by the PDF receipt and emails."""
import re


def _to_amount(amount) -> float:
    if isinstance(amount, (int, float)):
        return float(amount)
    try:
        return float(amount)
    except (TypeError, ValueError):
        return 0.0


def format_taka(amount) -> str:
    """BDT with two decimals, no grouping (used in tables)."""
    return f"BDT {_to_amount(amount):.2f}"


def format_taka_with_commas(amount) -> str:
    return f"BDT {_to_amount(amount):,.2f}"


def is_valid_taka_amount(amount) -> bool:
    try:
        return float(amount) >= 0
    except (TypeError, ValueError):
        return False


def parse_taka_amount(amount) -> float:
    """Parse '1,250.50', 'BDT 60' or a number; unparseable input gives 0."""
    if isinstance(amount, (int, float)):
        return float(amount)
    cleaned = re.sub(r"[BDT,\s]", "", str(amount or ""))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0

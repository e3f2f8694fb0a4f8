import re
from typing import Optional, Union

CURRENCY_SYMBOL = "Rp"

_NON_DIGITS = re.compile(r"[^0-9]")


def parse_currency(value: Optional[Union[str, int]]) -> int:
    """Return the rupiah amount held in a price string such as ``"Rp 25.500"``.

    Every non-digit character is dropped before parsing, so separators and the
    currency symbol are ignored. Anything without digits counts as zero.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    digits = _NON_DIGITS.sub("", str(value))
    return int(digits) if digits else 0


def format_currency(amount: Union[str, int]) -> str:
    amount = parse_currency(amount)
    grouped = f"{amount:,}".replace(",", ".")
    return f"{CURRENCY_SYMBOL} {grouped}"

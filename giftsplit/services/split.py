"""Even split of a gift total across its participants."""
from __future__ import annotations


def split_evenly(total_cents: int, count: int) -> list[int]:
    """Split ``total_cents`` into ``count`` integer shares.

    Every share is ``total_cents // count``; the first ``total_cents % count``
    shares carry one extra minor unit so the shares always sum to the total.

    >>> split_evenly(1000, 3)
    [334, 333, 333]
    """

    if count <= 0:
        raise ValueError("Cannot split between fewer than one participant.")
    if total_cents < 0:
        raise ValueError("Total amount must be non-negative.")

    base, remainder = divmod(total_cents, count)
    return [base + 1 if index < remainder else base for index in range(count)]


def format_money(amount_cents: int, currency: str) -> str:
    """Render minor units for humans, e.g. ``USD $10.00``."""

    major, minor = divmod(amount_cents, 100)
    return f"{currency.upper()} ${major}.{minor:02d}"


__all__ = ["split_evenly", "format_money"]

"""Category classification for financial records.

Rule, in priority order:

1. ``direction == inbound`` -> ``revenue``
2. commission-type tag -> ``commission``
3. anything else -> ``expense``

The ordering makes the partition exhaustive: a tag added upstream tomorrow
still lands somewhere (``expense``). Tags are compared after
:func:`normalize_tag`, so ``"Comissão"``, ``" comissao "`` and
``"COMMISSION"`` are the same tag.
"""

from __future__ import annotations

import unicodedata

from .models import Category, Direction, FinancialRecord

_COMMISSION_TAGS = frozenset({"comissao", "comissoes", "commission", "commissions"})

# Outbound tags the backend is known to emit (expense_category enum plus the
# generic labels used by older schema versions).
_EXPENSE_TAGS = frozenset(
    {
        "fixo",
        "variavel",
        "extra",
        "imposto",
        "despesa",
        "despesas",
        "expense",
        "saida",
    }
)


def normalize_tag(tag: str | None) -> str:
    """Lowercase, strip accents and drop all whitespace from ``tag``."""

    if not tag:
        return ""
    decomposed = unicodedata.normalize("NFKD", tag)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return "".join(stripped.casefold().split())


def is_commission_tag(tag: str | None) -> bool:
    return normalize_tag(tag) in _COMMISSION_TAGS


def is_recognized_tag(tag: str | None) -> bool:
    """Whether an outbound ``tag`` is one of the known expense/commission tags."""

    norm = normalize_tag(tag)
    return norm in _COMMISSION_TAGS or norm in _EXPENSE_TAGS


def classify(record: FinancialRecord) -> Category:
    if record.direction == Direction.INBOUND:
        return Category.REVENUE
    if is_commission_tag(record.category):
        return Category.COMMISSION
    return Category.EXPENSE


__all__ = ["classify", "is_commission_tag", "is_recognized_tag", "normalize_tag"]

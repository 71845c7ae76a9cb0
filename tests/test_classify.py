from __future__ import annotations

from decimal import Decimal

import pytest

from agency_finance.classify import classify, is_recognized_tag, normalize_tag
from agency_finance.models import Category, Direction, FinancialRecord


def _rec(direction: Direction, tag: str | None) -> FinancialRecord:
    return FinancialRecord(
        id="r1",
        title="x",
        category=tag,
        direction=direction,
        amount=Decimal("1"),
        date="2024-01-01",
    )


@pytest.mark.parametrize("tag", [None, "parcela", "comissao", "fixo", "anything"])
def test_inbound_is_always_revenue(tag):
    assert classify(_rec(Direction.INBOUND, tag)) is Category.REVENUE


@pytest.mark.parametrize("tag", ["comissao", "Comissão", " COMISSAO ", "commission", "Comissões"])
def test_commission_tags(tag):
    assert classify(_rec(Direction.OUTBOUND, tag)) is Category.COMMISSION


@pytest.mark.parametrize("tag", [None, "", "fixo", "variavel", "imposto", "extra", "marketing"])
def test_everything_else_outbound_is_expense(tag):
    assert classify(_rec(Direction.OUTBOUND, tag)) is Category.EXPENSE


def test_partition_is_exhaustive_and_exclusive():
    tags = [None, "", "comissao", "fixo", "new-upstream-tag", "Comissão"]
    for direction in Direction:
        for tag in tags:
            got = classify(_rec(direction, tag))
            assert [c for c in Category if c is got] == [got]


def test_normalize_tag_and_recognition():
    assert normalize_tag("  Variável ") == "variavel"
    assert normalize_tag("Comis são") == "comissao"
    assert is_recognized_tag("Imposto")
    assert is_recognized_tag("comissão")
    assert not is_recognized_tag("marketing")
    assert not is_recognized_tag(None)

# ruff: noqa: I001
"""CRM pipeline helpers: stages, board grouping and stage moves."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.agency import Client
from .logging_setup import get_logger

logger = get_logger("agency_finance.pipeline")


class PipelineStage(StrEnum):
    """Board columns, in display order."""

    RADAR = "radar"
    CONTATO = "contato"
    NEGOCIACAO = "negociacao"
    FECHADO = "fechado"
    PERDIDO = "perdido"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS: dict[PipelineStage, str] = {
    PipelineStage.RADAR: "Radar / Prospecção",
    PipelineStage.CONTATO: "Em Contato",
    PipelineStage.NEGOCIACAO: "Negociação",
    PipelineStage.FECHADO: "Fechado / Assinado",
    PipelineStage.PERDIDO: "Perdido",
}


class _ClientLike(Protocol):
    name: str
    nationality: str | None
    stage: str


C = TypeVar("C", bound=_ClientLike)


def parse_stage(value: str | PipelineStage) -> PipelineStage:
    try:
        return PipelineStage(str(value).strip().lower())
    except ValueError as exc:
        valid = ", ".join(s.value for s in PipelineStage)
        raise ValueError(f"unknown pipeline stage {value!r}; expected one of {valid}") from exc


def filter_clients(
    clients: Iterable[C], search_term: str = "", nationality: str = ""
) -> list[C]:
    """Case-insensitive substring filters on name and nationality.

    Empty filters match everything; a nationality filter excludes clients
    without a nationality.
    """

    term = search_term.strip().casefold()
    nat = nationality.strip().casefold()
    out: list[C] = []
    for c in clients:
        if term and term not in (c.name or "").casefold():
            continue
        if nat and nat not in (c.nationality or "").casefold():
            continue
        out.append(c)
    return out


def group_by_stage(clients: Iterable[C]) -> dict[PipelineStage, list[C]]:
    """Board columns: every stage present, input order kept within a stage."""

    board: dict[PipelineStage, list[C]] = {s: [] for s in PipelineStage}
    for c in clients:
        try:
            stage = PipelineStage(c.stage)
        except ValueError:
            logger.warning("pipeline:unknown_stage stage=%r name=%r", c.stage, c.name)
            continue
        board[stage].append(c)
    return board


def list_clients(session: Session) -> Sequence[Client]:
    """All clients, most recently updated first."""

    stmt = select(Client).order_by(Client.updated_at.desc(), Client.name.asc())
    return session.execute(stmt).scalars().all()


@dataclass(frozen=True, slots=True)
class StageMove:
    client_id: str
    previous: PipelineStage
    current: PipelineStage

    @property
    def changed(self) -> bool:
        return self.previous is not self.current

    @property
    def closed_deal(self) -> bool:
        """The move entered ``fechado``; the contract builder should open."""

        return self.changed and self.current is PipelineStage.FECHADO


def move_client(session: Session, client_id: str, stage: str | PipelineStage) -> StageMove:
    target = parse_stage(stage)
    client = session.get(Client, client_id)
    if client is None:
        raise LookupError(f"client not found: {client_id!r}")
    previous = PipelineStage(client.stage)
    move = StageMove(client_id=client_id, previous=previous, current=target)
    if move.changed:
        client.stage = target.value
        client.updated_at = datetime.now(UTC)
        session.flush()
        logger.info(
            "pipeline:move client=%s from=%s to=%s", client_id, previous.value, target.value
        )
    return move


__all__ = [
    "PipelineStage",
    "parse_stage",
    "filter_clients",
    "group_by_stage",
    "list_clients",
    "StageMove",
    "move_client",
]

from __future__ import annotations
from typing import Iterable

from contracts_domain import Contract, Professor
from contracts_repo import BaseContractsRepo


def attach_professor_names(repo: BaseContractsRepo, contracts: Iterable[Contract]) -> None:
    """Подставляет ФИО профессора тем договорам, где его ещё нет."""
    missing = [c for c in contracts if not c.profesor_nombre]
    if not missing:
        return
    mapping = repo.professor_names([c.profesor_id for c in missing])
    for c in missing:
        if c.profesor_id in mapping:
            c.profesor_nombre = mapping[c.profesor_id]


def professors_by_id(repo: BaseContractsRepo, ids: Iterable[str]) -> dict[str, Professor]:
    out: dict[str, Professor] = {}
    for pid in sorted(set(ids)):
        prof = repo.get_professor(pid)
        if prof is not None:
            out[pid] = prof
    return out

# passports_repo_yaml.py
from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Optional

from contracts_repo import Page
from passports_domain import ImportRecord, Passport
from passports_repo import BasePassportsRepo, PassportFilter, expiry_range
from yaml_store import YamlStore


class PassportsRepoYaml(BasePassportsRepo):
    """Коллекции pasaportes и importaciones_historial в общем YAML-документе."""

    def __init__(self, store: YamlStore) -> None:
        self.store = store

    def transaction(self) -> AbstractContextManager[Any]:
        return self.store.transaction()

    @staticmethod
    def _passport_to_dict(p: Passport) -> dict[str, Any]:
        d = asdict(p)
        d.pop("profesor_nombre", None)
        return d

    def _passports(self) -> list[Passport]:
        return [Passport(**d) for d in self.store.collection("pasaportes")]

    def list_passports(
        self, flt: Optional[PassportFilter], page: int, limit: int, *, today: date
    ) -> Page[Passport]:
        items = [p for p in self._passports() if p.activo]
        if flt:
            lo, hi = expiry_range(flt.estado, today)
            numero = (flt.numero or "").upper()
            items = [
                p for p in items
                if (not flt.profesor_id or p.profesor_id == flt.profesor_id)
                and (not numero or numero in p.numero)
                and (lo is None or p.fecha_vencimiento >= lo)
                and (hi is None or p.fecha_vencimiento <= hi)
            ]
        items.sort(key=lambda p: p.fecha_vencimiento)
        start = (page - 1) * limit
        chunk = items[start:start + limit]
        names = {d["id"]: f"{d['nombre']} {d['apellidos']}".strip()
                 for d in self.store.collection("profesores")}
        for p in chunk:
            p.profesor_nombre = names.get(p.profesor_id)
        return Page(chunk, len(items), page, limit)

    def get_by_numero(self, numero: str) -> Optional[Passport]:
        return next((p for p in self._passports() if p.numero == numero), None)

    def insert_passport(self, passport: Passport) -> Passport:
        with self.store.transaction():
            items = self.store.collection("pasaportes")
            if any(d["numero"] == passport.numero for d in items):
                raise ValueError(f"Duplicado: pasaporte {passport.numero}")
            if passport.created_at is None:
                passport.created_at = datetime.now()
            items.append(self._passport_to_dict(passport))
        return passport

    def insert_import_record(self, record: ImportRecord) -> ImportRecord:
        with self.store.transaction():
            if record.created_at is None:
                record.created_at = datetime.now()
            self.store.collection("importaciones_historial").append(asdict(record))
        return record

    def list_import_records(self, user_id: Optional[str]) -> list[ImportRecord]:
        recs = [ImportRecord(**d) for d in self.store.collection("importaciones_historial")
                if d.get("user_id") == user_id]
        # новые сверху; при равном created_at позже добавленный идёт первым
        recs.reverse()
        recs.sort(key=lambda r: r.created_at or datetime.min, reverse=True)
        return recs

    def get_import_record(self, record_id: str, user_id: Optional[str]) -> Optional[ImportRecord]:
        d = next((x for x in self.store.collection("importaciones_historial")
                  if x.get("id") == record_id and x.get("user_id") == user_id), None)
        return ImportRecord(**d) if d else None

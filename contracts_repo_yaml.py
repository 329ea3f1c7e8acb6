# contracts_repo_yaml.py
from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from contracts_domain import Contract, ContractStatus, Extension, Professor
from contracts_repo import BaseContractsRepo, ContractFilter, Page
from yaml_store import YamlStore

# поля только для отображения: в файл не пишутся
_DISPLAY_FIELDS = ("profesor_nombre", "prorrogas_count")


def _paginate(items: list[Any], page: int, limit: int) -> Page[Any]:
    start = (page - 1) * limit
    return Page(items[start:start + limit], len(items), page, limit)


class ContractsRepoYaml(BaseContractsRepo):
    """Тот же репозиторий поверх YAML-документа; коллекции profesores/contratos/prorrogas."""

    def __init__(self, store: YamlStore) -> None:
        self.store = store

    def transaction(self) -> AbstractContextManager[Any]:
        return self.store.transaction()

    def ping(self) -> bool:
        return self.store.ping()

    # ---------------------------- Маппинг записей ----------------------------

    @staticmethod
    def contract_to_dict(c: Contract) -> dict[str, Any]:
        d = asdict(c)
        for key in _DISPLAY_FIELDS:
            d.pop(key, None)
        if c.salario_mensual is not None:
            d["salario_mensual"] = str(c.salario_mensual)
        return d

    @staticmethod
    def _dict_to_contract(d: dict[str, Any]) -> Contract:
        data = dict(d)
        if data.get("salario_mensual") is not None:
            data["salario_mensual"] = Decimal(str(data["salario_mensual"]))
        return Contract(**data)

    @staticmethod
    def _find(items: list[dict[str, Any]], rid: str) -> Optional[dict[str, Any]]:
        return next((x for x in items if x.get("id") == rid), None)

    def _decorate(self, contracts: list[Contract]) -> list[Contract]:
        names = self.professor_names([c.profesor_id for c in contracts])
        counts: dict[str, int] = {}
        for e in self.store.collection("prorrogas"):
            counts[e["contrato_id"]] = counts.get(e["contrato_id"], 0) + 1
        for c in contracts:
            c.profesor_nombre = names.get(c.profesor_id)
            c.prorrogas_count = counts.get(c.id or "", 0)
        return contracts

    def _filtered(self, flt: Optional[ContractFilter]) -> list[Contract]:
        out = []
        for d in self.store.collection("contratos"):
            c = self._dict_to_contract(d)
            if flt:
                if flt.profesor_id and c.profesor_id != flt.profesor_id: continue
                if flt.pais_id and c.pais_id != flt.pais_id: continue
                if flt.estado and c.estado != flt.estado: continue
                if flt.ano and c.ano != flt.ano: continue
            out.append(c)
        return out

    # ------------------------------ Договоры -------------------------------

    def list_contracts(
        self, flt: Optional[ContractFilter], page: int, limit: int
    ) -> Page[Contract]:
        # новые сверху; при равном created_at позже добавленный идёт первым
        items = list(reversed(self._filtered(flt)))
        items.sort(key=lambda c: c.created_at or datetime.min, reverse=True)
        result = _paginate(items, page, limit)
        self._decorate(result.items)
        return result

    def all_contracts(self, flt: Optional[ContractFilter] = None) -> list[Contract]:
        items = self._filtered(flt)
        items.sort(key=lambda c: (c.ano, c.numero_consecutivo), reverse=True)
        return self._decorate(items)

    def get_contract(self, contrato_id: str, *, for_update: bool = False) -> Optional[Contract]:
        # блокировку даёт транзакция самого хранилища
        d = self._find(self.store.collection("contratos"), contrato_id)
        if d is None:
            return None
        return self._decorate([self._dict_to_contract(d)])[0]

    def contracts_for_professor(
        self, profesor_id: str, estados: tuple[str, ...]
    ) -> list[Contract]:
        return [
            self._dict_to_contract(d)
            for d in self.store.collection("contratos")
            if d["profesor_id"] == profesor_id and d["estado"] in estados
        ]

    def last_consecutive(self, ano: int) -> int:
        nums = [int(d["numero_consecutivo"]) for d in self.store.collection("contratos")
                if int(d["ano"]) == ano]
        return max(nums, default=0)

    def insert_contract(self, contract: Contract) -> Contract:
        with self.store.transaction():
            items = self.store.collection("contratos")
            if any(int(d["numero_consecutivo"]) == contract.numero_consecutivo
                   and int(d["ano"]) == contract.ano for d in items):
                raise ValueError(
                    f"Duplicado: contrato {contract.numero_consecutivo}/{contract.ano}"
                )
            if contract.created_at is None:
                contract.created_at = datetime.now()
            items.append(self.contract_to_dict(contract))
        return contract

    def update_contract(self, contract: Contract) -> Contract:
        with self.store.transaction():
            items = self.store.collection("contratos")
            for i, d in enumerate(items):
                if d.get("id") == contract.id:
                    contract.created_at = d.get("created_at")
                    items[i] = self.contract_to_dict(contract)
                    return contract
        raise ValueError(f"NotFound: {contract.id}")

    def delete_contract(self, contrato_id: str) -> bool:
        with self.store.transaction():
            items = self.store.collection("contratos")
            before = len(items)
            items[:] = [d for d in items if d.get("id") != contrato_id]
            if len(items) == before:
                return False
            # каскад на prórrogas
            exts = self.store.collection("prorrogas")
            exts[:] = [e for e in exts if e.get("contrato_id") != contrato_id]
        return True

    def set_contract_state(
        self, contrato_id: str, fecha_fin: date, estado: ContractStatus
    ) -> None:
        with self.store.transaction():
            d = self._find(self.store.collection("contratos"), contrato_id)
            if d is not None:
                d["fecha_fin"] = fecha_fin
                d["estado"] = estado

    # ------------------------------ Prórrogas ------------------------------

    def extensions_for_contract(self, contrato_id: str) -> list[Extension]:
        exts = [Extension(**d) for d in self.store.collection("prorrogas")
                if d["contrato_id"] == contrato_id]
        return sorted(exts, key=lambda e: e.numero_prorroga)

    def list_extensions(
        self, contrato_id: Optional[str], page: int, limit: int
    ) -> Page[Extension]:
        exts = [Extension(**d) for d in self.store.collection("prorrogas")
                if not contrato_id or d["contrato_id"] == contrato_id]
        exts.sort(key=lambda e: (e.contrato_id, e.numero_prorroga))
        return _paginate(exts, page, limit)

    def get_extension(self, prorroga_id: str) -> Optional[Extension]:
        d = self._find(self.store.collection("prorrogas"), prorroga_id)
        return Extension(**d) if d else None

    def insert_extension(self, extension: Extension) -> Extension:
        with self.store.transaction():
            items = self.store.collection("prorrogas")
            if any(d["contrato_id"] == extension.contrato_id
                   and int(d["numero_prorroga"]) == extension.numero_prorroga for d in items):
                raise ValueError(
                    f"Duplicado: prórroga {extension.numero_prorroga} del contrato {extension.contrato_id}"
                )
            if extension.created_at is None:
                extension.created_at = datetime.now()
            items.append(asdict(extension))
        return extension

    def update_extension(self, extension: Extension) -> Extension:
        with self.store.transaction():
            items = self.store.collection("prorrogas")
            for i, d in enumerate(items):
                if d.get("id") == extension.id:
                    items[i] = asdict(extension)
                    return extension
        raise ValueError(f"NotFound: {extension.id}")

    def delete_extension(self, prorroga_id: str) -> bool:
        with self.store.transaction():
            items = self.store.collection("prorrogas")
            before = len(items)
            items[:] = [d for d in items if d.get("id") != prorroga_id]
            return len(items) < before

    # ------------------------------ Профессора -----------------------------

    def _professors(self) -> list[Professor]:
        return [Professor(**d) for d in self.store.collection("profesores")]

    def get_professor(self, profesor_id: str) -> Optional[Professor]:
        return next((p for p in self._professors() if p.id == profesor_id), None)

    def get_professor_by_ci(self, ci: str) -> Optional[Professor]:
        return next((p for p in self._professors() if p.ci == ci), None)

    def insert_professor(self, professor: Professor) -> Professor:
        with self.store.transaction():
            items = self.store.collection("profesores")
            if any(d["ci"] == professor.ci for d in items):
                raise ValueError(f"Duplicado: CI {professor.ci}")
            if professor.created_at is None:
                professor.created_at = datetime.now()
            items.append(asdict(professor))
        return professor

    def list_professors(self, search: Optional[str], page: int, limit: int) -> Page[Professor]:
        profs = self._professors()
        if search:
            s = search.upper()
            profs = [p for p in profs
                     if s in p.nombre.upper() or s in p.apellidos.upper() or s in p.ci.upper()]
        profs.sort(key=lambda p: (p.apellidos, p.nombre))
        return _paginate(profs, page, limit)

    def find_professor_exact(self, nombre: str, apellidos: str) -> Optional[Professor]:
        n, a = nombre.upper(), apellidos.upper()
        return next(
            (p for p in self._professors() if p.nombre.upper() == n and p.apellidos.upper() == a),
            None,
        )

    def search_professors(
        self, surname_token: str, name_token: str, limit: int = 5
    ) -> list[Professor]:
        s, n = surname_token.upper(), name_token.upper()
        found = [p for p in self._professors()
                 if (s and s in p.apellidos.upper()) or (n and n in p.nombre.upper())]
        return found[:limit]

    def professor_names(self, ids: list[str]) -> dict[str, str]:
        wanted = set(ids)
        return {p.id: p.nombre_completo for p in self._professors() if p.id in wanted and p.id}

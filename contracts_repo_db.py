# contracts_repo_db.py
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from contracts_domain import Contract, ContractStatus, Extension, Professor
from contracts_repo import BaseContractsRepo, ContractFilter, Page
from pg_db import PgDB

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS profesores (
  id UUID PRIMARY KEY,
  ci VARCHAR(20) NOT NULL UNIQUE,
  nombre VARCHAR(100) NOT NULL,
  apellidos VARCHAR(150) NOT NULL,
  created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS contratos (
  id UUID PRIMARY KEY,
  numero_consecutivo INTEGER NOT NULL,
  ano INTEGER NOT NULL,
  profesor_id UUID NOT NULL REFERENCES profesores(id),
  pais_id UUID NOT NULL,
  fecha_inicio DATE NOT NULL,
  fecha_fin DATE NOT NULL,
  fecha_fin_original DATE NOT NULL,
  funcion VARCHAR(200) NOT NULL,
  centro_trabajo VARCHAR(200) NOT NULL,
  direccion_trabajo VARCHAR(300),
  salario_mensual NUMERIC(12, 2),
  moneda VARCHAR(10),
  estado VARCHAR(20) NOT NULL DEFAULT 'ACTIVO'
    CHECK (estado IN ('ACTIVO', 'PRORROGADO', 'CERRADO', 'CANCELADO')),
  observaciones TEXT,
  fecha_cierre DATE,
  motivo_cierre TEXT,
  created_by VARCHAR(64),
  updated_by VARCHAR(64),
  created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
  CONSTRAINT contratos_numero_ano_key UNIQUE (numero_consecutivo, ano),
  CONSTRAINT contratos_fechas_check CHECK (fecha_fin >= fecha_inicio)
);

CREATE TABLE IF NOT EXISTS prorrogas (
  id UUID PRIMARY KEY,
  contrato_id UUID NOT NULL REFERENCES contratos(id) ON DELETE CASCADE,
  numero_prorroga INTEGER NOT NULL,
  fecha_desde DATE NOT NULL,
  fecha_hasta DATE NOT NULL,
  motivo TEXT NOT NULL,
  observaciones TEXT,
  created_by VARCHAR(64),
  created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
  CONSTRAINT prorrogas_contrato_numero_key UNIQUE (contrato_id, numero_prorroga),
  CONSTRAINT prorrogas_fechas_check CHECK (fecha_hasta > fecha_desde)
);

CREATE INDEX IF NOT EXISTS contratos_profesor_idx ON contratos(profesor_id);
CREATE INDEX IF NOT EXISTS prorrogas_contrato_idx ON prorrogas(contrato_id);
"""

# общая часть SELECT для списков договоров
_CONTRACT_SELECT = """
  SELECT c.*,
         TRIM(CONCAT(COALESCE(p.nombre, ''), ' ', COALESCE(p.apellidos, ''))) AS profesor_nombre,
         (SELECT COUNT(*) FROM prorrogas x WHERE x.contrato_id = c.id) AS prorrogas_count
  FROM contratos c
  LEFT JOIN profesores p ON p.id = c.profesor_id
"""


class ContractsRepoDB(BaseContractsRepo):
    def __init__(self, db: PgDB, *, auto_migrate: bool = True) -> None:
        self.db = db
        if auto_migrate:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        self.db.execute(SCHEMA_SQL)
        logger.info("Схема contratos/prorrogas проверена")

    def transaction(self) -> AbstractContextManager[Any]:
        return self.db.transaction()

    def ping(self) -> bool:
        row = self.db.fetch_one("SELECT 1 AS ok")
        return bool(row and row["ok"] == 1)

    # ---------------------------- Маппинг строк ----------------------------

    @staticmethod
    def _row_to_contract(r: dict[str, Any]) -> Contract:
        salario = r.get("salario_mensual")
        return Contract(
            id=str(r["id"]),
            numero_consecutivo=int(r["numero_consecutivo"]), ano=int(r["ano"]),
            profesor_id=str(r["profesor_id"]), pais_id=str(r["pais_id"]),
            fecha_inicio=r["fecha_inicio"], fecha_fin=r["fecha_fin"],
            fecha_fin_original=r["fecha_fin_original"],
            funcion=r["funcion"], centro_trabajo=r["centro_trabajo"],
            direccion_trabajo=r.get("direccion_trabajo"),
            salario_mensual=Decimal(salario) if salario is not None else None,
            moneda=r.get("moneda"), estado=r["estado"],
            observaciones=r.get("observaciones"),
            fecha_cierre=r.get("fecha_cierre"), motivo_cierre=r.get("motivo_cierre"),
            created_by=r.get("created_by"), updated_by=r.get("updated_by"),
            created_at=r.get("created_at"),
            profesor_nombre=r.get("profesor_nombre"),
            prorrogas_count=int(r.get("prorrogas_count") or 0),
        )

    @staticmethod
    def _row_to_extension(r: dict[str, Any]) -> Extension:
        return Extension(
            id=str(r["id"]), contrato_id=str(r["contrato_id"]),
            numero_prorroga=int(r["numero_prorroga"]),
            fecha_desde=r["fecha_desde"], fecha_hasta=r["fecha_hasta"],
            motivo=r["motivo"], observaciones=r.get("observaciones"),
            created_by=r.get("created_by"), created_at=r.get("created_at"),
        )

    @staticmethod
    def _row_to_professor(r: dict[str, Any]) -> Professor:
        return Professor(
            id=str(r["id"]), ci=r["ci"], nombre=r["nombre"],
            apellidos=r["apellidos"], created_at=r.get("created_at"),
        )

    def _where(self, flt: Optional[ContractFilter]) -> tuple[str, list[Any]]:
        if not flt: return "", []
        conds, p = [], []
        if flt.profesor_id: conds += ["c.profesor_id = %s"]; p += [flt.profesor_id]
        if flt.pais_id:     conds += ["c.pais_id = %s"];     p += [flt.pais_id]
        if flt.estado:      conds += ["c.estado = %s"];      p += [flt.estado]
        if flt.ano:         conds += ["c.ano = %s"];         p += [flt.ano]
        return ("WHERE " + " AND ".join(conds), p) if conds else ("", [])

    # ------------------------------ Договоры -------------------------------

    def list_contracts(
        self, flt: Optional[ContractFilter], page: int, limit: int
    ) -> Page[Contract]:
        wsql, p = self._where(flt)
        row = self.db.fetch_one(f"SELECT COUNT(*) AS cnt FROM contratos c {wsql}", p)
        total = int(row["cnt"]) if row else 0
        rows = self.db.fetch_all(
            f"{_CONTRACT_SELECT} {wsql} ORDER BY c.created_at DESC LIMIT %s OFFSET %s",
            p + [limit, (page - 1) * limit],
        )
        return Page([self._row_to_contract(r) for r in rows], total, page, limit)

    def all_contracts(self, flt: Optional[ContractFilter] = None) -> list[Contract]:
        wsql, p = self._where(flt)
        rows = self.db.fetch_all(
            f"{_CONTRACT_SELECT} {wsql} ORDER BY c.ano DESC, c.numero_consecutivo DESC", p
        )
        return [self._row_to_contract(r) for r in rows]

    def get_contract(self, contrato_id: str, *, for_update: bool = False) -> Optional[Contract]:
        if for_update:
            # FOR UPDATE нельзя совместить с агрегатом: блокируем только строку договора
            r = self.db.fetch_one("SELECT * FROM contratos WHERE id = %s FOR UPDATE", [contrato_id])
        else:
            r = self.db.fetch_one(f"{_CONTRACT_SELECT} WHERE c.id = %s", [contrato_id])
        return self._row_to_contract(r) if r else None

    def contracts_for_professor(
        self, profesor_id: str, estados: tuple[str, ...]
    ) -> list[Contract]:
        rows = self.db.fetch_all(
            "SELECT * FROM contratos WHERE profesor_id = %s AND estado = ANY(%s)",
            [profesor_id, list(estados)],
        )
        return [self._row_to_contract(r) for r in rows]

    def last_consecutive(self, ano: int) -> int:
        row = self.db.fetch_one(
            "SELECT COALESCE(MAX(numero_consecutivo), 0) AS mx FROM contratos WHERE ano = %s",
            [ano],
        )
        return int(row["mx"]) if row else 0

    def insert_contract(self, contract: Contract) -> Contract:
        r = self.db.execute_returning("""
          INSERT INTO contratos(id, numero_consecutivo, ano, profesor_id, pais_id,
                 fecha_inicio, fecha_fin, fecha_fin_original, funcion, centro_trabajo,
                 direccion_trabajo, salario_mensual, moneda, estado, observaciones,
                 created_by, updated_by)
          VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s) RETURNING *""",
          [contract.id, contract.numero_consecutivo, contract.ano, contract.profesor_id,
           contract.pais_id, contract.fecha_inicio, contract.fecha_fin,
           contract.fecha_fin_original, contract.funcion, contract.centro_trabajo,
           contract.direccion_trabajo, contract.salario_mensual, contract.moneda,
           contract.estado, contract.observaciones, contract.created_by, contract.updated_by]
        )
        assert r is not None
        return self._row_to_contract(r)

    def update_contract(self, contract: Contract) -> Contract:
        r = self.db.execute_returning("""
          UPDATE contratos SET profesor_id=%s, pais_id=%s, fecha_inicio=%s, fecha_fin=%s,
                 fecha_fin_original=%s, funcion=%s, centro_trabajo=%s, direccion_trabajo=%s,
                 salario_mensual=%s, moneda=%s, estado=%s, observaciones=%s,
                 fecha_cierre=%s, motivo_cierre=%s, updated_by=%s
          WHERE id=%s RETURNING *""",
          [contract.profesor_id, contract.pais_id, contract.fecha_inicio, contract.fecha_fin,
           contract.fecha_fin_original, contract.funcion, contract.centro_trabajo,
           contract.direccion_trabajo, contract.salario_mensual, contract.moneda,
           contract.estado, contract.observaciones, contract.fecha_cierre,
           contract.motivo_cierre, contract.updated_by, contract.id]
        )
        if not r: raise ValueError(f"NotFound: {contract.id}")
        return self._row_to_contract(r)

    def delete_contract(self, contrato_id: str) -> bool:
        # prórrogas удаляются каскадом (ON DELETE CASCADE)
        return self.db.execute("DELETE FROM contratos WHERE id = %s", [contrato_id]) > 0

    def set_contract_state(
        self, contrato_id: str, fecha_fin: date, estado: ContractStatus
    ) -> None:
        self.db.execute(
            "UPDATE contratos SET fecha_fin = %s, estado = %s WHERE id = %s",
            [fecha_fin, estado, contrato_id],
        )

    # ------------------------------ Prórrogas ------------------------------

    def extensions_for_contract(self, contrato_id: str) -> list[Extension]:
        rows = self.db.fetch_all(
            "SELECT * FROM prorrogas WHERE contrato_id = %s ORDER BY numero_prorroga ASC",
            [contrato_id],
        )
        return [self._row_to_extension(r) for r in rows]

    def list_extensions(
        self, contrato_id: Optional[str], page: int, limit: int
    ) -> Page[Extension]:
        wsql, p = ("WHERE contrato_id = %s", [contrato_id]) if contrato_id else ("", [])
        row = self.db.fetch_one(f"SELECT COUNT(*) AS cnt FROM prorrogas {wsql}", p)
        total = int(row["cnt"]) if row else 0
        rows = self.db.fetch_all(
            f"SELECT * FROM prorrogas {wsql} "
            "ORDER BY contrato_id, numero_prorroga ASC LIMIT %s OFFSET %s",
            p + [limit, (page - 1) * limit],
        )
        return Page([self._row_to_extension(r) for r in rows], total, page, limit)

    def get_extension(self, prorroga_id: str) -> Optional[Extension]:
        r = self.db.fetch_one("SELECT * FROM prorrogas WHERE id = %s", [prorroga_id])
        return self._row_to_extension(r) if r else None

    def insert_extension(self, extension: Extension) -> Extension:
        r = self.db.execute_returning("""
          INSERT INTO prorrogas(id, contrato_id, numero_prorroga, fecha_desde, fecha_hasta,
                 motivo, observaciones, created_by)
          VALUES (%s,%s,%s,%s,%s,%s,%s,%s) RETURNING *""",
          [extension.id, extension.contrato_id, extension.numero_prorroga,
           extension.fecha_desde, extension.fecha_hasta, extension.motivo,
           extension.observaciones, extension.created_by]
        )
        assert r is not None
        return self._row_to_extension(r)

    def update_extension(self, extension: Extension) -> Extension:
        r = self.db.execute_returning("""
          UPDATE prorrogas SET fecha_desde=%s, fecha_hasta=%s, motivo=%s, observaciones=%s
          WHERE id=%s RETURNING *""",
          [extension.fecha_desde, extension.fecha_hasta, extension.motivo,
           extension.observaciones, extension.id]
        )
        if not r: raise ValueError(f"NotFound: {extension.id}")
        return self._row_to_extension(r)

    def delete_extension(self, prorroga_id: str) -> bool:
        return self.db.execute("DELETE FROM prorrogas WHERE id = %s", [prorroga_id]) > 0

    # ------------------------------ Профессора -----------------------------

    def get_professor(self, profesor_id: str) -> Optional[Professor]:
        r = self.db.fetch_one("SELECT * FROM profesores WHERE id = %s", [profesor_id])
        return self._row_to_professor(r) if r else None

    def get_professor_by_ci(self, ci: str) -> Optional[Professor]:
        r = self.db.fetch_one("SELECT * FROM profesores WHERE ci = %s", [ci])
        return self._row_to_professor(r) if r else None

    def insert_professor(self, professor: Professor) -> Professor:
        r = self.db.execute_returning(
            "INSERT INTO profesores(id, ci, nombre, apellidos) VALUES (%s,%s,%s,%s) RETURNING *",
            [professor.id, professor.ci, professor.nombre, professor.apellidos],
        )
        assert r is not None
        return self._row_to_professor(r)

    def list_professors(self, search: Optional[str], page: int, limit: int) -> Page[Professor]:
        wsql, p = "", []
        if search:
            wsql = "WHERE nombre ILIKE %s OR apellidos ILIKE %s OR ci ILIKE %s"
            p = [f"%{search}%"] * 3
        row = self.db.fetch_one(f"SELECT COUNT(*) AS cnt FROM profesores {wsql}", p)
        total = int(row["cnt"]) if row else 0
        rows = self.db.fetch_all(
            f"SELECT * FROM profesores {wsql} ORDER BY apellidos, nombre LIMIT %s OFFSET %s",
            p + [limit, (page - 1) * limit],
        )
        return Page([self._row_to_professor(r) for r in rows], total, page, limit)

    def find_professor_exact(self, nombre: str, apellidos: str) -> Optional[Professor]:
        r = self.db.fetch_one(
            "SELECT * FROM profesores WHERE UPPER(nombre) = UPPER(%s) "
            "AND UPPER(apellidos) = UPPER(%s) LIMIT 1",
            [nombre, apellidos],
        )
        return self._row_to_professor(r) if r else None

    def search_professors(
        self, surname_token: str, name_token: str, limit: int = 5
    ) -> list[Professor]:
        rows = self.db.fetch_all(
            "SELECT * FROM profesores WHERE apellidos ILIKE %s OR nombre ILIKE %s LIMIT %s",
            [f"%{surname_token}%", f"%{name_token}%", limit],
        )
        return [self._row_to_professor(r) for r in rows]

    def professor_names(self, ids: list[str]) -> dict[str, str]:
        ids_list = sorted({i for i in ids if i})
        if not ids_list:
            return {}
        rows = self.db.fetch_all(
            """
            SELECT id, TRIM(CONCAT(COALESCE(nombre, ''), ' ', COALESCE(apellidos, ''))) AS fio
            FROM profesores
            WHERE id = ANY(%s::uuid[])
            """,
            [ids_list],
        )
        return {str(r["id"]): (r["fio"] or "") for r in rows}

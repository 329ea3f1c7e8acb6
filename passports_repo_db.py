# passports_repo_db.py
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from datetime import date
from typing import Any, Optional

from psycopg2.extras import Json

from contracts_repo import Page
from passports_domain import ImportRecord, Passport
from passports_repo import BasePassportsRepo, PassportFilter, expiry_range
from pg_db import PgDB

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS pasaportes (
  id UUID PRIMARY KEY,
  profesor_id UUID NOT NULL REFERENCES profesores(id) ON DELETE CASCADE,
  tipo VARCHAR(20) NOT NULL DEFAULT 'ORDINARIO',
  numero VARCHAR(30) NOT NULL UNIQUE,
  numero_archivo VARCHAR(30),
  fecha_expedicion DATE NOT NULL,
  fecha_vencimiento DATE NOT NULL,
  lugar_expedicion VARCHAR(100) NOT NULL,
  observaciones TEXT,
  activo BOOLEAN NOT NULL DEFAULT TRUE,
  created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS importaciones_historial (
  id UUID PRIMARY KEY,
  tipo VARCHAR(30) NOT NULL,
  nombre_archivo VARCHAR(255) NOT NULL,
  total_registros INTEGER NOT NULL,
  exitosos INTEGER NOT NULL,
  errores INTEGER NOT NULL,
  saltados INTEGER NOT NULL,
  detalle JSONB NOT NULL,
  user_id VARCHAR(64),
  created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS importaciones_historial_user_idx ON importaciones_historial(user_id);
"""


class PassportsRepoDB(BasePassportsRepo):
    def __init__(self, db: PgDB, *, auto_migrate: bool = True) -> None:
        self.db = db
        if auto_migrate:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        self.db.execute(SCHEMA_SQL)
        logger.info("Схема pasaportes/importaciones_historial проверена")

    def transaction(self) -> AbstractContextManager[Any]:
        return self.db.transaction()

    @staticmethod
    def _row_to_passport(r: dict[str, Any]) -> Passport:
        return Passport(
            id=str(r["id"]), profesor_id=str(r["profesor_id"]), numero=r["numero"],
            fecha_expedicion=r["fecha_expedicion"], fecha_vencimiento=r["fecha_vencimiento"],
            tipo=r["tipo"], numero_archivo=r.get("numero_archivo"),
            lugar_expedicion=r["lugar_expedicion"], observaciones=r.get("observaciones"),
            activo=bool(r["activo"]), created_at=r.get("created_at"),
            profesor_nombre=r.get("profesor_nombre"),
        )

    @staticmethod
    def _row_to_record(r: dict[str, Any]) -> ImportRecord:
        return ImportRecord(
            id=str(r["id"]), tipo=r["tipo"], nombre_archivo=r["nombre_archivo"],
            total_registros=int(r["total_registros"]), exitosos=int(r["exitosos"]),
            errores=int(r["errores"]), saltados=int(r["saltados"]),
            # JSONB psycopg2 уже разбирает в list[dict]
            detalle=r.get("detalle") or [],
            user_id=r.get("user_id"), created_at=r.get("created_at"),
        )

    def _where(self, flt: Optional[PassportFilter], today: date) -> tuple[str, list[Any]]:
        conds, p = ["s.activo = TRUE"], []
        if flt:
            if flt.profesor_id: conds += ["s.profesor_id = %s"]; p += [flt.profesor_id]
            if flt.numero:      conds += ["s.numero LIKE %s"];   p += [f"%{flt.numero.upper()}%"]
            lo, hi = expiry_range(flt.estado, today)
            if lo: conds += ["s.fecha_vencimiento >= %s"]; p += [lo]
            if hi: conds += ["s.fecha_vencimiento <= %s"]; p += [hi]
        return "WHERE " + " AND ".join(conds), p

    def list_passports(
        self, flt: Optional[PassportFilter], page: int, limit: int, *, today: date
    ) -> Page[Passport]:
        wsql, p = self._where(flt, today)
        row = self.db.fetch_one(f"SELECT COUNT(*) AS cnt FROM pasaportes s {wsql}", p)
        total = int(row["cnt"]) if row else 0
        rows = self.db.fetch_all(
            f"""
            SELECT s.*,
                   TRIM(CONCAT(COALESCE(pr.nombre, ''), ' ', COALESCE(pr.apellidos, ''))) AS profesor_nombre
            FROM pasaportes s
            LEFT JOIN profesores pr ON pr.id = s.profesor_id
            {wsql}
            ORDER BY s.fecha_vencimiento ASC
            LIMIT %s OFFSET %s
            """,
            p + [limit, (page - 1) * limit],
        )
        return Page([self._row_to_passport(r) for r in rows], total, page, limit)

    def get_by_numero(self, numero: str) -> Optional[Passport]:
        r = self.db.fetch_one("SELECT * FROM pasaportes WHERE numero = %s", [numero])
        return self._row_to_passport(r) if r else None

    def insert_passport(self, passport: Passport) -> Passport:
        r = self.db.execute_returning("""
          INSERT INTO pasaportes(id, profesor_id, tipo, numero, numero_archivo,
                 fecha_expedicion, fecha_vencimiento, lugar_expedicion, observaciones, activo)
          VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s,%s) RETURNING *""",
          [passport.id, passport.profesor_id, passport.tipo, passport.numero,
           passport.numero_archivo, passport.fecha_expedicion, passport.fecha_vencimiento,
           passport.lugar_expedicion, passport.observaciones, passport.activo]
        )
        assert r is not None
        return self._row_to_passport(r)

    def insert_import_record(self, record: ImportRecord) -> ImportRecord:
        r = self.db.execute_returning("""
          INSERT INTO importaciones_historial(id, tipo, nombre_archivo, total_registros,
                 exitosos, errores, saltados, detalle, user_id)
          VALUES (%s,%s,%s,%s,%s,%s,%s,%s,%s) RETURNING *""",
          [record.id, record.tipo, record.nombre_archivo, record.total_registros,
           record.exitosos, record.errores, record.saltados, Json(record.detalle),
           record.user_id]
        )
        assert r is not None
        return self._row_to_record(r)

    def list_import_records(self, user_id: Optional[str]) -> list[ImportRecord]:
        rows = self.db.fetch_all(
            "SELECT * FROM importaciones_historial WHERE user_id IS NOT DISTINCT FROM %s "
            "ORDER BY created_at DESC",
            [user_id],
        )
        return [self._row_to_record(r) for r in rows]

    def get_import_record(self, record_id: str, user_id: Optional[str]) -> Optional[ImportRecord]:
        r = self.db.fetch_one(
            "SELECT * FROM importaciones_historial WHERE id = %s "
            "AND user_id IS NOT DISTINCT FROM %s",
            [record_id, user_id],
        )
        return self._row_to_record(r) if r else None

# passport_import.py
from __future__ import annotations

import csv
import io
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional

from openpyxl import load_workbook

from contracts_domain import Professor
from contracts_repo import BaseContractsRepo
from errors import NotFoundError, ValidationError
from passports_domain import (
    CSV_IMPORT,
    EXCEL_IMPORT,
    ImportDetail,
    ImportRecord,
    ImportSummary,
    Passport,
)
from passports_repo import BasePassportsRepo
from validators import normalize_text

logger = logging.getLogger(__name__)

COL_PASSPORT = "Pasaporte #"
COL_FILE_NUMBER = "No. Archivo"
COL_COLLABORATOR = "Colaborador"
COL_EXPIRY = "Fecha Vencimiento"
COL_LOCATION = "Ubicación"

DEFAULT_TYPE = "ORDINARIO"
DEFAULT_PLACE = "HABANA"
DEFAULT_VALIDITY_YEARS = 10
CANDIDATE_LIMIT = 5

_SECTION_RE = re.compile(r"^[A-Z]$")

Row = dict[str, Any]


@dataclass
class ImportResult:
    historial_id: str
    summary: ImportSummary


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # 29 февраля -> 28 февраля
        return d.replace(year=d.year + years, day=28)


def _keep_row(row: Row, index: int) -> bool:
    """Отсекает пустые строки, строки-разделители (A, B, C...) и слишком короткие."""
    passport = _cell_text(row.get(COL_PASSPORT))
    collaborator = _cell_text(row.get(COL_COLLABORATOR))
    is_section = bool(_SECTION_RE.match(passport) or _SECTION_RE.match(collaborator))
    if len(passport) > 1 and len(collaborator) > 3 and not is_section:
        return True
    if not passport and not collaborator:
        reason = "VACIA"
    elif is_section:
        reason = "SECCION"
    elif len(passport) <= 1:
        reason = "PASAPORTE_CORTO"
    else:
        reason = "COLABORADOR_CORTO"
    logger.debug("Строка %s отброшена (%s): %r / %r", index, reason, passport, collaborator)
    return False


def parse_csv(content: bytes) -> list[Row]:
    try:
        text = content.decode("utf-8-sig")
        reader = csv.reader(io.StringIO(text))
        lines = [r for r in reader if any(c.strip() for c in r)]
        if len(lines) < 2:
            raise ValueError("El archivo CSV está vacío o no tiene datos")
        headers = [h.strip() for h in lines[0]]
        rows: list[Row] = []
        for i, values in enumerate(lines[1:], start=1):
            if len(values) != len(headers):
                logger.debug("Строка %s отброшена: %s колонок вместо %s",
                             i, len(values), len(headers))
                continue
            row = {h: v.strip() for h, v in zip(headers, values)}
            if _keep_row(row, i):
                rows.append(row)
        return rows
    except (ValueError, csv.Error) as exc:
        # UnicodeDecodeError тоже ValueError
        raise ValidationError(f"Error al parsear el archivo CSV: {exc}") from None


def parse_excel(content: bytes) -> list[Row]:
    try:
        wb = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        raise ValidationError(f"Error al parsear el archivo Excel: {exc}") from None
    try:
        data: list[tuple[Any, ...]] = []
        sheet_name = ""
        # первый лист, где есть заголовок и хотя бы одна строка
        for ws in wb.worksheets:
            values = [r for r in ws.iter_rows(values_only=True)
                      if r and any(v is not None for v in r)]
            if len(values) >= 2:
                data, sheet_name = values, ws.title
                break
        if not data:
            raise ValidationError(
                "Error al parsear el archivo Excel: "
                "No se encontró ninguna hoja con datos en el archivo Excel"
            )
        headers = [_cell_text(h) for h in data[0]]
        logger.debug("Лист %r: %s строк, колонки: %s", sheet_name, len(data), ", ".join(headers))
        rows: list[Row] = []
        for i, values in enumerate(data[1:], start=1):
            row: Row = {}
            for idx, h in enumerate(headers):
                v = values[idx] if idx < len(values) else None
                row[h] = v if isinstance(v, (date, datetime)) else _cell_text(v)
            if _keep_row(row, i):
                rows.append(row)
        return rows
    finally:
        wb.close()


def parse_expiry(value: Any) -> Optional[date]:
    """
    Дата окончания: дата из таблицы либо строка M/D/YYYY.
    Пустое значение -> None, неверный формат -> ValueError.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _cell_text(value)
    if not text:
        return None
    parts = text.split("/")
    if len(parts) != 3:
        raise ValueError(text)
    month, day, year = (int(p) for p in parts)
    return date(year, month, day)


class PassportImporter:
    """
    Массовая загрузка паспортов из CSV/Excel. Каждая строка обрабатывается
    отдельно: ошибка в одной строке не останавливает остальные.
    """

    def __init__(
        self,
        passports: BasePassportsRepo,
        contracts: BaseContractsRepo,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.passports = passports
        self.contracts = contracts
        self.today = today

    # ------------------------------ Профессор ------------------------------

    def find_professor(self, collaborator: str) -> Optional[Professor]:
        """Колонка «APELLIDO1 APELLIDO2, NOMBRE»."""
        parts = collaborator.split(",")
        if len(parts) != 2:
            return None
        apellidos, nombre = parts[0].strip(), parts[1].strip()
        if not apellidos or not nombre:
            return None

        prof = self.contracts.find_professor_exact(nombre, apellidos)
        if prof is not None:
            logger.debug("Профессор найден (точно): %s", prof.nombre_completo)
            return prof

        candidates = self.contracts.search_professors(
            apellidos.split()[0], nombre.split()[0], CANDIDATE_LIMIT
        )
        csv_surnames = normalize_text(apellidos).split(" ")
        csv_name = normalize_text(nombre)
        for cand in candidates:
            db_surnames = normalize_text(cand.apellidos).split(" ")
            db_name = normalize_text(cand.nombre)
            surname_match = any(s in db_surnames for s in csv_surnames)
            name_match = csv_name in db_name or db_name in csv_name
            if surname_match and name_match:
                logger.debug("Профессор найден (кандидат): %s", cand.nombre_completo)
                return cand
        logger.debug("Профессор не найден для %r", collaborator)
        return None

    # ------------------------------- Строка --------------------------------

    def process_row(self, row: Row, fila: int) -> ImportDetail:
        numero = _cell_text(row.get(COL_PASSPORT))
        archivo = _cell_text(row.get(COL_FILE_NUMBER))
        collaborator = _cell_text(row.get(COL_COLLABORATOR))
        location = _cell_text(row.get(COL_LOCATION))

        if not numero:
            return ImportDetail(fila, "N/A", collaborator or "N/A", "ERROR",
                                "Número de pasaporte vacío")
        if not collaborator:
            return ImportDetail(fila, numero, "N/A", "ERROR", "Nombre del colaborador vacío")

        existing = self.passports.get_by_numero(numero)
        if existing is not None:
            return ImportDetail(
                fila, numero, collaborator, "SALTADO",
                f"Pasaporte {numero} ya existe en el sistema y fue saltado.",
                razon_salto="EXISTENTE", pasaporte_id=existing.id,
            )

        prof = self.find_professor(collaborator)
        if prof is None:
            return ImportDetail(
                fila, numero, collaborator, "SALTADO",
                f'Profesor "{collaborator}" no existe en Potencial. '
                "Crear el profesor primero para importar este pasaporte.",
                razon_salto="SIN_PROFESOR",
            )

        raw_expiry = row.get(COL_EXPIRY)
        try:
            expiry = parse_expiry(raw_expiry)
        except ValueError:
            return ImportDetail(
                fila, numero, collaborator, "ERROR",
                f"Fecha de vencimiento inválida: {_cell_text(raw_expiry)}. "
                "Formato esperado: MM/DD/YYYY",
            )

        today = self.today()
        passport = self.passports.insert_passport(Passport(
            id=str(uuid.uuid4()),
            profesor_id=prof.id or "",
            numero=numero,
            tipo=DEFAULT_TYPE,
            numero_archivo=archivo or None,
            fecha_expedicion=today,
            fecha_vencimiento=expiry or _add_years(today, DEFAULT_VALIDITY_YEARS),
            lugar_expedicion=DEFAULT_PLACE,
            observaciones=f"Ubicación: {location}" if location else None,
            activo=True,
        ))
        return ImportDetail(
            fila, numero, collaborator, "EXITO",
            f"Pasaporte {numero} creado exitosamente para {collaborator}",
            pasaporte_id=passport.id,
        )

    # ------------------------------- Пакет --------------------------------

    def _run(self, rows: list[Row], tipo: str, file_name: str,
             user_id: Optional[str]) -> ImportResult:
        summary = ImportSummary()
        for i, row in enumerate(rows):
            fila = i + 2  # строка 1 = заголовок
            try:
                detail = self.process_row(row, fila)
            except Exception as exc:
                logger.warning("Строка %s: ошибка импорта: %s", fila, exc)
                detail = ImportDetail(
                    fila,
                    _cell_text(row.get(COL_PASSPORT)) or "N/A",
                    _cell_text(row.get(COL_COLLABORATOR)) or "N/A",
                    "ERROR",
                    str(exc) or "Error desconocido",
                )
            summary.add(detail)

        record = self.passports.insert_import_record(ImportRecord(
            id=str(uuid.uuid4()),
            tipo=tipo,
            nombre_archivo=file_name,
            total_registros=len(rows),
            exitosos=summary.exitosos,
            errores=summary.errores,
            saltados=summary.total_saltados,
            detalle=[d.to_dict() for d in summary.detalles],
            user_id=user_id,
        ))
        logger.info("Импорт %s из %r: успешно %s, ошибок %s, пропущено %s",
                    tipo, file_name, summary.exitosos, summary.errores, summary.total_saltados)
        return ImportResult(historial_id=record.id or "", summary=summary)

    def import_csv(self, content: bytes, file_name: str, user_id: Optional[str]) -> ImportResult:
        return self._run(parse_csv(content), CSV_IMPORT, file_name, user_id)

    def import_excel(self, content: bytes, file_name: str, user_id: Optional[str]) -> ImportResult:
        return self._run(parse_excel(content), EXCEL_IMPORT, file_name, user_id)

    # ------------------------------ История -------------------------------

    def history(self, user_id: Optional[str]) -> list[ImportRecord]:
        return self.passports.list_import_records(user_id)

    def history_detail(self, record_id: str, user_id: Optional[str]) -> ImportRecord:
        record = self.passports.get_import_record(record_id, user_id)
        if record is None:
            raise NotFoundError("Historial no encontrado o no tiene permisos para verlo")
        return record

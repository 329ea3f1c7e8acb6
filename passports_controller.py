from __future__ import annotations

import re
from datetime import date
from typing import Callable
from urllib.parse import unquote

from dto import parse_paging, parse_passport_filter
from errors import ValidationError
from http_utils import _qs, current_user, json_response, read_body
from passport_import import ImportResult, PassportImporter
from passports_repo import BasePassportsRepo
from validators import Validator

CSV_MAX_BYTES = 5 * 1024 * 1024
EXCEL_MAX_BYTES = 10 * 1024 * 1024

_CSV_NAME_RE = re.compile(r"\.(csv|txt)$", re.IGNORECASE)
_EXCEL_NAME_RE = re.compile(r"\.xlsx$", re.IGNORECASE)


def _uploaded_file(environ, name_re: re.Pattern[str], bad_name_msg: str,
                   max_bytes: int) -> tuple[bytes, str]:
    """Файл приходит телом запроса, имя в заголовке X-File-Name."""
    content = read_body(environ)
    if not content:
        raise ValidationError("No se ha proporcionado ningún archivo")
    if len(content) > max_bytes:
        raise ValidationError("El archivo excede el tamaño máximo permitido")
    file_name = unquote(environ.get("HTTP_X_FILE_NAME", "")).strip()
    if not name_re.search(file_name):
        raise ValidationError(bad_name_msg)
    return content, file_name


def _import_body(message: str, result: ImportResult) -> dict:
    return {
        "message": message,
        "historialId": result.historial_id,
        "resumen": result.summary.to_dict(),
        "detalles": [d.to_dict() for d in result.summary.detalles],
    }


class PassportsController:
    def __init__(
        self,
        repo: BasePassportsRepo,
        importer: PassportImporter,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.repo = repo
        self.importer = importer
        self.today = today

    # ===== list =====
    def index(self, environ, start_response):
        q = _qs(environ)
        page, limit = parse_paging(q)
        flt = parse_passport_filter(q)
        result = self.repo.list_passports(flt, page, limit, today=self.today())
        return json_response(start_response, 200, result.to_dict())

    # ===== import =====
    def import_csv(self, environ, start_response):
        content, name = _uploaded_file(
            environ, _CSV_NAME_RE, "Solo se permiten archivos CSV", CSV_MAX_BYTES
        )
        result = self.importer.import_csv(content, name, current_user(environ))
        return json_response(start_response, 201, _import_body("Importación completada", result))

    def import_excel(self, environ, start_response):
        content, name = _uploaded_file(
            environ, _EXCEL_NAME_RE, "Solo se permiten archivos Excel (.xlsx)", EXCEL_MAX_BYTES
        )
        result = self.importer.import_excel(content, name, current_user(environ))
        return json_response(
            start_response, 201, _import_body("Importación Excel completada", result)
        )

    # ===== history =====
    def history(self, environ, start_response):
        records = self.importer.history(current_user(environ))
        return json_response(start_response, 200, [r.to_dict(with_detail=False) for r in records])

    def history_detail(self, environ, start_response, id: str):
        record = self.importer.history_detail(Validator.path_uuid(id), current_user(environ))
        return json_response(start_response, 200, record.to_dict())

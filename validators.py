import re
import unicodedata
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from errors import ValidationError

_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)


class Validator:
    """Общий класс валидации для полей запросов."""

    @staticmethod
    def require_non_empty(name: str, value: Any) -> str:
        """Поле обязательно и не может быть пустой строкой."""
        if value is None:
            raise ValidationError(f"{name} es requerido")
        if not isinstance(value, str):
            raise ValidationError(f"{name} debe ser un texto")
        v = value.strip()
        if not v:
            raise ValidationError(f"{name} no puede estar vacío")
        return v

    @staticmethod
    def optional_text(name: str, value: Any) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(f"{name} debe ser un texto")
        v = value.strip()
        return v or None

    @staticmethod
    def uuid(name: str, value: Any) -> str:
        v = Validator.require_non_empty(name, value)
        if not _UUID_RE.fullmatch(v):
            raise ValidationError(f"{name} debe ser un UUID")
        return v.lower()

    @staticmethod
    def path_uuid(value: str) -> str:
        """id из пути: только UUID, иначе 400."""
        if not _UUID_RE.fullmatch(value or ""):
            raise ValidationError("Validation failed (uuid is expected)")
        return value.lower()

    @staticmethod
    def iso_date(name: str, value: Any) -> date:
        """
        Дата в формате ГГГГ-ММ-ДД. Полный ISO datetime тоже принимаем
        (время отбрасываем), как это делает фронтенд при отправке Date.
        """
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        v = Validator.require_non_empty(name, value)
        try:
            # ISO datetime с "Z" разбирается начиная с Python 3.11
            return datetime.fromisoformat(v).date()
        except ValueError:
            raise ValidationError(
                f"{name} debe ser una fecha válida (AAAA-MM-DD): {v}"
            ) from None

    @staticmethod
    def decimal_2(name: str, value: Any) -> Optional[Decimal]:
        """Сумма с не более чем двумя знаками после запятой."""
        if value is None or value == "":
            return None
        try:
            d = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{name} debe ser un número decimal") from None
        if not d.is_finite():
            raise ValidationError(f"{name} debe ser un número decimal")
        exponent = d.as_tuple().exponent
        if isinstance(exponent, int) and exponent < -2:
            raise ValidationError(f"{name} admite como máximo 2 decimales")
        if d < 0:
            raise ValidationError(f"{name} no puede ser negativo")
        return d

    @staticmethod
    def positive_int(value: str, default: int) -> int:
        try:
            v = int(value)
            return v if v > 0 else default
        except (TypeError, ValueError):
            return default

    @staticmethod
    def reject_unknown(payload: dict[str, Any], allowed: set[str]) -> None:
        for key in payload:
            if key not in allowed:
                raise ValidationError(f"property {key} should not exist")


def normalize_text(text: Optional[str]) -> str:
    """Верхний регистр, без диакритики, без лишних пробелов."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.upper())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return re.sub(r"\s+", " ", stripped).strip()


def date_ranges_overlap(start1: date, end1: date, start2: date, end2: date) -> bool:
    return start1 <= end2 and end1 >= start2

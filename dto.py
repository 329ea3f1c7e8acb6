# dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from contracts_domain import CONTRACT_STATUSES
from contracts_repo import ContractFilter
from errors import ValidationError
from http_utils import _first
from passports_repo import EXPIRY_STATES, PassportFilter
from validators import Validator

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10


@dataclass(frozen=True)
class ContractRequest:
    """Тело POST /contratos и PUT /contratos/:id (замена целиком)."""

    profesor_id: str
    pais_id: str
    fecha_inicio: date
    fecha_fin: date
    funcion: str
    centro_trabajo: str
    direccion_trabajo: Optional[str] = None
    salario_mensual: Optional[Decimal] = None
    moneda: Optional[str] = None
    observaciones: Optional[str] = None

    FIELDS = frozenset({
        "profesorId", "paisId", "fechaInicio", "fechaFin", "funcion", "centroTrabajo",
        "direccionTrabajo", "salarioMensual", "moneda", "observaciones",
    })

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ContractRequest:
        Validator.reject_unknown(payload, cls.FIELDS)
        req = cls(
            profesor_id=Validator.uuid("profesorId", payload.get("profesorId")),
            pais_id=Validator.uuid("paisId", payload.get("paisId")),
            fecha_inicio=Validator.iso_date("fechaInicio", payload.get("fechaInicio")),
            fecha_fin=Validator.iso_date("fechaFin", payload.get("fechaFin")),
            funcion=Validator.require_non_empty("funcion", payload.get("funcion")),
            centro_trabajo=Validator.require_non_empty("centroTrabajo", payload.get("centroTrabajo")),
            direccion_trabajo=Validator.optional_text("direccionTrabajo", payload.get("direccionTrabajo")),
            salario_mensual=Validator.decimal_2("salarioMensual", payload.get("salarioMensual")),
            moneda=Validator.optional_text("moneda", payload.get("moneda")),
            observaciones=Validator.optional_text("observaciones", payload.get("observaciones")),
        )
        if req.fecha_fin <= req.fecha_inicio:
            raise ValidationError("La fecha de fin debe ser posterior a la fecha de inicio")
        return req


@dataclass(frozen=True)
class CloseContractRequest:
    fecha_cierre: date
    motivo_cierre: str

    FIELDS = frozenset({"fechaCierre", "motivoCierre"})

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> CloseContractRequest:
        Validator.reject_unknown(payload, cls.FIELDS)
        return cls(
            fecha_cierre=Validator.iso_date("fechaCierre", payload.get("fechaCierre")),
            motivo_cierre=Validator.require_non_empty("motivoCierre", payload.get("motivoCierre")),
        )


@dataclass(frozen=True)
class ExtensionRequest:
    """
    Тело POST /prorrogas и PUT /prorrogas/:id.
    Порядок дат проверяется сразу, до обращения к хранилищу.
    """

    contrato_id: str
    fecha_desde: date
    fecha_hasta: date
    motivo: str
    observaciones: Optional[str] = None

    FIELDS = frozenset({"contratoId", "fechaDesde", "fechaHasta", "motivo", "observaciones"})

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ExtensionRequest:
        Validator.reject_unknown(payload, cls.FIELDS)
        req = cls(
            contrato_id=Validator.uuid("contratoId", payload.get("contratoId")),
            fecha_desde=Validator.iso_date("fechaDesde", payload.get("fechaDesde")),
            fecha_hasta=Validator.iso_date("fechaHasta", payload.get("fechaHasta")),
            motivo=Validator.require_non_empty("motivo", payload.get("motivo")),
            observaciones=Validator.optional_text("observaciones", payload.get("observaciones")),
        )
        if req.fecha_hasta <= req.fecha_desde:
            raise ValidationError("La fecha de fin debe ser posterior a la fecha de inicio")
        return req


@dataclass(frozen=True)
class ProfessorRequest:
    ci: str
    nombre: str
    apellidos: str

    FIELDS = frozenset({"ci", "nombre", "apellidos"})

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ProfessorRequest:
        Validator.reject_unknown(payload, cls.FIELDS)
        ci = Validator.require_non_empty("ci", payload.get("ci"))
        if len(ci) != 11:
            raise ValidationError("El CI debe tener 11 caracteres")
        return cls(
            ci=ci,
            nombre=Validator.require_non_empty("nombre", payload.get("nombre")),
            apellidos=Validator.require_non_empty("apellidos", payload.get("apellidos")),
        )


# ----------------------------- Параметры запроса -----------------------------

def parse_paging(q: Dict[str, list[str]]) -> tuple[int, int]:
    page = Validator.positive_int(_first(q, "page"), DEFAULT_PAGE)
    limit = Validator.positive_int(_first(q, "limit"), DEFAULT_LIMIT)
    return page, limit


def _optional_uuid(q: Dict[str, list[str]], key: str) -> Optional[str]:
    raw = _first(q, key).strip()
    return Validator.uuid(key, raw) if raw else None


def parse_contract_filter(q: Dict[str, list[str]]) -> ContractFilter:
    estado = _first(q, "estado").strip().upper() or None
    if estado and estado not in CONTRACT_STATUSES:
        raise ValidationError(f"estado debe ser uno de: {', '.join(CONTRACT_STATUSES)}")
    ano_raw = _first(q, "ano").strip()
    if ano_raw and not ano_raw.isdigit():
        raise ValidationError("ano debe ser un número")
    return ContractFilter(
        profesor_id=_optional_uuid(q, "profesorId"),
        pais_id=_optional_uuid(q, "paisId"),
        estado=estado,
        ano=int(ano_raw) if ano_raw else None,
    )


def parse_passport_filter(q: Dict[str, list[str]]) -> PassportFilter:
    estado = _first(q, "estado").strip().lower() or None
    if estado and estado not in EXPIRY_STATES:
        raise ValidationError(f"estado debe ser uno de: {', '.join(EXPIRY_STATES)}")
    return PassportFilter(
        profesor_id=_optional_uuid(q, "profesorId"),
        numero=_first(q, "numero").strip() or None,
        estado=estado,
    )


def parse_contract_id(q: Dict[str, list[str]]) -> Optional[str]:
    return _optional_uuid(q, "contratoId")

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Literal, Optional

ContractStatus = Literal["ACTIVO", "PRORROGADO", "CERRADO", "CANCELADO"]

ACTIVE: ContractStatus = "ACTIVO"
EXTENDED: ContractStatus = "PRORROGADO"
CLOSED: ContractStatus = "CERRADO"
CANCELLED: ContractStatus = "CANCELADO"

CONTRACT_STATUSES: tuple[str, ...] = (ACTIVE, EXTENDED, CLOSED, CANCELLED)
# с такими статусами prórrogas не создаются, не меняются и не удаляются
LOCKED_STATUSES: frozenset[str] = frozenset({CLOSED, CANCELLED})
STATUS_LABELS: dict[str, str] = {CLOSED: "cerrado", CANCELLED: "cancelado"}


def _iso(d: date | datetime | None) -> Optional[str]:
    return d.isoformat() if d else None


@dataclass(slots=True)
class Professor:
    id: Optional[str]
    ci: str
    nombre: str
    apellidos: str
    created_at: Optional[datetime] = None

    @property
    def nombre_completo(self) -> str:
        return f"{self.nombre} {self.apellidos}".strip()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ci": self.ci,
            "nombre": self.nombre,
            "apellidos": self.apellidos,
            "createdAt": _iso(self.created_at),
        }


@dataclass(slots=True)
class Contract:
    id: Optional[str]
    numero_consecutivo: int
    ano: int
    profesor_id: str
    pais_id: str
    fecha_inicio: date
    fecha_fin: date
    fecha_fin_original: date
    funcion: str
    centro_trabajo: str
    direccion_trabajo: Optional[str] = None
    salario_mensual: Optional[Decimal] = None
    moneda: Optional[str] = None
    estado: ContractStatus = ACTIVE
    observaciones: Optional[str] = None
    fecha_cierre: Optional[date] = None
    motivo_cierre: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    # только для отображения, в таблицу не пишется
    profesor_nombre: Optional[str] = None
    prorrogas_count: int = 0

    @property
    def numero(self) -> str:
        return f"{self.numero_consecutivo}/{self.ano}"

    @property
    def is_locked(self) -> bool:
        return self.estado in LOCKED_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "numero": self.numero,
            "numeroConsecutivo": self.numero_consecutivo,
            "ano": self.ano,
            "profesorId": self.profesor_id,
            "profesor": self.profesor_nombre,
            "paisId": self.pais_id,
            "fechaInicio": _iso(self.fecha_inicio),
            "fechaFin": _iso(self.fecha_fin),
            "fechaFinOriginal": _iso(self.fecha_fin_original),
            "funcion": self.funcion,
            "centroTrabajo": self.centro_trabajo,
            "direccionTrabajo": self.direccion_trabajo,
            "salarioMensual": str(self.salario_mensual) if self.salario_mensual is not None else None,
            "moneda": self.moneda,
            "estado": self.estado,
            "observaciones": self.observaciones,
            "fechaCierre": _iso(self.fecha_cierre),
            "motivoCierre": self.motivo_cierre,
            "createdBy": self.created_by,
            "updatedBy": self.updated_by,
            "createdAt": _iso(self.created_at),
            "prorrogasCount": self.prorrogas_count,
        }


@dataclass(slots=True)
class Extension:
    id: Optional[str]
    contrato_id: str
    numero_prorroga: int
    fecha_desde: date
    fecha_hasta: date
    motivo: str
    observaciones: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "contratoId": self.contrato_id,
            "numeroProrroga": self.numero_prorroga,
            "fechaDesde": _iso(self.fecha_desde),
            "fechaHasta": _iso(self.fecha_hasta),
            "motivo": self.motivo,
            "observaciones": self.observaciones,
            "createdBy": self.created_by,
            "createdAt": _iso(self.created_at),
        }


@dataclass(frozen=True, slots=True)
class ContractState:
    fecha_fin: date
    estado: ContractStatus


def last_extension(extensions: Iterable[Extension]) -> Optional[Extension]:
    """Последняя prórroga: с максимальным номером, других критериев нет."""
    return max(extensions, key=lambda e: e.numero_prorroga, default=None)


def derive_contract_state(extensions: Iterable[Extension], base_end_date: date) -> ContractState:
    """
    Фактическая дата окончания и статус договора по его prórrogas.
    Без prórrogas: исходная дата и ACTIVO, иначе дата «по» последней и PRORROGADO.
    """
    last = last_extension(extensions)
    if last is None:
        return ContractState(fecha_fin=base_end_date, estado=ACTIVE)
    return ContractState(fecha_fin=last.fecha_hasta, estado=EXTENDED)


def next_extension_number(extensions: Iterable[Extension]) -> int:
    return sum(1 for _ in extensions) + 1

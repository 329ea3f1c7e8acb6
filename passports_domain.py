from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal, Optional

ImportOutcome = Literal["EXITO", "ERROR", "SALTADO"]
SkipReason = Literal["EXISTENTE", "SIN_PROFESOR"]

CSV_IMPORT = "PASAPORTES"
EXCEL_IMPORT = "PASAPORTES_EXCEL"


@dataclass(slots=True)
class Passport:
    id: Optional[str]
    profesor_id: str
    numero: str
    fecha_expedicion: date
    fecha_vencimiento: date
    tipo: str = "ORDINARIO"
    numero_archivo: Optional[str] = None
    lugar_expedicion: str = "HABANA"
    observaciones: Optional[str] = None
    activo: bool = True
    created_at: Optional[datetime] = None
    profesor_nombre: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "profesorId": self.profesor_id,
            "profesor": self.profesor_nombre,
            "tipo": self.tipo,
            "numero": self.numero,
            "numeroArchivo": self.numero_archivo,
            "fechaExpedicion": self.fecha_expedicion.isoformat(),
            "fechaVencimiento": self.fecha_vencimiento.isoformat(),
            "lugarExpedicion": self.lugar_expedicion,
            "observaciones": self.observaciones,
            "activo": self.activo,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(slots=True)
class ImportDetail:
    fila: int
    numero_pasaporte: str
    colaborador: str
    estado: ImportOutcome
    mensaje: str
    razon_salto: Optional[SkipReason] = None
    pasaporte_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "fila": self.fila,
            "numeroPasaporte": self.numero_pasaporte,
            "colaborador": self.colaborador,
            "estado": self.estado,
            "mensaje": self.mensaje,
        }
        if self.razon_salto:
            out["razonSalto"] = self.razon_salto
        if self.pasaporte_id:
            out["pasaporteId"] = self.pasaporte_id
        return out


@dataclass
class ImportSummary:
    exitosos: int = 0
    errores: int = 0
    saltados_existentes: int = 0
    saltados_sin_profesor: int = 0
    detalles: list[ImportDetail] = field(default_factory=list)

    @property
    def total_saltados(self) -> int:
        return self.saltados_existentes + self.saltados_sin_profesor

    @property
    def total(self) -> int:
        return self.exitosos + self.errores + self.total_saltados

    def add(self, detail: ImportDetail) -> None:
        self.detalles.append(detail)
        if detail.estado == "EXITO":
            self.exitosos += 1
        elif detail.estado == "SALTADO":
            if detail.razon_salto == "SIN_PROFESOR":
                self.saltados_sin_profesor += 1
            else:
                self.saltados_existentes += 1
        else:
            self.errores += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "exitosos": self.exitosos,
            "errores": self.errores,
            "saltados": {
                "total": self.total_saltados,
                "existentes": self.saltados_existentes,
                "sinProfesor": self.saltados_sin_profesor,
            },
        }


@dataclass(slots=True)
class ImportRecord:
    """Запись истории импорта; видна только загрузившему пользователю."""

    id: Optional[str]
    tipo: str
    nombre_archivo: str
    total_registros: int
    exitosos: int
    errores: int
    saltados: int
    detalle: list[dict[str, Any]]
    user_id: Optional[str]
    created_at: Optional[datetime] = None

    def to_dict(self, *, with_detail: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "tipo": self.tipo,
            "nombreArchivo": self.nombre_archivo,
            "totalRegistros": self.total_registros,
            "exitosos": self.exitosos,
            "errores": self.errores,
            "saltados": self.saltados,
            "userId": self.user_id,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if with_detail:
            out["detalle"] = self.detalle
        return out

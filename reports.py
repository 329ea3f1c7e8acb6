# reports.py
from __future__ import annotations

import io
from datetime import date
from typing import Any, Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from contracts_domain import Contract, Extension, Professor

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MIME = "application/pdf"

DATE_FORMAT = "dd/mm/yyyy"

header_fill = PatternFill(start_color="E0E0E0", end_color="E0E0E0", fill_type="solid")
header_font = Font(bold=True)

CONTRACT_COLUMNS = [
    ("Número", 15), ("Profesor", 30), ("CI", 15), ("País", 20),
    ("Fecha Inicio", 15), ("Fecha Fin", 15), ("Función", 25),
    ("Centro de Trabajo", 25), ("Estado", 15), ("Salario", 15),
]

EXTENSION_COLUMNS = [
    ("Contrato", 15), ("Prórroga N°", 12), ("Profesor", 30), ("CI", 15),
    ("País", 20), ("Fecha Desde", 15), ("Fecha Hasta", 15), ("Función", 25),
    ("Motivo", 40), ("Salario Contrato", 18),
]


def _sheet(wb: Workbook, title: str, columns: list[tuple[str, int]]):
    ws = wb.active
    ws.title = title
    ws.append([name for name, _ in columns])
    for idx, (_, width) in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=idx)
        cell.font = header_font
        cell.fill = header_fill
        ws.column_dimensions[get_column_letter(idx)].width = width
    return ws


def _append(ws, values: list[Any]) -> None:
    ws.append(values)
    for cell in ws[ws.max_row]:
        if isinstance(cell.value, date):
            cell.number_format = DATE_FORMAT


def _to_bytes(wb: Workbook) -> bytes:
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _salary(c: Contract) -> Optional[float]:
    return float(c.salario_mensual) if c.salario_mensual is not None else None


def contracts_workbook(
    contracts: Iterable[Contract], professors: Optional[dict[str, Professor]] = None
) -> bytes:
    professors = professors or {}
    wb = Workbook()
    ws = _sheet(wb, "Contratos", CONTRACT_COLUMNS)
    for c in contracts:
        prof = professors.get(c.profesor_id)
        _append(ws, [
            c.numero, c.profesor_nombre or "", prof.ci if prof else "", c.pais_id,
            c.fecha_inicio, c.fecha_fin, c.funcion, c.centro_trabajo, c.estado, _salary(c),
        ])
    return _to_bytes(wb)


def extensions_workbook(
    rows: Iterable[tuple[Contract, Extension]],
    professors: Optional[dict[str, Professor]] = None,
) -> bytes:
    professors = professors or {}
    wb = Workbook()
    ws = _sheet(wb, "Prórrogas", EXTENSION_COLUMNS)
    for c, e in rows:
        prof = professors.get(c.profesor_id)
        _append(ws, [
            c.numero, e.numero_prorroga, c.profesor_nombre or "", prof.ci if prof else "",
            c.pais_id, e.fecha_desde, e.fecha_hasta, c.funcion, e.motivo, _salary(c),
        ])
    return _to_bytes(wb)


def _fmt(d: date) -> str:
    return d.strftime("%d/%m/%Y")


def extension_supplement_pdf(
    contract: Contract,
    extension: Extension,
    professor: Optional[Professor] = None,
    *,
    today: Optional[date] = None,
) -> bytes:
    """Suplemento de prórroga: одна страница с данными договора и prórroga."""
    buffer = io.BytesIO()
    p = canvas.Canvas(buffer, pagesize=letter)
    _, height = letter
    margin = 50
    y = height - 60

    p.setFont("Helvetica-Bold", 16)
    p.drawString(margin, y, "SUPLEMENTO DE PRÓRROGA")
    y -= 22
    p.setFont("Helvetica", 10)
    p.drawString(margin, y, f"La Habana, {_fmt(today or date.today())}")
    y -= 36

    def section(title: str) -> None:
        nonlocal y
        p.setFont("Helvetica-Bold", 12)
        p.drawString(margin, y, title)
        y -= 20

    def field(label: str, value: Optional[str]) -> None:
        nonlocal y
        p.setFont("Helvetica-Bold", 10)
        p.drawString(margin, y, f"{label}:")
        p.setFont("Helvetica", 10)
        p.drawString(margin + 180, y, value or "N/A")
        y -= 16

    section("DATOS DEL CONTRATO ORIGINAL")
    field("Número de contrato", contract.numero)
    field("Profesor", contract.profesor_nombre)
    field("CI", professor.ci if professor else None)
    field("País", contract.pais_id)
    field("Función", contract.funcion)
    field("Centro de trabajo", contract.centro_trabajo)
    y -= 14

    section("DATOS DE LA PRÓRROGA")
    field("Número de prórroga", str(extension.numero_prorroga))
    field("Fecha de inicio", _fmt(extension.fecha_desde))
    field("Fecha de fin", _fmt(extension.fecha_hasta))
    field("Motivo", extension.motivo)
    y -= 14

    section("ACTA DE PRÓRROGA")
    p.setFont("Helvetica", 10)
    text = p.beginText(margin, y)
    text.textLine("Por medio de la presente se certifica que se ha autorizado la PRÓRROGA")
    text.textLine(f"número {extension.numero_prorroga} del contrato {contract.numero}.")
    text.textLine(
        f"La prórroga comprende el período desde el {_fmt(extension.fecha_desde)} "
        f"hasta el {_fmt(extension.fecha_hasta)}."
    )
    p.drawText(text)

    p.showPage()
    p.save()
    return buffer.getvalue()

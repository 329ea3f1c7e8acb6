from datetime import date
from decimal import Decimal

import pytest

from dto import (
    ContractRequest,
    ExtensionRequest,
    ProfessorRequest,
    parse_contract_filter,
    parse_paging,
    parse_passport_filter,
)
from errors import ValidationError
from passports_repo import expiry_range
from validators import Validator, date_ranges_overlap, normalize_text

CID = "6f1c2a58-3c7e-4b7a-9d7a-1b2c3d4e5f60"


def _extension_payload(**extra):
    payload = {
        "contratoId": CID,
        "fechaDesde": "2025-01-01",
        "fechaHasta": "2025-06-30",
        "motivo": "continuidad",
    }
    payload.update(extra)
    return payload


def test_extension_request_parses_dates():
    req = ExtensionRequest.from_payload(_extension_payload())
    assert req.fecha_desde == date(2025, 1, 1)
    assert req.fecha_hasta == date(2025, 6, 30)


def test_unknown_property_rejected():
    with pytest.raises(ValidationError, match="property extra should not exist"):
        ExtensionRequest.from_payload(_extension_payload(extra=1))


@pytest.mark.parametrize("hasta", ["2025-01-01", "2024-12-31"])
def test_extension_end_must_follow_start(hasta):
    with pytest.raises(ValidationError, match="posterior a la fecha de inicio"):
        ExtensionRequest.from_payload(_extension_payload(fechaHasta=hasta))


def test_bad_uuid_rejected():
    with pytest.raises(ValidationError, match="contratoId debe ser un UUID"):
        ExtensionRequest.from_payload(_extension_payload(contratoId="123"))


@pytest.mark.parametrize("value", ["31/12/2024", "2025-01-01garbage", "2025-01-01!!!"])
def test_bad_date_rejected(value):
    with pytest.raises(ValidationError, match="fechaDesde"):
        ExtensionRequest.from_payload(_extension_payload(fechaDesde=value))


def test_iso_datetime_is_truncated_to_date():
    assert Validator.iso_date("f", "2025-01-01T00:00:00.000Z") == date(2025, 1, 1)


def test_missing_motivo():
    payload = _extension_payload()
    del payload["motivo"]
    with pytest.raises(ValidationError, match="motivo es requerido"):
        ExtensionRequest.from_payload(payload)


def test_contract_salary_decimal_places():
    base = {
        "profesorId": CID, "paisId": CID, "fechaInicio": "2024-01-01",
        "fechaFin": "2024-12-31", "funcion": "docente", "centroTrabajo": "centro",
    }
    req = ContractRequest.from_payload({**base, "salarioMensual": "1500.50"})
    assert req.salario_mensual == Decimal("1500.50")
    with pytest.raises(ValidationError, match="2 decimales"):
        ContractRequest.from_payload({**base, "salarioMensual": "1500.505"})


def test_professor_ci_length():
    with pytest.raises(ValidationError, match="11 caracteres"):
        ProfessorRequest.from_payload({"ci": "123", "nombre": "A", "apellidos": "B"})


def test_paging_defaults_and_bad_values():
    assert parse_paging({}) == (1, 10)
    assert parse_paging({"page": ["3"], "limit": ["25"]}) == (3, 25)
    assert parse_paging({"page": ["0"], "limit": ["abc"]}) == (1, 10)


def test_contract_filter():
    flt = parse_contract_filter({"estado": ["prorrogado"], "ano": ["2025"]})
    assert flt.estado == "PRORROGADO"
    assert flt.ano == 2025
    with pytest.raises(ValidationError):
        parse_contract_filter({"estado": ["ABIERTO"]})
    with pytest.raises(ValidationError):
        parse_contract_filter({"ano": ["dos mil"]})


def test_passport_filter_estado():
    assert parse_passport_filter({"estado": ["Vencidos"]}).estado == "vencidos"
    with pytest.raises(ValidationError):
        parse_passport_filter({"estado": ["caducados"]})


def test_expiry_ranges_cover_every_day():
    today = date(2025, 3, 1)
    assert expiry_range("vencidos", today) == (None, date(2025, 2, 28))
    assert expiry_range("proximos", today) == (today, date(2025, 3, 31))
    assert expiry_range("vigentes", today) == (date(2025, 4, 1), None)
    assert expiry_range(None, today) == (None, None)


def test_normalize_text():
    assert normalize_text("  Pérez   García ") == "PEREZ GARCIA"
    assert normalize_text(None) == ""


def test_date_ranges_overlap_is_inclusive():
    assert date_ranges_overlap(date(2024, 1, 1), date(2024, 12, 31),
                               date(2024, 12, 31), date(2025, 6, 30))
    assert not date_ranges_overlap(date(2024, 1, 1), date(2024, 12, 31),
                                   date(2025, 1, 1), date(2025, 6, 30))

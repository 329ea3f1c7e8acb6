import uuid
from datetime import date
from decimal import Decimal

import pytest

from contracts_domain import ACTIVE, CANCELLED, CLOSED, EXTENDED, Professor
from contracts_repo import ContractFilter
from dto import CloseContractRequest, ExtensionRequest, ProfessorRequest
from errors import ConflictError, InvalidStateError, NotFoundError
from professors_service import ProfessorsService
from tests.conftest import contract_request


def _close(service, contrato_id):
    req = CloseContractRequest.from_payload({"fechaCierre": "2024-06-30", "motivoCierre": "baja"})
    return service.close(contrato_id, req, "user-2")


def _extend(manager, contrato_id, desde="2025-01-01", hasta="2025-06-30"):
    return manager.create(ExtensionRequest.from_payload({
        "contratoId": contrato_id, "fechaDesde": desde, "fechaHasta": hasta, "motivo": "m",
    }), None)


def test_create_sets_number_and_uppercases(contract):
    assert contract.numero_consecutivo == 1
    assert contract.ano == 2024
    assert contract.numero == "1/2024"
    assert contract.estado == ACTIVE
    assert contract.funcion == "PROFESOR DE MATEMÁTICA"
    assert contract.fecha_fin_original == date(2024, 12, 31)
    assert contract.profesor_nombre == "JUAN CARLOS PÉREZ GARCÍA"


def test_numbering_is_per_year(contracts_service, contracts_repo, contract):
    other = contracts_repo.insert_professor(Professor(
        id=str(uuid.uuid4()), ci="90020254321", nombre="ANA", apellidos="LÓPEZ DÍAZ"))
    second = contracts_service.create(
        contract_request(other.id, date(2024, 3, 1), date(2024, 9, 30)), None)
    third = contracts_service.create(
        contract_request(other.id, date(2025, 1, 1), date(2025, 12, 31)), None)
    assert second.numero == "2/2024"
    assert third.numero == "1/2025"


def test_overlap_with_open_contract_conflicts(contracts_service, professor, contract):
    with pytest.raises(ConflictError, match=r"Contrato #1/2024"):
        contracts_service.create(
            contract_request(professor.id, date(2024, 12, 31), date(2025, 6, 30)), None)


def test_closed_contract_does_not_block_new_one(contracts_service, professor, contract):
    _close(contracts_service, contract.id)
    again = contracts_service.create(
        contract_request(professor.id, date(2024, 7, 1), date(2025, 6, 30)), None)
    assert again.numero == "2/2024"


def test_create_for_unknown_professor(contracts_service):
    with pytest.raises(NotFoundError, match="Profesor no encontrado"):
        contracts_service.create(
            contract_request(str(uuid.uuid4()), date(2024, 1, 1), date(2024, 12, 31)), None)


def test_get_returns_extensions(contracts_service, manager, contract):
    _extend(manager, contract.id)
    found, extensions = contracts_service.get(contract.id)
    assert found.estado == EXTENDED
    assert [e.numero_prorroga for e in extensions] == [1]


def test_get_missing(contracts_service):
    with pytest.raises(NotFoundError, match="Contrato no encontrado"):
        contracts_service.get(str(uuid.uuid4()))


def test_list_filters_by_state(contracts_service, contract):
    page = contracts_service.list(ContractFilter(estado=ACTIVE), 1, 10)
    assert page.total == 1
    assert page.to_dict()["meta"] == {"total": 1, "page": 1, "limit": 10, "totalPages": 1}
    assert contracts_service.list(ContractFilter(estado=CLOSED), 1, 10).total == 0


def test_update_replaces_fields(contracts_service, professor, contract):
    req = contract_request(professor.id, date(2024, 2, 1), date(2025, 1, 31),
                           salarioMensual="1200.00", moneda="USD")
    updated = contracts_service.update(contract.id, req, "user-3")
    assert updated.fecha_inicio == date(2024, 2, 1)
    assert updated.fecha_fin == date(2025, 1, 31)
    assert updated.fecha_fin_original == date(2025, 1, 31)
    assert updated.salario_mensual == Decimal("1200.00")
    assert updated.updated_by == "user-3"
    assert updated.numero == contract.numero


def test_update_cannot_move_end_date_with_extensions(contracts_service, manager,
                                                     professor, contract):
    _extend(manager, contract.id)
    req = contract_request(professor.id, date(2024, 1, 1), date(2024, 11, 30))
    with pytest.raises(InvalidStateError, match="fecha de fin de un contrato con prórrogas"):
        contracts_service.update(contract.id, req, None)


def test_update_with_extensions_keeps_extended_state(contracts_service, manager,
                                                     professor, contract):
    _extend(manager, contract.id)
    req = contract_request(professor.id, date(2024, 1, 1), date(2024, 12, 31),
                           funcion="coordinador")
    updated = contracts_service.update(contract.id, req, None)
    assert updated.estado == EXTENDED
    assert updated.fecha_fin == date(2025, 6, 30)
    assert updated.funcion == "COORDINADOR"


def test_update_overlap_uses_extended_end_date(contracts_service, contracts_repo, manager,
                                               contract):
    _extend(manager, contract.id)  # до 2025-06-30
    other = contracts_repo.insert_professor(Professor(
        id=str(uuid.uuid4()), ci="90020254321", nombre="ANA", apellidos="LÓPEZ DÍAZ"))
    contracts_service.create(
        contract_request(other.id, date(2025, 3, 1), date(2025, 12, 31)), None)

    req = contract_request(other.id, date(2024, 1, 1), date(2024, 12, 31))
    with pytest.raises(ConflictError, match=r"Contrato #1/2025"):
        contracts_service.update(contract.id, req, None)
    assert contracts_repo.get_contract(contract.id).profesor_id == contract.profesor_id


def test_update_closed_contract(contracts_service, professor, contract):
    _close(contracts_service, contract.id)
    req = contract_request(professor.id, date(2024, 1, 1), date(2024, 12, 31))
    with pytest.raises(InvalidStateError, match="cerrado o cancelado"):
        contracts_service.update(contract.id, req, None)


def test_close_rules(contracts_service, contracts_repo, contract):
    closed = _close(contracts_service, contract.id)
    assert closed.estado == CLOSED
    assert closed.fecha_cierre == date(2024, 6, 30)
    assert closed.motivo_cierre == "BAJA"
    with pytest.raises(InvalidStateError, match="ya está cerrado"):
        _close(contracts_service, contract.id)

    contracts_repo.set_contract_state(contract.id, closed.fecha_fin, CANCELLED)
    with pytest.raises(InvalidStateError, match="contrato cancelado"):
        _close(contracts_service, contract.id)


def test_delete_cascades_to_extensions(contracts_service, contracts_repo, manager, contract):
    ext = _extend(manager, contract.id)
    contracts_service.delete(contract.id)
    assert contracts_repo.get_contract(contract.id) is None
    assert contracts_repo.get_extension(ext.id) is None


def test_delete_missing(contracts_service):
    with pytest.raises(NotFoundError):
        contracts_service.delete(str(uuid.uuid4()))


def test_export_excel(contracts_service, contract):
    assert contracts_service.export_excel(None)[:2] == b"PK"


def test_professor_registry(contracts_repo, professor):
    service = ProfessorsService(contracts_repo)
    created = service.create(ProfessorRequest.from_payload(
        {"ci": "75050598765", "nombre": "maría", "apellidos": "fernández ruiz"}))
    assert created.nombre == "MARÍA"
    assert service.get(created.id).apellidos == "FERNÁNDEZ RUIZ"
    assert service.list("fern", 1, 10).total == 1

    with pytest.raises(ConflictError, match="Ya existe un profesor con el CI 75050598765"):
        service.create(ProfessorRequest.from_payload(
            {"ci": "75050598765", "nombre": "otra", "apellidos": "persona"}))
    with pytest.raises(NotFoundError):
        service.get(str(uuid.uuid4()))

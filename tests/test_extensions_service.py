"""
Prórrogas: номер, пересчёт даты окончания и статуса договора, запреты.
"""
import uuid
from datetime import date

import pytest

from contracts_domain import ACTIVE, CANCELLED, CLOSED, EXTENDED
from dto import CloseContractRequest, ExtensionRequest
from errors import InvalidStateError, NotFoundError, ValidationError


def ext_request(contrato_id: str, desde: str, hasta: str, motivo: str = "continuidad docente"):
    return ExtensionRequest.from_payload({
        "contratoId": contrato_id,
        "fechaDesde": desde,
        "fechaHasta": hasta,
        "motivo": motivo,
    })


def test_first_extension_extends_contract(manager, contracts_repo, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), "user-1")

    assert ext.numero_prorroga == 1
    assert ext.motivo == "CONTINUIDAD DOCENTE"
    assert ext.created_by == "user-1"
    stored = contracts_repo.get_contract(contract.id)
    assert stored.fecha_fin == date(2025, 6, 30)
    assert stored.estado == EXTENDED
    assert stored.fecha_fin_original == date(2024, 12, 31)
    assert stored.prorrogas_count == 1


def test_second_extension_starts_after_first(manager, contracts_repo, contract):
    manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    ext = manager.create(ext_request(contract.id, "2025-07-01", "2025-12-31"), None)

    assert ext.numero_prorroga == 2
    stored = contracts_repo.get_contract(contract.id)
    assert stored.fecha_fin == date(2025, 12, 31)
    assert stored.estado == EXTENDED


def test_extension_may_start_on_contract_end_date(manager, contracts_repo, contract):
    manager.create(ext_request(contract.id, "2024-12-31", "2025-03-31"), None)
    assert contracts_repo.get_contract(contract.id).fecha_fin == date(2025, 3, 31)


def test_extension_cannot_start_before_contract_end(manager, contracts_repo, contract):
    with pytest.raises(ValidationError, match="en o después de la fecha de fin"):
        manager.create(ext_request(contract.id, "2024-12-30", "2025-03-31"), None)
    assert contracts_repo.extensions_for_contract(contract.id) == []


def test_extension_for_missing_contract(manager):
    with pytest.raises(NotFoundError, match="Contrato no encontrado"):
        manager.create(ext_request(str(uuid.uuid4()), "2025-01-01", "2025-06-30"), None)


def test_closed_contract_is_locked(manager, contracts_service, contracts_repo, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    contracts_service.close(
        contract.id,
        CloseContractRequest.from_payload({"fechaCierre": "2025-03-01", "motivoCierre": "fin"}),
        None,
    )

    with pytest.raises(InvalidStateError, match="agregar prórrogas de un contrato cerrado"):
        manager.create(ext_request(contract.id, "2025-07-01", "2025-12-31"), None)
    with pytest.raises(InvalidStateError, match="modificar prórrogas de un contrato cerrado"):
        manager.update(ext.id, ext_request(contract.id, "2025-01-01", "2025-05-31"))
    with pytest.raises(InvalidStateError, match="eliminar prórrogas de un contrato cerrado"):
        manager.delete(ext.id)

    stored = contracts_repo.get_contract(contract.id)
    assert stored.estado == CLOSED
    assert stored.fecha_fin == date(2025, 6, 30)
    assert len(contracts_repo.extensions_for_contract(contract.id)) == 1


def test_only_last_extension_can_be_deleted(manager, contracts_repo, contract):
    first = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    second = manager.create(ext_request(contract.id, "2025-07-01", "2025-12-31"), None)

    with pytest.raises(InvalidStateError, match="Solo se puede eliminar la última prórroga"):
        manager.delete(first.id)

    manager.delete(second.id)
    stored = contracts_repo.get_contract(contract.id)
    assert stored.fecha_fin == date(2025, 6, 30)
    assert stored.estado == EXTENDED


def test_deleting_sole_extension_restores_base_state(manager, contracts_repo, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    manager.delete(ext.id)

    stored = contracts_repo.get_contract(contract.id)
    assert stored.fecha_fin == date(2024, 12, 31)
    assert stored.estado == ACTIVE
    assert stored.prorrogas_count == 0


def test_delete_missing_extension(manager):
    with pytest.raises(NotFoundError, match="Prórroga no encontrada"):
        manager.delete(str(uuid.uuid4()))


def test_numbering_after_delete_reuses_number(manager, contract):
    manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    second = manager.create(ext_request(contract.id, "2025-07-01", "2025-12-31"), None)
    manager.delete(second.id)
    again = manager.create(ext_request(contract.id, "2025-07-01", "2025-09-30"), None)
    assert again.numero_prorroga == 2


def test_update_last_extension_refreshes_contract(manager, contracts_repo, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    updated = manager.update(ext.id, ext_request(contract.id, "2025-01-01", "2025-09-30", "otro"))

    assert updated.fecha_hasta == date(2025, 9, 30)
    assert updated.motivo == "OTRO"
    assert contracts_repo.get_contract(contract.id).fecha_fin == date(2025, 9, 30)


def test_update_earlier_extension_keeps_contract_end(manager, contracts_repo, contract):
    first = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    manager.create(ext_request(contract.id, "2025-07-01", "2025-12-31"), None)

    manager.update(first.id, ext_request(contract.id, "2025-01-01", "2025-05-31"))
    assert contracts_repo.get_contract(contract.id).fecha_fin == date(2025, 12, 31)


def test_update_rejects_other_contract(manager, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    with pytest.raises(ValidationError, match="no pertenece al contrato"):
        manager.update(ext.id, ext_request(str(uuid.uuid4()), "2025-01-01", "2025-06-30"))


def test_get_and_list(manager, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)

    found, owner = manager.get(ext.id)
    assert found.id == ext.id
    assert owner.profesor_nombre == "JUAN CARLOS PÉREZ GARCÍA"

    page, contracts = manager.list(contract.id, 1, 10)
    assert page.total == 1
    assert contracts[contract.id].numero == contract.numero


def test_export_and_supplement(manager, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)

    assert manager.export_excel(contract.id)[:2] == b"PK"
    assert manager.supplement_pdf(ext.id).startswith(b"%PDF")


def test_cancelled_contract_is_locked(manager, contracts_repo, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    contracts_repo.set_contract_state(contract.id, date(2025, 6, 30), CANCELLED)

    with pytest.raises(InvalidStateError, match="agregar prórrogas de un contrato cancelado"):
        manager.create(ext_request(contract.id, "2025-07-01", "2025-12-31"), None)
    with pytest.raises(InvalidStateError, match="modificar prórrogas de un contrato cancelado"):
        manager.update(ext.id, ext_request(contract.id, "2025-01-01", "2025-05-31"))
    with pytest.raises(InvalidStateError, match="eliminar prórrogas de un contrato cancelado"):
        manager.delete(ext.id)

    stored = contracts_repo.get_contract(contract.id)
    assert stored.estado == CANCELLED
    assert stored.fecha_fin == date(2025, 6, 30)
    remaining = contracts_repo.extensions_for_contract(contract.id)
    assert [(e.id, e.fecha_hasta) for e in remaining] == [(ext.id, date(2025, 6, 30))]


def _failing_state_update(*args, **kwargs):
    raise RuntimeError("fallo al actualizar el contrato")


def test_create_is_rolled_back_when_contract_update_fails(manager, contracts_repo,
                                                          monkeypatch, contract):
    monkeypatch.setattr(contracts_repo, "set_contract_state", _failing_state_update)

    with pytest.raises(RuntimeError):
        manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)

    assert contracts_repo.extensions_for_contract(contract.id) == []
    stored = contracts_repo.get_contract(contract.id)
    assert stored.estado == ACTIVE
    assert stored.fecha_fin == date(2024, 12, 31)


def test_delete_is_rolled_back_when_contract_update_fails(manager, contracts_repo,
                                                          monkeypatch, contract):
    ext = manager.create(ext_request(contract.id, "2025-01-01", "2025-06-30"), None)
    monkeypatch.setattr(contracts_repo, "set_contract_state", _failing_state_update)

    with pytest.raises(RuntimeError):
        manager.delete(ext.id)

    assert contracts_repo.get_extension(ext.id) is not None
    stored = contracts_repo.get_contract(contract.id)
    assert stored.estado == EXTENDED
    assert stored.fecha_fin == date(2025, 6, 30)

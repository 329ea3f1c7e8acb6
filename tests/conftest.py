"""
Общие фикстуры: репозитории поверх YAML-файла во временном каталоге.
"""
from datetime import date

import pytest

from contracts_domain import Professor
from contracts_repo_yaml import ContractsRepoYaml
from contracts_service import ContractsService
from dto import ContractRequest
from extensions_service import ExtensionManager
from passports_repo_yaml import PassportsRepoYaml
from yaml_store import YamlStore

PAIS_ID = "6f1c2a58-3c7e-4b7a-9d7a-1b2c3d4e5f60"


@pytest.fixture
def store(tmp_path) -> YamlStore:
    return YamlStore(str(tmp_path / "data.yaml"))


@pytest.fixture
def contracts_repo(store) -> ContractsRepoYaml:
    return ContractsRepoYaml(store)


@pytest.fixture
def passports_repo(store) -> PassportsRepoYaml:
    return PassportsRepoYaml(store)


@pytest.fixture
def professor(contracts_repo) -> Professor:
    return contracts_repo.insert_professor(Professor(
        id="0b5c8f3e-1111-4a2b-9c3d-000000000001",
        ci="80010112345",
        nombre="JUAN CARLOS",
        apellidos="PÉREZ GARCÍA",
    ))


@pytest.fixture
def contracts_service(contracts_repo) -> ContractsService:
    return ContractsService(contracts_repo)


@pytest.fixture
def manager(contracts_repo) -> ExtensionManager:
    return ExtensionManager(contracts_repo)


def contract_request(profesor_id: str, start: date, end: date, **extra) -> ContractRequest:
    payload = {
        "profesorId": profesor_id,
        "paisId": PAIS_ID,
        "fechaInicio": start.isoformat(),
        "fechaFin": end.isoformat(),
        "funcion": "profesor de matemática",
        "centroTrabajo": "universidad central",
    }
    payload.update(extra)
    return ContractRequest.from_payload(payload)


@pytest.fixture
def contract(contracts_service, professor):
    """Договор 2024-01-01 .. 2024-12-31 без prórrogas."""
    return contracts_service.create(
        contract_request(professor.id, date(2024, 1, 1), date(2024, 12, 31)), "user-1"
    )

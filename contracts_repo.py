# contracts_repo.py
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date
from typing import Any, Generic, Optional, TypeVar

from contracts_domain import Contract, ContractStatus, Extension, Professor

T = TypeVar("T")


@dataclass
class ContractFilter:
    profesor_id: Optional[str] = None
    pais_id: Optional[str] = None
    estado: Optional[str] = None
    ano: Optional[int] = None


@dataclass
class Page(Generic[T]):
    """Одна страница выборки и общее число записей по фильтру."""

    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [i.to_dict() for i in self.items],  # type: ignore[attr-defined]
            "meta": {
                "total": self.total,
                "page": self.page,
                "limit": self.limit,
                "totalPages": self.total_pages,
            },
        }


class BaseContractsRepo(ABC):
    """
    Хранилище профессоров, договоров и prórrogas.
    Реализации: PostgreSQL (ContractsRepoDB) и YAML (ContractsRepoYaml).
    """

    # ---------------------------- Транзакции ---------------------------

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Any]:
        """
        Всё, что вызвано внутри блока with, фиксируется целиком или
        не фиксируется вовсе. Вложенные блоки входят во внешний.
        """
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> bool:
        raise NotImplementedError

    # ----------------------------- Договоры ----------------------------

    @abstractmethod
    def list_contracts(
        self, flt: Optional[ContractFilter], page: int, limit: int
    ) -> Page[Contract]:
        """Новые сверху; с именем профессора и числом prórrogas."""
        raise NotImplementedError

    @abstractmethod
    def all_contracts(self, flt: Optional[ContractFilter] = None) -> list[Contract]:
        raise NotImplementedError

    @abstractmethod
    def get_contract(self, contrato_id: str, *, for_update: bool = False) -> Optional[Contract]:
        """
        for_update=True внутри транзакции блокирует строку договора
        до конца транзакции.
        """
        raise NotImplementedError

    @abstractmethod
    def contracts_for_professor(
        self, profesor_id: str, estados: tuple[str, ...]
    ) -> list[Contract]:
        raise NotImplementedError

    @abstractmethod
    def last_consecutive(self, ano: int) -> int:
        """Максимальный numero_consecutivo за год, 0 если договоров нет."""
        raise NotImplementedError

    @abstractmethod
    def insert_contract(self, contract: Contract) -> Contract:
        raise NotImplementedError

    @abstractmethod
    def update_contract(self, contract: Contract) -> Contract:
        raise NotImplementedError

    @abstractmethod
    def delete_contract(self, contrato_id: str) -> bool:
        """Удаляет договор вместе с его prórrogas."""
        raise NotImplementedError

    @abstractmethod
    def set_contract_state(
        self, contrato_id: str, fecha_fin: date, estado: ContractStatus
    ) -> None:
        raise NotImplementedError

    # ----------------------------- Prórrogas ---------------------------

    @abstractmethod
    def extensions_for_contract(self, contrato_id: str) -> list[Extension]:
        """Все prórrogas договора по возрастанию номера."""
        raise NotImplementedError

    @abstractmethod
    def list_extensions(
        self, contrato_id: Optional[str], page: int, limit: int
    ) -> Page[Extension]:
        raise NotImplementedError

    @abstractmethod
    def get_extension(self, prorroga_id: str) -> Optional[Extension]:
        raise NotImplementedError

    @abstractmethod
    def insert_extension(self, extension: Extension) -> Extension:
        raise NotImplementedError

    @abstractmethod
    def update_extension(self, extension: Extension) -> Extension:
        raise NotImplementedError

    @abstractmethod
    def delete_extension(self, prorroga_id: str) -> bool:
        raise NotImplementedError

    # ---------------------------- Профессора ---------------------------

    @abstractmethod
    def get_professor(self, profesor_id: str) -> Optional[Professor]:
        raise NotImplementedError

    @abstractmethod
    def get_professor_by_ci(self, ci: str) -> Optional[Professor]:
        raise NotImplementedError

    @abstractmethod
    def insert_professor(self, professor: Professor) -> Professor:
        raise NotImplementedError

    @abstractmethod
    def list_professors(self, search: Optional[str], page: int, limit: int) -> Page[Professor]:
        raise NotImplementedError

    @abstractmethod
    def find_professor_exact(self, nombre: str, apellidos: str) -> Optional[Professor]:
        """Точное совпадение имени и фамилий без учёта регистра."""
        raise NotImplementedError

    @abstractmethod
    def search_professors(
        self, surname_token: str, name_token: str, limit: int = 5
    ) -> list[Professor]:
        """
        Кандидаты, у которых apellidos содержит surname_token
        или nombre содержит name_token.
        """
        raise NotImplementedError

    @abstractmethod
    def professor_names(self, ids: list[str]) -> dict[str, str]:
        """id профессора -> «Nombre Apellidos»."""
        raise NotImplementedError

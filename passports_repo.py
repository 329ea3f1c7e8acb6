# passports_repo.py
from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

from contracts_repo import Page
from passports_domain import ImportRecord, Passport

EXPIRY_STATES = ("vencidos", "proximos", "vigentes")
EXPIRY_WARNING_DAYS = 30


@dataclass
class PassportFilter:
    profesor_id: Optional[str] = None
    numero: Optional[str] = None
    estado: Optional[str] = None  # vencidos | proximos | vigentes


def expiry_range(estado: Optional[str], today: date) -> tuple[Optional[date], Optional[date]]:
    """Границы fecha_vencimiento (обе включительно) для фильтра по состоянию."""
    warn = today + timedelta(days=EXPIRY_WARNING_DAYS)
    if estado == "vencidos":
        return None, today - timedelta(days=1)
    if estado == "proximos":
        return today, warn
    if estado == "vigentes":
        return warn + timedelta(days=1), None
    return None, None


class BasePassportsRepo(ABC):
    """Паспорта профессоров и история массовых импортов."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Any]:
        raise NotImplementedError

    @abstractmethod
    def list_passports(
        self, flt: Optional[PassportFilter], page: int, limit: int, *, today: date
    ) -> Page[Passport]:
        """Только активные, по возрастанию даты окончания."""
        raise NotImplementedError

    @abstractmethod
    def get_by_numero(self, numero: str) -> Optional[Passport]:
        raise NotImplementedError

    @abstractmethod
    def insert_passport(self, passport: Passport) -> Passport:
        raise NotImplementedError

    @abstractmethod
    def insert_import_record(self, record: ImportRecord) -> ImportRecord:
        raise NotImplementedError

    @abstractmethod
    def list_import_records(self, user_id: Optional[str]) -> list[ImportRecord]:
        """История пользователя, новые сверху."""
        raise NotImplementedError

    @abstractmethod
    def get_import_record(self, record_id: str, user_id: Optional[str]) -> Optional[ImportRecord]:
        """Запись истории, если она принадлежит user_id."""
        raise NotImplementedError

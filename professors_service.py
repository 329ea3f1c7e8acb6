from __future__ import annotations

import logging
import uuid
from typing import Optional

from contracts_domain import Professor
from contracts_repo import BaseContractsRepo, Page
from dto import ProfessorRequest
from errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class ProfessorsService:
    """Минимальный реестр профессоров: нужен договорам и импорту паспортов."""

    def __init__(self, repo: BaseContractsRepo) -> None:
        self.repo = repo

    def create(self, req: ProfessorRequest) -> Professor:
        with self.repo.transaction():
            if self.repo.get_professor_by_ci(req.ci) is not None:
                raise ConflictError(f"Ya existe un profesor con el CI {req.ci}")
            prof = self.repo.insert_professor(Professor(
                id=str(uuid.uuid4()),
                ci=req.ci,
                nombre=req.nombre.upper(),
                apellidos=req.apellidos.upper(),
            ))
        logger.info("Профессор %s добавлен (CI %s)", prof.nombre_completo, prof.ci)
        return prof

    def get(self, profesor_id: str) -> Professor:
        prof = self.repo.get_professor(profesor_id)
        if prof is None:
            raise NotFoundError("Profesor no encontrado")
        return prof

    def list(self, search: Optional[str], page: int, limit: int) -> Page[Professor]:
        return self.repo.list_professors(search, page, limit)

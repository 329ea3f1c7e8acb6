# contracts_service.py
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from contracts_domain import (
    ACTIVE,
    CANCELLED,
    CLOSED,
    EXTENDED,
    Contract,
    Extension,
    derive_contract_state,
)
from contracts_name_service import attach_professor_names, professors_by_id
from contracts_repo import BaseContractsRepo, ContractFilter, Page
from dto import CloseContractRequest, ContractRequest
from errors import ConflictError, InvalidStateError, NotFoundError
from reports import contracts_workbook
from validators import date_ranges_overlap

logger = logging.getLogger(__name__)

# договоры, которые участвуют в проверке пересечения дат
_OPEN_STATUSES = (ACTIVE, EXTENDED)


class ContractsService:
    def __init__(self, repo: BaseContractsRepo) -> None:
        self.repo = repo

    def _get_or_404(self, contrato_id: str, *, for_update: bool = False) -> Contract:
        contract = self.repo.get_contract(contrato_id, for_update=for_update)
        if contract is None:
            raise NotFoundError("Contrato no encontrado")
        return contract

    def _ensure_no_overlap(
        self,
        req: ContractRequest,
        exclude_id: Optional[str] = None,
        fecha_fin: Optional[date] = None,
    ) -> None:
        end = fecha_fin or req.fecha_fin
        for other in self.repo.contracts_for_professor(req.profesor_id, _OPEN_STATUSES):
            if other.id == exclude_id:
                continue
            if date_ranges_overlap(req.fecha_inicio, end,
                                   other.fecha_inicio, other.fecha_fin):
                raise ConflictError(
                    "El profesor ya tiene un contrato activo que se solapa con las fechas "
                    f"indicadas (Contrato #{other.numero})"
                )

    def _ensure_professor(self, profesor_id: str) -> None:
        if self.repo.get_professor(profesor_id) is None:
            raise NotFoundError("Profesor no encontrado")

    # ------------------------------ Чтение ------------------------------

    def list(self, flt: Optional[ContractFilter], page: int, limit: int) -> Page[Contract]:
        return self.repo.list_contracts(flt, page, limit)

    def get(self, contrato_id: str) -> tuple[Contract, list[Extension]]:
        contract = self._get_or_404(contrato_id)
        attach_professor_names(self.repo, [contract])
        return contract, self.repo.extensions_for_contract(contrato_id)

    def export_excel(self, flt: Optional[ContractFilter]) -> bytes:
        contracts = self.repo.all_contracts(flt)
        professors = professors_by_id(self.repo, [c.profesor_id for c in contracts])
        return contracts_workbook(contracts, professors)

    # ------------------------------ Изменения ---------------------------

    def create(self, req: ContractRequest, user_id: Optional[str]) -> Contract:
        with self.repo.transaction():
            self._ensure_professor(req.profesor_id)
            self._ensure_no_overlap(req)
            ano = req.fecha_inicio.year
            contract = self.repo.insert_contract(Contract(
                id=str(uuid.uuid4()),
                numero_consecutivo=self.repo.last_consecutive(ano) + 1,
                ano=ano,
                profesor_id=req.profesor_id,
                pais_id=req.pais_id,
                fecha_inicio=req.fecha_inicio,
                fecha_fin=req.fecha_fin,
                fecha_fin_original=req.fecha_fin,
                funcion=req.funcion.upper(),
                centro_trabajo=req.centro_trabajo.upper(),
                direccion_trabajo=req.direccion_trabajo.upper() if req.direccion_trabajo else None,
                salario_mensual=req.salario_mensual,
                moneda=req.moneda,
                estado=ACTIVE,
                observaciones=req.observaciones,
                created_by=user_id,
                updated_by=user_id,
            ))
        attach_professor_names(self.repo, [contract])
        logger.info("Договор %s создан (пользователь %s)", contract.numero, user_id)
        return contract

    def update(self, contrato_id: str, req: ContractRequest, user_id: Optional[str]) -> Contract:
        with self.repo.transaction():
            contract = self._get_or_404(contrato_id, for_update=True)
            if contract.is_locked:
                raise InvalidStateError("No se puede modificar un contrato cerrado o cancelado")
            extensions = self.repo.extensions_for_contract(contrato_id)
            if extensions and req.fecha_fin != contract.fecha_fin_original:
                raise InvalidStateError(
                    "No se puede cambiar la fecha de fin de un contrato con prórrogas"
                )
            if req.profesor_id != contract.profesor_id:
                self._ensure_professor(req.profesor_id)
            state = derive_contract_state(extensions, req.fecha_fin)
            # с prórrogas договор занимает период до их конца
            self._ensure_no_overlap(req, exclude_id=contrato_id, fecha_fin=state.fecha_fin)

            contract.profesor_id = req.profesor_id
            contract.pais_id = req.pais_id
            contract.fecha_inicio = req.fecha_inicio
            contract.fecha_fin_original = req.fecha_fin
            contract.fecha_fin = state.fecha_fin
            contract.estado = state.estado
            contract.funcion = req.funcion.upper()
            contract.centro_trabajo = req.centro_trabajo.upper()
            contract.direccion_trabajo = req.direccion_trabajo.upper() if req.direccion_trabajo else None
            contract.salario_mensual = req.salario_mensual
            contract.moneda = req.moneda
            contract.observaciones = req.observaciones
            contract.updated_by = user_id
            contract.profesor_nombre = None
            updated = self.repo.update_contract(contract)
        updated.prorrogas_count = len(extensions)
        attach_professor_names(self.repo, [updated])
        logger.info("Договор %s изменён (пользователь %s)", updated.numero, user_id)
        return updated

    def delete(self, contrato_id: str) -> None:
        with self.repo.transaction():
            contract = self._get_or_404(contrato_id, for_update=True)
            self.repo.delete_contract(contrato_id)
        logger.info("Договор %s удалён", contract.numero)

    def close(self, contrato_id: str, req: CloseContractRequest, user_id: Optional[str]) -> Contract:
        with self.repo.transaction():
            contract = self._get_or_404(contrato_id, for_update=True)
            if contract.estado == CLOSED:
                raise InvalidStateError("El contrato ya está cerrado")
            if contract.estado == CANCELLED:
                raise InvalidStateError("No se puede cerrar un contrato cancelado")
            contract.estado = CLOSED
            contract.fecha_cierre = req.fecha_cierre
            contract.motivo_cierre = req.motivo_cierre.upper()
            contract.updated_by = user_id
            contract.profesor_nombre = None
            closed = self.repo.update_contract(contract)
        attach_professor_names(self.repo, [closed])
        logger.info("Договор %s закрыт (пользователь %s)", closed.numero, user_id)
        return closed

# extensions_service.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from contracts_domain import (
    STATUS_LABELS,
    Contract,
    Extension,
    derive_contract_state,
    last_extension,
    next_extension_number,
)
from contracts_name_service import attach_professor_names, professors_by_id
from contracts_repo import BaseContractsRepo, Page
from dto import ExtensionRequest
from errors import InvalidStateError, NotFoundError, ValidationError
from reports import extension_supplement_pdf, extensions_workbook

logger = logging.getLogger(__name__)


class ExtensionManager:
    """
    Prórrogas договора. После каждого изменения fecha_fin и estado договора
    пересчитываются через derive_contract_state в той же транзакции.
    """

    def __init__(self, repo: BaseContractsRepo) -> None:
        self.repo = repo

    # ------------------------------ Проверки ------------------------------

    def _locked_contract(self, contrato_id: str) -> Contract:
        contract = self.repo.get_contract(contrato_id, for_update=True)
        if contract is None:
            raise NotFoundError("Contrato no encontrado")
        return contract

    @staticmethod
    def _ensure_mutable(contract: Contract, action: str) -> None:
        if contract.is_locked:
            raise InvalidStateError(
                f"No se puede {action} prórrogas de un contrato {STATUS_LABELS[contract.estado]}"
            )

    def _refresh_contract(self, contract: Contract) -> None:
        remaining = self.repo.extensions_for_contract(contract.id or "")
        state = derive_contract_state(remaining, contract.fecha_fin_original)
        self.repo.set_contract_state(contract.id or "", state.fecha_fin, state.estado)

    def _get_or_404(self, prorroga_id: str) -> Extension:
        ext = self.repo.get_extension(prorroga_id)
        if ext is None:
            raise NotFoundError("Prórroga no encontrada")
        return ext

    # ------------------------------ Операции ------------------------------

    def create(self, req: ExtensionRequest, user_id: Optional[str]) -> Extension:
        with self.repo.transaction():
            contract = self._locked_contract(req.contrato_id)
            self._ensure_mutable(contract, "agregar")
            if req.fecha_desde < contract.fecha_fin:
                raise ValidationError(
                    "La prórroga debe comenzar en o después de la fecha de fin del contrato"
                )
            existing = self.repo.extensions_for_contract(req.contrato_id)
            ext = self.repo.insert_extension(Extension(
                id=str(uuid.uuid4()),
                contrato_id=req.contrato_id,
                numero_prorroga=next_extension_number(existing),
                fecha_desde=req.fecha_desde,
                fecha_hasta=req.fecha_hasta,
                motivo=req.motivo.upper(),
                observaciones=req.observaciones,
                created_by=user_id,
            ))
            self._refresh_contract(contract)
        logger.info("Prórroga #%s добавлена к договору %s (пользователь %s)",
                    ext.numero_prorroga, contract.numero, user_id)
        return ext

    def update(self, prorroga_id: str, req: ExtensionRequest) -> Extension:
        with self.repo.transaction():
            ext = self._get_or_404(prorroga_id)
            if req.contrato_id != ext.contrato_id:
                raise ValidationError("La prórroga no pertenece al contrato indicado")
            contract = self._locked_contract(ext.contrato_id)
            self._ensure_mutable(contract, "modificar")
            last = last_extension(self.repo.extensions_for_contract(ext.contrato_id))
            is_last = last is not None and last.id == ext.id
            ext.fecha_desde = req.fecha_desde
            ext.fecha_hasta = req.fecha_hasta
            ext.motivo = req.motivo.upper()
            ext.observaciones = req.observaciones
            updated = self.repo.update_extension(ext)
            if is_last:
                self._refresh_contract(contract)
        logger.info("Prórroga %s изменена", prorroga_id)
        return updated

    def delete(self, prorroga_id: str) -> None:
        with self.repo.transaction():
            ext = self._get_or_404(prorroga_id)
            contract = self._locked_contract(ext.contrato_id)
            self._ensure_mutable(contract, "eliminar")
            last = last_extension(self.repo.extensions_for_contract(ext.contrato_id))
            if last is None or last.id != ext.id:
                raise InvalidStateError("Solo se puede eliminar la última prórroga del contrato")
            self.repo.delete_extension(prorroga_id)
            self._refresh_contract(contract)
        logger.info("Prórroga #%s удалена из договора %s", ext.numero_prorroga, contract.numero)

    def get(self, prorroga_id: str) -> tuple[Extension, Contract]:
        ext = self._get_or_404(prorroga_id)
        contract = self.repo.get_contract(ext.contrato_id)
        if contract is None:
            raise NotFoundError("Contrato no encontrado")
        attach_professor_names(self.repo, [contract])
        return ext, contract

    def list(
        self, contrato_id: Optional[str], page: int, limit: int
    ) -> tuple[Page[Extension], dict[str, Contract]]:
        """Страница prórrogas и их договоры (с именем профессора) по id."""
        result = self.repo.list_extensions(contrato_id, page, limit)
        contracts: dict[str, Contract] = {}
        for e in result.items:
            if e.contrato_id not in contracts:
                c = self.repo.get_contract(e.contrato_id)
                if c is not None:
                    contracts[e.contrato_id] = c
        attach_professor_names(self.repo, contracts.values())
        return result, contracts

    # ------------------------------ Документы -----------------------------

    def export_excel(self, contrato_id: Optional[str]) -> bytes:
        if contrato_id:
            contract = self.repo.get_contract(contrato_id)
            if contract is None:
                raise NotFoundError("Contrato no encontrado")
            contracts = [contract]
        else:
            contracts = self.repo.all_contracts()
        attach_professor_names(self.repo, contracts)
        rows = [(c, e) for c in contracts for e in self.repo.extensions_for_contract(c.id or "")]
        professors = professors_by_id(self.repo, [c.profesor_id for c in contracts])
        return extensions_workbook(rows, professors)

    def supplement_pdf(self, prorroga_id: str) -> bytes:
        ext, contract = self.get(prorroga_id)
        professor = self.repo.get_professor(contract.profesor_id)
        return extension_supplement_pdf(contract, ext, professor)

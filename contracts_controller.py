from __future__ import annotations

from contracts_service import ContractsService
from dto import CloseContractRequest, ContractRequest, parse_contract_filter, parse_paging
from http_utils import (
    _qs,
    binary_response,
    current_user,
    empty_response,
    json_response,
    read_json_body,
)
from reports import XLSX_MIME
from validators import Validator


class ContractsController:
    def __init__(self, service: ContractsService) -> None:
        self.service = service

    # ===== list =====
    def index(self, environ, start_response):
        q = _qs(environ)
        page, limit = parse_paging(q)
        flt = parse_contract_filter(q)
        return json_response(start_response, 200, self.service.list(flt, page, limit).to_dict())

    # ===== detail =====
    def detail(self, environ, start_response, id: str):
        contract, extensions = self.service.get(Validator.path_uuid(id))
        body = contract.to_dict()
        body["prorrogas"] = [e.to_dict() for e in extensions]
        return json_response(start_response, 200, body)

    # ===== create / update / delete =====
    def create(self, environ, start_response):
        req = ContractRequest.from_payload(read_json_body(environ))
        created = self.service.create(req, current_user(environ))
        return json_response(start_response, 201, created.to_dict())

    def update(self, environ, start_response, id: str):
        cid = Validator.path_uuid(id)
        req = ContractRequest.from_payload(read_json_body(environ))
        updated = self.service.update(cid, req, current_user(environ))
        return json_response(start_response, 200, updated.to_dict())

    def delete(self, environ, start_response, id: str):
        self.service.delete(Validator.path_uuid(id))
        return empty_response(start_response)

    # ===== close =====
    def close(self, environ, start_response, id: str):
        cid = Validator.path_uuid(id)
        req = CloseContractRequest.from_payload(read_json_body(environ))
        closed = self.service.close(cid, req, current_user(environ))
        return json_response(start_response, 200, closed.to_dict())

    # ===== export =====
    def export_excel(self, environ, start_response):
        flt = parse_contract_filter(_qs(environ))
        content = self.service.export_excel(flt)
        return binary_response(start_response, content, XLSX_MIME, "contratos.xlsx")

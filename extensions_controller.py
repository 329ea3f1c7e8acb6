from __future__ import annotations

from dto import ExtensionRequest, parse_contract_id, parse_paging
from extensions_service import ExtensionManager
from http_utils import (
    _qs,
    binary_response,
    current_user,
    empty_response,
    json_response,
    read_json_body,
)
from reports import PDF_MIME, XLSX_MIME
from validators import Validator


def _contract_summary(contract) -> dict:
    return {
        "id": contract.id,
        "numero": contract.numero,
        "profesorId": contract.profesor_id,
        "profesor": contract.profesor_nombre,
        "paisId": contract.pais_id,
        "estado": contract.estado,
        "fechaFin": contract.fecha_fin.isoformat(),
    }


class ExtensionsController:
    def __init__(self, manager: ExtensionManager) -> None:
        self.manager = manager

    def index(self, environ, start_response):
        q = _qs(environ)
        page, limit = parse_paging(q)
        result, contracts = self.manager.list(parse_contract_id(q), page, limit)
        body = result.to_dict()
        for item in body["data"]:
            c = contracts.get(item["contratoId"])
            item["contrato"] = _contract_summary(c) if c else None
        return json_response(start_response, 200, body)

    def detail(self, environ, start_response, id: str):
        ext, contract = self.manager.get(Validator.path_uuid(id))
        body = ext.to_dict()
        body["contrato"] = _contract_summary(contract)
        return json_response(start_response, 200, body)

    def create(self, environ, start_response):
        req = ExtensionRequest.from_payload(read_json_body(environ))
        ext = self.manager.create(req, current_user(environ))
        return json_response(start_response, 201, ext.to_dict())

    def update(self, environ, start_response, id: str):
        pid = Validator.path_uuid(id)
        req = ExtensionRequest.from_payload(read_json_body(environ))
        return json_response(start_response, 200, self.manager.update(pid, req).to_dict())

    def delete(self, environ, start_response, id: str):
        self.manager.delete(Validator.path_uuid(id))
        return empty_response(start_response)

    def export_excel(self, environ, start_response):
        content = self.manager.export_excel(parse_contract_id(_qs(environ)))
        return binary_response(start_response, content, XLSX_MIME, "prorrogas.xlsx")

    def supplement(self, environ, start_response, id: str):
        pid = Validator.path_uuid(id)
        content = self.manager.supplement_pdf(pid)
        return binary_response(start_response, content, PDF_MIME, f"suplemento-prorroga-{pid}.pdf")

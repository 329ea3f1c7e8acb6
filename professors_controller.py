from __future__ import annotations

from dto import ProfessorRequest, parse_paging
from http_utils import _first, _qs, json_response, read_json_body
from professors_service import ProfessorsService
from validators import Validator


class ProfessorsController:
    def __init__(self, service: ProfessorsService) -> None:
        self.service = service

    def index(self, environ, start_response):
        q = _qs(environ)
        page, limit = parse_paging(q)
        search = _first(q, "search").strip() or None
        return json_response(start_response, 200, self.service.list(search, page, limit).to_dict())

    def detail(self, environ, start_response, id: str):
        prof = self.service.get(Validator.path_uuid(id))
        return json_response(start_response, 200, prof.to_dict())

    def create(self, environ, start_response):
        req = ProfessorRequest.from_payload(read_json_body(environ))
        return json_response(start_response, 201, self.service.create(req).to_dict())

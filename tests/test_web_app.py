"""
HTTP-слой: маршруты, коды ответов и тела ошибок через WSGI-вызов.
"""
import io
import json
import uuid
from wsgiref.util import setup_testing_defaults

import pytest

from config import AppConfig
from reports import XLSX_MIME
from tests.conftest import PAIS_ID
from web_app import application_factory


class Client:
    def __init__(self, app) -> None:
        self.app = app

    def request(self, method, path, body=None, *, query="", headers=None, raw=None):
        environ: dict = {}
        setup_testing_defaults(environ)
        data = raw if raw is not None else (
            json.dumps(body).encode("utf-8") if body is not None else b""
        )
        environ.update({
            "REQUEST_METHOD": method,
            "PATH_INFO": path,
            "QUERY_STRING": query,
            "CONTENT_LENGTH": str(len(data)),
            "wsgi.input": io.BytesIO(data),
            "HTTP_X_USER_ID": "user-1",
        })
        environ.update(headers or {})
        captured = {}

        def start_response(status, response_headers, exc_info=None):
            captured["status"] = int(status.split(" ", 1)[0])
            captured["headers"] = dict(response_headers)

        content = b"".join(self.app(environ, start_response))
        return captured["status"], captured["headers"], content

    def json(self, method, path, body=None, **kw):
        status, _, content = self.request(method, path, body, **kw)
        return status, (json.loads(content) if content else None)


@pytest.fixture
def client(tmp_path, contracts_repo, passports_repo):
    config = AppConfig(backend="yaml", yaml_path=str(tmp_path / "data.yaml"))
    return Client(application_factory(
        config, contracts_repo=contracts_repo, passports_repo=passports_repo
    ))


def _contract_body(profesor_id):
    return {
        "profesorId": profesor_id,
        "paisId": PAIS_ID,
        "fechaInicio": "2024-01-01",
        "fechaFin": "2024-12-31",
        "funcion": "docente",
        "centroTrabajo": "facultad",
        "salarioMensual": 950.5,
    }


def test_unknown_route(client):
    status, body = client.json("GET", "/x")
    assert status == 404
    assert body == {"statusCode": 404, "error": "Not Found", "message": "Cannot GET /x"}


def test_health(client):
    status, body = client.json("GET", "/health")
    assert status == 200
    assert body == {"status": "ok", "backend": "yaml"}


def test_path_id_must_be_uuid(client):
    status, body = client.json("GET", "/contratos/123")
    assert status == 400
    assert body["message"] == "Validation failed (uuid is expected)"


def test_invalid_json(client):
    status, body = client.json("POST", "/contratos", raw=b"{no json")
    assert status == 400
    assert body["error"] == "Bad Request"


def test_contract_and_extension_flow(client, professor):
    status, created = client.json("POST", "/contratos", _contract_body(professor.id))
    assert status == 201
    assert created["numero"] == "1/2024"
    assert created["salarioMensual"] == "950.5"
    assert created["createdBy"] == "user-1"

    status, body = client.json("POST", "/contratos", _contract_body(professor.id))
    assert status == 409

    status, ext = client.json("POST", "/prorrogas", {
        "contratoId": created["id"], "fechaDesde": "2025-01-01",
        "fechaHasta": "2025-06-30", "motivo": "continuidad",
    })
    assert status == 201
    assert ext["numeroProrroga"] == 1

    status, detail = client.json("GET", f"/contratos/{created['id']}")
    assert status == 200
    assert detail["estado"] == "PRORROGADO"
    assert detail["fechaFin"] == "2025-06-30"
    assert [p["id"] for p in detail["prorrogas"]] == [ext["id"]]

    status, page = client.json("GET", "/prorrogas", query=f"contratoId={created['id']}")
    assert status == 200
    assert page["meta"]["total"] == 1
    assert page["data"][0]["contrato"]["numero"] == "1/2024"

    status, _ = client.json("DELETE", f"/prorrogas/{ext['id']}")
    assert status == 204
    status, detail = client.json("GET", f"/contratos/{created['id']}")
    assert detail["estado"] == "ACTIVO"
    assert detail["fechaFin"] == "2024-12-31"

    status, _ = client.json("DELETE", f"/contratos/{created['id']}")
    assert status == 204
    status, _ = client.json("GET", f"/contratos/{created['id']}")
    assert status == 404


def test_extension_before_contract_end(client, contract):
    status, body = client.json("POST", "/prorrogas", {
        "contratoId": contract.id, "fechaDesde": "2024-12-01",
        "fechaHasta": "2025-06-30", "motivo": "m",
    })
    assert status == 400
    assert body["statusCode"] == 400


def test_close_contract(client, contract):
    status, body = client.json("POST", f"/contratos/{contract.id}/cerrar",
                               {"fechaCierre": "2024-10-01", "motivoCierre": "renuncia"})
    assert status == 200
    assert body["estado"] == "CERRADO"
    assert body["motivoCierre"] == "RENUNCIA"


def test_contract_list_meta(client, contract):
    status, body = client.json("GET", "/contratos", query="page=1&limit=5&estado=ACTIVO")
    assert status == 200
    assert body["meta"] == {"total": 1, "page": 1, "limit": 5, "totalPages": 1}
    assert body["data"][0]["profesor"] == "JUAN CARLOS PÉREZ GARCÍA"


def test_professor_endpoints(client):
    status, created = client.json("POST", "/profesores",
                                  {"ci": "85121212345", "nombre": "luis", "apellidos": "martí"})
    assert status == 201
    status, body = client.json("GET", f"/profesores/{created['id']}")
    assert status == 200
    assert body["apellidos"] == "MARTÍ"
    status, body = client.json("GET", "/profesores", query="search=mart")
    assert body["meta"]["total"] == 1


def test_export_excel(client, contract):
    status, headers, content = client.request("GET", "/contratos/exportar/excel")
    assert status == 200
    assert headers["Content-Type"] == XLSX_MIME
    assert "contratos.xlsx" in headers["Content-Disposition"]
    assert content[:2] == b"PK"


def test_supplement_pdf(client, contract):
    _, ext = client.json("POST", "/prorrogas", {
        "contratoId": contract.id, "fechaDesde": "2025-01-01",
        "fechaHasta": "2025-06-30", "motivo": "m",
    })
    status, headers, content = client.request("POST", f"/prorrogas/{ext['id']}/generar-suplemento")
    assert status == 200
    assert headers["Content-Type"] == "application/pdf"
    assert content.startswith(b"%PDF")


def test_csv_import_endpoint(client, professor):
    csv_bytes = (
        "Pasaporte #,No. Archivo,Colaborador,Fecha Vencimiento,Ubicación\n"
        'K000001,1,"PÉREZ GARCÍA, JUAN CARLOS",12/31/2030,\n'
    ).encode("utf-8")

    status, body = client.json("POST", "/pasaportes-import/csv", raw=csv_bytes,
                               headers={"HTTP_X_FILE_NAME": "lista.csv"})
    assert status == 201
    assert body["message"] == "Importación completada"
    assert body["resumen"]["exitosos"] == 1
    assert body["detalles"][0]["fila"] == 2

    status, history = client.json("GET", "/pasaportes-import/historial")
    assert [h["id"] for h in history] == [body["historialId"]]
    assert "detalle" not in history[0]

    status, detail = client.json("GET", f"/pasaportes-import/historial/{body['historialId']}")
    assert status == 200
    assert len(detail["detalle"]) == 1

    status, _ = client.json("GET", f"/pasaportes-import/historial/{body['historialId']}",
                            headers={"HTTP_X_USER_ID": "otro"})
    assert status == 404

    status, page = client.json("GET", "/pasaportes", query="numero=k000")
    assert page["meta"]["total"] == 1


def test_import_rejects_wrong_extension_and_empty_body(client):
    status, body = client.json("POST", "/pasaportes-import/csv", raw=b"a,b\n1,2\n",
                               headers={"HTTP_X_FILE_NAME": "lista.pdf"})
    assert status == 400
    assert body["message"] == "Solo se permiten archivos CSV"

    status, body = client.json("POST", "/pasaportes-import/excel", raw=b"",
                               headers={"HTTP_X_FILE_NAME": "lista.xlsx"})
    assert status == 400
    assert body["message"] == "No se ha proporcionado ningún archivo"


def test_unexpected_error_is_500(client, monkeypatch, contracts_repo):
    def boom(*args, **kwargs):
        raise RuntimeError("fallo")

    monkeypatch.setattr(contracts_repo, "list_contracts", boom)
    status, body = client.json("GET", "/contratos")
    assert status == 500
    assert body == {"message": "Error interno del servidor"}


def test_missing_extension_is_404(client):
    status, body = client.json("DELETE", f"/prorrogas/{uuid.uuid4()}")
    assert status == 404
    assert body["message"] == "Prórroga no encontrada"

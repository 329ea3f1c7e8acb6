# web_app.py
from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional
from wsgiref.simple_server import make_server

from config import AppConfig, load_config
from contracts_controller import ContractsController
from contracts_repo import BaseContractsRepo
from contracts_service import ContractsService
from errors import AppError
from extensions_controller import ExtensionsController
from extensions_service import ExtensionManager
from http_utils import current_user, json_response
from logging_setup import configure_logging
from passport_import import PassportImporter
from passports_controller import PassportsController
from passports_repo import BasePassportsRepo
from professors_controller import ProfessorsController
from professors_service import ProfessorsService

logger = logging.getLogger(__name__)

Handler = Callable[..., object]

_ID = r"(?P<id>[^/]+)"


# ---------- фабрика репозиториев ----------
def make_repos(config: AppConfig) -> tuple[BaseContractsRepo, BasePassportsRepo]:
    """Возвращает пару репозиториев согласно config.backend."""
    if config.backend == "db":
        from contracts_repo_db import ContractsRepoDB
        from passports_repo_db import PassportsRepoDB
        from pg_db import PgDB

        db = PgDB(**config.db.conn_params())
        contracts = ContractsRepoDB(db, auto_migrate=config.db.auto_migrate)
        # pasaportes ссылается на profesores: схема договоров создаётся первой
        return contracts, PassportsRepoDB(db, auto_migrate=config.db.auto_migrate)

    from contracts_repo_yaml import ContractsRepoYaml
    from passports_repo_yaml import PassportsRepoYaml
    from yaml_store import YamlStore

    store = YamlStore(config.yaml_path)
    return ContractsRepoYaml(store), PassportsRepoYaml(store)


class Router:
    """Таблица маршрутов: (метод, регулярное выражение пути, обработчик)."""

    def __init__(self) -> None:
        self._routes: list[tuple[str, re.Pattern[str], Handler]] = []

    def add(self, method: str, pattern: str, handler: Handler) -> None:
        self._routes.append((method, re.compile(f"^{pattern}/?$"), handler))

    def match(self, method: str, path: str) -> Optional[tuple[Handler, dict[str, str]]]:
        for m, rx, handler in self._routes:
            if m != method:
                continue
            found = rx.match(path)
            if found:
                return handler, found.groupdict()
        return None


def application_factory(
    config: Optional[AppConfig] = None,
    *,
    contracts_repo: Optional[BaseContractsRepo] = None,
    passports_repo: Optional[BasePassportsRepo] = None,
) -> Callable:
    config = config or load_config()
    if contracts_repo is None or passports_repo is None:
        contracts_repo, passports_repo = make_repos(config)

    contracts_ctrl = ContractsController(ContractsService(contracts_repo))
    extensions_ctrl = ExtensionsController(ExtensionManager(contracts_repo))
    professors_ctrl = ProfessorsController(ProfessorsService(contracts_repo))
    passports_ctrl = PassportsController(
        passports_repo, PassportImporter(passports_repo, contracts_repo)
    )

    def health(environ, start_response):
        try:
            ok = contracts_repo.ping()
        except Exception as e:
            logger.error("Проверка хранилища не прошла: %s", e)
            ok = False
        code = 200 if ok else 503
        return json_response(start_response, code, {
            "status": "ok" if ok else "error",
            "backend": config.backend,
        })

    r = Router()
    r.add("GET", "/health", health)

    # Профессора
    r.add("GET", "/profesores", professors_ctrl.index)
    r.add("POST", "/profesores", professors_ctrl.create)
    r.add("GET", f"/profesores/{_ID}", professors_ctrl.detail)

    # Договоры
    r.add("GET", "/contratos", contracts_ctrl.index)
    r.add("POST", "/contratos", contracts_ctrl.create)
    r.add("GET", "/contratos/exportar/excel", contracts_ctrl.export_excel)
    r.add("POST", f"/contratos/{_ID}/cerrar", contracts_ctrl.close)
    r.add("GET", f"/contratos/{_ID}", contracts_ctrl.detail)
    r.add("PUT", f"/contratos/{_ID}", contracts_ctrl.update)
    r.add("DELETE", f"/contratos/{_ID}", contracts_ctrl.delete)

    # Prórrogas
    r.add("GET", "/prorrogas", extensions_ctrl.index)
    r.add("POST", "/prorrogas", extensions_ctrl.create)
    r.add("GET", "/prorrogas/exportar/excel", extensions_ctrl.export_excel)
    r.add("POST", f"/prorrogas/{_ID}/generar-suplemento", extensions_ctrl.supplement)
    r.add("GET", f"/prorrogas/{_ID}", extensions_ctrl.detail)
    r.add("PUT", f"/prorrogas/{_ID}", extensions_ctrl.update)
    r.add("DELETE", f"/prorrogas/{_ID}", extensions_ctrl.delete)

    # Паспорта и импорт
    r.add("GET", "/pasaportes", passports_ctrl.index)
    r.add("POST", "/pasaportes-import/csv", passports_ctrl.import_csv)
    r.add("POST", "/pasaportes-import/excel", passports_ctrl.import_excel)
    r.add("GET", "/pasaportes-import/historial", passports_ctrl.history)
    r.add("GET", f"/pasaportes-import/historial/{_ID}", passports_ctrl.history_detail)

    def dispatch(environ, start_response):
        method = environ.get("REQUEST_METHOD", "GET").upper()
        path = environ.get("PATH_INFO", "/") or "/"
        found = r.match(method, path)
        if found is None:
            return json_response(start_response, 404, {
                "statusCode": 404, "error": "Not Found", "message": f"Cannot {method} {path}",
            })
        handler, params = found
        try:
            return handler(environ, start_response, **params)
        except AppError as e:
            return json_response(start_response, e.status, e.to_dict())
        except Exception:
            logger.exception("Необработанная ошибка в %s %s", method, path)
            return json_response(start_response, 500, {"message": "Error interno del servidor"})

    def app(environ, start_response):
        method = environ.get("REQUEST_METHOD", "GET").upper()
        path = environ.get("PATH_INFO", "/") or "/"
        logger.info("→ %s %s - User: %s", method, path, current_user(environ) or "anonymous")
        started = time.perf_counter()
        captured: dict[str, int] = {}

        def logging_start_response(status, headers, exc_info=None):
            captured["status"] = int(status.split(" ", 1)[0])
            return start_response(status, headers, exc_info)

        body = dispatch(environ, logging_start_response)
        code = captured.get("status", 500)
        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.ERROR if code >= 500 else logging.WARNING if code >= 400 else logging.INFO
        logger.log(level, "← %s %s %s - %dms", method, path, code, elapsed_ms)
        return body

    return app


def main() -> None:
    config = load_config()
    configure_logging(config.log_level)
    app = application_factory(config)
    with make_server(config.host, config.port, app) as httpd:
        logger.info(
            "Web-приложение запущено по адресу: http://%s:%s/ (источник данных = %s)",
            config.host, config.port, config.backend,
        )
        httpd.serve_forever()


if __name__ == "__main__":
    main()

# config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import yaml  # type: ignore[import-untyped]

BACKENDS = ("db", "yaml")
DEFAULT_CONFIG_PATH = "config.yaml"


@dataclass
class DbConfig:
    host: str = "127.0.0.1"
    port: int = 5432
    dbname: str = "cooperacion_db"
    user: str = "postgres"
    password: str = ""
    dsn: Optional[str] = None
    auto_migrate: bool = True

    def conn_params(self) -> dict[str, Any]:
        """Параметры для psycopg2.connect: либо dsn, либо отдельные поля."""
        if self.dsn:
            return {"dsn": self.dsn}
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
        }


@dataclass
class AppConfig:
    backend: str = "db"  # 'db' | 'yaml'
    db: DbConfig = field(default_factory=DbConfig)
    yaml_path: str = "cooperacion.yaml"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"


def _read_yaml(path: str) -> dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: конфигурация должна быть словарём.")
    return data


def load_config(path: Optional[str] = None, env: Mapping[str, str] = os.environ) -> AppConfig:
    """
    Файл YAML (по умолчанию config.yaml или путь из COOPERACION_CONFIG),
    поверх него переменные окружения. Нет файла - значения по умолчанию.
    """
    raw = _read_yaml(path or env.get("COOPERACION_CONFIG") or DEFAULT_CONFIG_PATH)

    db_raw = raw.get("db") or {}
    if not isinstance(db_raw, dict):
        raise ValueError("Секция db должна быть словарём.")
    db = DbConfig(**{k: v for k, v in db_raw.items() if k in DbConfig.__dataclass_fields__})

    cfg = AppConfig(
        backend=str(raw.get("backend", AppConfig.backend)),
        db=db,
        yaml_path=str(raw.get("yaml_path", AppConfig.yaml_path)),
        host=str(raw.get("host", AppConfig.host)),
        port=int(raw.get("port", AppConfig.port)),
        log_level=str(raw.get("log_level", AppConfig.log_level)),
    )

    # переменные окружения важнее файла
    if env.get("DATABASE_URL"):
        cfg.db.dsn = env["DATABASE_URL"]
    if env.get("COOPERACION_BACKEND"):
        cfg.backend = env["COOPERACION_BACKEND"]
    if env.get("COOPERACION_YAML_PATH"):
        cfg.yaml_path = env["COOPERACION_YAML_PATH"]
    if env.get("COOPERACION_PORT"):
        cfg.port = int(env["COOPERACION_PORT"])
    if env.get("COOPERACION_LOG_LEVEL"):
        cfg.log_level = env["COOPERACION_LOG_LEVEL"]

    cfg.backend = cfg.backend.lower()
    if cfg.backend not in BACKENDS:
        raise ValueError(f"Неизвестный источник данных: {cfg.backend!r} (ожидается db или yaml)")
    cfg.log_level = cfg.log_level.upper()
    return cfg

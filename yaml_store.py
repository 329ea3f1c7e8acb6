# yaml_store.py
from __future__ import annotations

import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import yaml  # type: ignore[import-untyped]


class YamlStore:
    """
    Документ YAML вида {имя_коллекции: [записи, ...]}.

    Чтение вне транзакции каждый раз перечитывает файл. Внутри transaction()
    поток-владелец работает с копией документа в памяти, файл
    перезаписывается один раз при успешном выходе из внешней транзакции.
    При исключении изменения отбрасываются.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.RLock()
        self._pending: dict[str, list[dict[str, Any]]] | None = None
        self._owner: int | None = None
        self._depth = 0

    def _read_doc(self) -> dict[str, list[dict[str, Any]]]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError("YAML должен быть словарём коллекций.")
        for name, items in data.items():
            if items is None:
                data[name] = []
            elif not isinstance(items, list):
                raise ValueError(f"Коллекция {name!r} в YAML должна быть списком.")
        return data

    def _write_doc(self, doc: dict[str, list[dict[str, Any]]]) -> None:
        folder = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(folder, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(
                doc,
                f,
                allow_unicode=True,
                sort_keys=False,
                indent=2,
                default_flow_style=False,
            )
        os.replace(tmp_path, self.path)

    @contextmanager
    def transaction(self) -> Iterator[dict[str, list[dict[str, Any]]]]:
        with self._lock:
            outer = self._depth == 0
            if outer:
                self._pending = self._read_doc()
                self._owner = threading.get_ident()
            self._depth += 1
            try:
                assert self._pending is not None
                yield self._pending
                if outer:
                    self._write_doc(self._pending)
            finally:
                self._depth -= 1
                if outer:
                    self._pending = None
                    self._owner = None

    def collection(self, name: str) -> list[dict[str, Any]]:
        """Список записей коллекции. В своей транзакции это изменяемый список."""
        if self._pending is not None and self._owner == threading.get_ident():
            return self._pending.setdefault(name, [])
        return list(self._read_doc().get(name, []))

    def ping(self) -> bool:
        self._read_doc()
        return True

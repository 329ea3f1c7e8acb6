# http_utils.py
from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from http import HTTPStatus
from typing import Any, Callable, Dict, Iterable
from urllib.parse import parse_qs

from errors import ValidationError

StartResponse = Callable[..., Any]

MAX_BODY_BYTES = 20 * 1024 * 1024


def _qs(environ) -> Dict[str, list[str]]:
    return parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True)


def _first(q: Dict[str, list[str]], key: str, default: str = "") -> str:
    return (q.get(key, [default]) or [default])[0]


def status_line(code: int) -> str:
    return f"{code} {HTTPStatus(code).phrase}"


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_response(start_response: StartResponse, code: int, payload: Any) -> Iterable[bytes]:
    body = json.dumps(payload, ensure_ascii=False, default=_json_default).encode("utf-8")
    start_response(status_line(code), [
        ("Content-Type", "application/json; charset=utf-8"),
        ("Content-Length", str(len(body))),
    ])
    return [body]


def empty_response(start_response: StartResponse, code: int = 204) -> Iterable[bytes]:
    start_response(status_line(code), [])
    return [b""]


def binary_response(
    start_response: StartResponse, content: bytes, content_type: str, filename: str
) -> Iterable[bytes]:
    start_response("200 OK", [
        ("Content-Type", content_type),
        ("Content-Disposition", f'attachment; filename="{filename}"'),
        ("Content-Length", str(len(content))),
    ])
    return [content]


def read_body(environ) -> bytes:
    try:
        size = int(environ.get("CONTENT_LENGTH", "0") or 0)
    except ValueError:
        size = 0
    if size > MAX_BODY_BYTES:
        raise ValidationError("El archivo excede el tamaño máximo permitido")
    return environ["wsgi.input"].read(size) if size > 0 else b""


def read_json_body(environ) -> dict[str, Any]:
    raw = read_body(environ)
    if not raw:
        return {}
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise ValidationError("El cuerpo de la petición no es un JSON válido") from None
    if not isinstance(data, dict):
        raise ValidationError("El cuerpo de la petición debe ser un objeto JSON")
    return data


def current_user(environ) -> str | None:
    """Идентификатор пользователя из заголовка X-User-Id."""
    return (environ.get("HTTP_X_USER_ID") or "").strip() or None

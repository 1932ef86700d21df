# -*- coding: utf-8 -*-
"""
Dünne Schicht um ``client.chat.completions.create``.

- ``temperature`` entfällt für Modelle mit fester Sampling-Temperatur.
- Meldet der Server einen nicht unterstützten Parameter, wird genau einmal
  mit angepasstem Parameter neu gesendet (``max_completion_tokens`` ↔
  ``max_tokens`` bzw. ohne ``temperature``).
- Fehlende ``temperature``-Unterstützung wird in ``config.runtime.ini`` vermerkt.

Echte Fehler (Netz, Kontingent, 5xx) werden nicht wiederholt.
"""
from __future__ import annotations

import configparser
import json
import logging
import os
import threading
import time
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from runtime_config import CONFIG_MAIN_PATH, load_merged_config, update_runtime_section

if TYPE_CHECKING:  # pragma: no cover - type hinting only
    from openai import OpenAI

logger = logging.getLogger(__name__)

FIXED_SAMPLING_MODELS = {"gpt-5-nano", "gpt-5-mini", "o1-mini", "o3-mini"}

_TOKEN_LIMIT_ALIASES = {
    "max_completion_tokens": "max_tokens",
    "max_tokens": "max_completion_tokens",
}
_UNSUPPORTED_CODES = {"unsupported_parameter", "unsupported_value", "invalid_request_error"}
_CAPABILITY_SUFFIX = "_supports_temperature"


def _load_config() -> configparser.ConfigParser:
    try:
        return load_merged_config()
    except (configparser.Error, OSError):
        logger.exception("Konfiguration unvollständig, lese nur config.ini")
    cfg = configparser.ConfigParser()
    try:
        cfg.read(CONFIG_MAIN_PATH, encoding="utf-8-sig")
    except (configparser.Error, OSError):
        logger.exception("config.ini konnte nicht gelesen werden")
    return cfg


_CONFIG = _load_config()

_UNSUPPORTED_TEMPERATURE_MODELS = {
    key[: -len(_CAPABILITY_SUFFIX)]
    for key, value in (_CONFIG.items("LLM_CAPABILITIES") if _CONFIG.has_section("LLM_CAPABILITIES") else [])
    if key.endswith(_CAPABILITY_SUFFIX) and value.strip() == "0"
}

_USER_AGENT = "{}/{}".format(
    os.getenv("APP_USER_AGENT_PRODUCT") or _CONFIG.get("APP", "user_agent_product", fallback="Abrechnungshelfer"),
    _CONFIG.get("APP", "version", fallback="dev"),
)


def _persist_temperature_flag(model: str, supported: bool) -> None:
    value = "1" if supported else "0"
    try:
        if not _CONFIG.has_section("LLM_CAPABILITIES"):
            _CONFIG.add_section("LLM_CAPABILITIES")
        _CONFIG.set("LLM_CAPABILITIES", model + _CAPABILITY_SUFFIX, value)
        update_runtime_section("LLM_CAPABILITIES", {model + _CAPABILITY_SUFFIX: value})
    except (configparser.Error, OSError):
        logger.exception("Temperatur-Fähigkeit von %s nicht gespeichert", model)


# --- Drossel -----------------------------------------------------------------

_THROTTLE_LOCK = threading.Lock()
_LAST_CALL_TS: float = 0.0


def min_call_interval() -> float:
    """[LLM] min_call_interval_seconds, begrenzt auf 0..1000 Sekunden."""
    raw = _CONFIG.get("LLM", "min_call_interval_seconds", fallback="0") or "0"
    try:
        return float(max(0, min(1000, int(raw))))
    except ValueError:
        logger.warning("Ungültiger Wert für [LLM] min_call_interval_seconds: %r", raw)
        return 0.0


def enforce_llm_min_interval() -> None:
    """Wartet, bis seit dem letzten Aufruf das Mindestintervall vergangen ist (prozesslokal)."""
    global _LAST_CALL_TS
    interval = min_call_interval()
    if interval <= 0:
        return
    with _THROTTLE_LOCK:
        if _LAST_CALL_TS:
            wait = interval - (time.monotonic() - _LAST_CALL_TS)
            if wait > 0:
                logger.info("LLM_THROTTLE_WAIT: %.2fs (min %.2fs)", wait, interval)
                time.sleep(wait)
        _LAST_CALL_TS = time.monotonic()


# --- Client ------------------------------------------------------------------

_clients: Dict[str, "OpenAI"] = {}
_CLIENT_LOCK = threading.Lock()


def get_client(api_key: Optional[str] = None) -> "OpenAI":
    """Ein Client pro Key; ``max_retries=0`` schaltet die SDK-Wiederholungen ab."""
    from openai import OpenAI

    with _CLIENT_LOCK:
        client = _clients.get(api_key or "")
        if client is None:
            client = OpenAI(api_key=api_key or None, max_retries=0, default_headers={"User-Agent": _USER_AGENT})
            _clients[api_key or ""] = client
    return client


# --- Fehlerauswertung -----------------------------------------------------------

def _parse_json(text: Any) -> Dict[str, Any]:
    if isinstance(text, str) and text.strip().startswith("{"):
        try:
            return json.loads(text)
        except ValueError:
            return {}
    return {}


def error_payload(exc: Exception) -> Dict[str, Any]:
    """Fehler-Body als ``{"error": {...}}``; leer, wenn nichts Verwertbares vorliegt."""
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        return body if "error" in body else {"error": body}
    resp = getattr(exc, "response", None)
    if resp is not None:
        try:
            data = resp.json()
            if isinstance(data, dict):
                return data
        except (ValueError, AttributeError, TypeError):
            return _parse_json(getattr(resp, "text", None))
    return _parse_json(getattr(exc, "message", None) or str(exc))


def _error_details(exc: Exception) -> Dict[str, Any]:
    err = error_payload(exc).get("error")
    return err if isinstance(err, dict) else {}


def error_code(exc: Exception) -> Optional[str]:
    err = _error_details(exc)
    return err.get("code") or err.get("type")


def is_insufficient_quota(exc: Exception) -> bool:
    return getattr(exc, "status_code", None) == 429 and error_code(exc) == "insufficient_quota"


def is_unsupported_param(exc: Exception, param: str) -> bool:
    """400er der Form ``{'code': 'unsupported_value', 'param': <param>}`` oder passende Meldung."""
    err = _error_details(exc)
    if err.get("code") in _UNSUPPORTED_CODES and err.get("param") == param:
        return True
    msg = " ".join([str(err.get("message") or ""), str(getattr(exc, "message", "")), str(exc)]).lower()
    if param.lower() not in msg:
        return False
    return "unsupported" in msg or "invalid" in msg or "only the default" in msg


def _adjusted_kwargs(model: str, exc: Exception, kwargs: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Parameter für den einen Neuversuch oder ``None``, wenn der Fehler echt ist."""
    for param, alias in _TOKEN_LIMIT_ALIASES.items():
        if param in kwargs and is_unsupported_param(exc, param):
            logger.warning("'%s' verlangt '%s' statt '%s', sende erneut.", model, alias, param)
            adjusted = dict(kwargs)
            adjusted[alias] = adjusted.pop(param)
            return adjusted
    if "temperature" in kwargs and is_unsupported_param(exc, "temperature"):
        logger.warning("'%s' unterstützt 'temperature' nicht, sende ohne und merke es mir.", model)
        _UNSUPPORTED_TEMPERATURE_MODELS.add(model)
        _persist_temperature_flag(model, False)
        return {k: v for k, v in kwargs.items() if k != "temperature"}
    return None


def chat_completion_safe(
    *,
    model: str,
    messages: List[Dict[str, Any]],
    client: Optional["OpenAI"] = None,
    **kwargs: Any,
):
    """``client.chat.completions.create`` mit einmaliger Parameter-Anpassung."""
    client = client or get_client()
    if "temperature" in kwargs and (model in FIXED_SAMPLING_MODELS or model in _UNSUPPORTED_TEMPERATURE_MODELS):
        logger.debug("Model %s: 'temperature' wird weggelassen.", model)
        kwargs.pop("temperature")
    enforce_llm_min_interval()
    try:
        return client.chat.completions.create(model=model, messages=messages, **kwargs)
    except Exception as exc:
        adjusted = _adjusted_kwargs(model, exc, kwargs)
        if adjusted is None:
            raise
        return client.chat.completions.create(model=model, messages=messages, **adjusted)

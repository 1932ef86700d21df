"""Flask-Backend des Abrechnungshelfers.

Endpunkte:

* ``GET /health`` – Lebenszeichen mit Uptime.
* ``GET /api/check`` – zeigt, welche Geheimnisse konfiguriert sind (nie die Werte).
* ``POST /api/abrechnen`` – Freitext → Positionsvorschlag bzw. Rückfrage (JWT nötig).
* ``GET /api/version`` – App-Version und Stand des Katalog-Index.
* ``GET /`` – statisches Frontend aus ``public/``.
"""

from __future__ import annotations

import json
import logging
import time
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from flask import Flask, abort, g, jsonify, request, send_from_directory
from flask_compress import Compress
from jose import JWTError, jwt
from openai import APIConnectionError, APIStatusError
from werkzeug.middleware.proxy_fix import ProxyFix

from abrechnung import BillingAssistant, NoCandidatesError, UpstreamModelError
from katalog.finder import CandidateFinder
from katalog.models import CatalogIndex
from katalog.storage import load_catalog_index, load_rules
from log_setup import DETAIL_LOGGER, configure_logging
from openai_wrapper import (
    chat_completion_safe,
    error_payload,
    get_client,
    is_insufficient_quota,
)
from runtime_config import AppSettings, load_merged_config, load_settings
from session_store import InMemorySessionStore
from synonyms.expander import set_synonyms_enabled
from synonyms.storage import load_synonyms
from utils import mask_secret

# --- Konfiguration ---
load_dotenv()

config = load_merged_config()
LOG_FLAGS = configure_logging(config)
logger = logging.getLogger(__name__)
detail_logger = logging.getLogger(DETAIL_LOGGER)

SETTINGS: AppSettings = load_settings(config)

START_TIME = time.monotonic()

ERROR_MISSING_PROMPT = "Fehlendes Feld: prompt"
ERROR_MISSING_OPENAI_KEY = "Serverfehler: OPENAI_API_KEY fehlt"
ERROR_MISSING_JWT_SECRET = "Serverfehler: SUPABASE_JWT_SECRET fehlt"
ERROR_NO_TOKEN = "Kein Token"
ERROR_INVALID_TOKEN = "Ungültiges/abgelaufenes Token"
ERROR_NOT_ALLOWED = "Nicht freigeschaltet"
ERROR_QUOTA = "OpenAI-Kontingent erschöpft (API-Billing prüfen)."
ERROR_EMPTY_COMPLETION = "Leere Antwort vom Modell."

# --- Daten ---
catalog_index: CatalogIndex = CatalogIndex()
assistant: Optional[BillingAssistant] = None
session_store = InMemorySessionStore(ttl_seconds=SETTINGS.session_ttl_seconds)


def load_data(settings: AppSettings) -> BillingAssistant:
    """Liest Katalog, Regeln und Synonyme und baut die Pipeline neu auf."""
    global catalog_index, assistant
    catalog_index = load_catalog_index(settings.catalog_index_path)
    rules = load_rules(settings.rules_path)
    set_synonyms_enabled(settings.synonyms_enabled)
    synonyms = load_synonyms(settings.synonyms_path) if settings.synonyms_enabled else None
    finder = CandidateFinder(
        catalog_index,
        synonyms=synonyms,
        rules=rules,
        limit=settings.candidate_limit,
        threshold=settings.fuzzy_threshold,
        distance=settings.fuzzy_distance,
    )
    assistant = BillingAssistant(finder, session_store, llm=lambda messages: call_llm(messages))
    logger.info(
        "Daten geladen: %s Katalogeinträge (%s), %s Regeln, %s Synonyme",
        len(catalog_index), ", ".join(sorted(catalog_index.by_payer)) or "-",
        len(rules), len(synonyms) if synonyms is not None else 0,
    )
    return assistant


# --- LLM ---
def call_llm(messages: List[Dict[str, str]]) -> Tuple[str, Optional[Dict[str, Any]]]:
    """Ein Chat-Completion-Aufruf; Fehler werden als :class:`UpstreamModelError` gemeldet."""
    settings = SETTINGS
    if LOG_FLAGS.llm_prompt:
        detail_logger.info("LLM Prompt: %s", json.dumps(messages, ensure_ascii=False))
    logger.info(
        "Starte OpenAI-Request (model=%s, key=%s)",
        settings.model, mask_secret(settings.openai_api_key),
    )
    try:
        completion = chat_completion_safe(
            model=settings.model,
            messages=messages,
            client=get_client(settings.openai_api_key),
            temperature=settings.temperature,
            max_completion_tokens=settings.max_completion_tokens,
        )
    except APIStatusError as exc:
        body = error_payload(exc)
        logger.error("OpenAI-Fehler %s: %s", exc.status_code, body or exc)
        if is_insufficient_quota(exc):
            raise UpstreamModelError(ERROR_QUOTA, exc.status_code) from exc
        details = json.dumps(body, ensure_ascii=False) if body else (str(exc) or "keine Details")
        raise UpstreamModelError(f"OpenAI-Fehler {exc.status_code}: {details}", exc.status_code) from exc
    except APIConnectionError as exc:
        logger.error("OpenAI nicht erreichbar: %s", exc)
        raise UpstreamModelError(f"OpenAI nicht erreichbar: {exc}") from exc

    choices = getattr(completion, "choices", None) or []
    content = choices[0].message.content if choices else None
    output = (content or "").strip()
    if not output:
        raise UpstreamModelError(ERROR_EMPTY_COMPLETION)
    usage_obj = getattr(completion, "usage", None)
    usage = usage_obj.model_dump() if usage_obj is not None else None
    if LOG_FLAGS.llm_output:
        detail_logger.info("LLM Output: %s", output)
    if LOG_FLAGS.tokens and usage:
        detail_logger.info("Token-Verbrauch: %s", json.dumps(usage, ensure_ascii=False))
    return output, usage


# --- Auth ---
def _bearer_token() -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        token = auth[len("Bearer "):].strip()
        return token or None
    return None


def require_auth(view: Callable[..., Any]) -> Callable[..., Any]:
    """Prüft das Supabase-JWT (HS256) und optional die E-Mail-Freigabeliste."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        token = _bearer_token()
        if not token:
            return jsonify({"error": ERROR_NO_TOKEN}), 401
        settings = SETTINGS
        if not settings.supabase_jwt_secret:
            return jsonify({"error": ERROR_MISSING_JWT_SECRET}), 500
        decode_kwargs: Dict[str, Any] = {"algorithms": ["HS256"]}
        if settings.jwt_audience:
            decode_kwargs["audience"] = settings.jwt_audience
        else:
            decode_kwargs["options"] = {"verify_aud": False}
        try:
            payload = jwt.decode(token, settings.supabase_jwt_secret, **decode_kwargs)
        except JWTError as exc:
            logger.info("JWT abgelehnt: %s", exc)
            return jsonify({"error": ERROR_INVALID_TOKEN}), 401
        g.user = {
            "id": payload.get("sub"),
            "email": payload.get("email"),
            "role": payload.get("role"),
        }
        if settings.allowed_emails:
            email = (g.user.get("email") or "").lower()
            if email not in settings.allowed_emails:
                logger.warning("Nicht freigeschaltete Adresse: %s", email or "unbekannt")
                return jsonify({"error": ERROR_NOT_ALLOWED}), 403
        return view(*args, **kwargs)

    return wrapper


def _session_key() -> str:
    user = getattr(g, "user", None) or {}
    if user.get("id"):
        return f"user:{user['id']}"
    return f"addr:{request.remote_addr or 'unbekannt'}"


def create_app() -> Flask:
    """
    Erstellt die Flask-Instanz samt Daten-Load.
    Gunicorn ruft diese Factory einmal pro Worker auf.
    """
    app = Flask(__name__, static_folder=None)
    app.config.update(
        JSON_AS_ASCII=False,
        JSONIFY_MIMETYPE="application/json; charset=utf-8",
        MAX_CONTENT_LENGTH=1024 * 1024,
    )
    app.json.ensure_ascii = False
    # X-Forwarded-For vom vorgeschalteten Proxy übernehmen
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)  # type: ignore[method-assign]

    if assistant is None:
        logger.info("Initialer Daten-Load beim App-Start …")
        load_data(SETTINGS)

    @app.after_request
    def _cors_and_charset(response):
        """CORS für die API und explizites UTF-8 für Textantworten."""
        response.headers.setdefault("Access-Control-Allow-Origin", SETTINGS.cors_origin)
        response.headers.setdefault("Access-Control-Allow-Headers", "Authorization, Content-Type")
        response.headers.setdefault("Access-Control-Allow-Methods", "GET, POST, OPTIONS")
        content_type = response.headers.get("Content-Type")
        if content_type:
            lowered = content_type.lower()
            needs_charset = "charset=" not in lowered and (
                lowered.startswith("text/")
                or lowered.startswith("application/json")
                or lowered.startswith("application/javascript")
            )
            if needs_charset:
                response.headers["Content-Type"] = f"{content_type}; charset=utf-8"
        return response

    Compress(app)
    register_routes(app)
    return app


def register_routes(app: Flask) -> None:
    @app.route("/health")
    def health() -> Any:
        return jsonify({"status": "ok", "uptime": round(time.monotonic() - START_TIME, 3)})

    @app.route("/api/check")
    def api_check() -> Any:
        """Zeigt nur, ob Geheimnisse vorhanden sind, nie deren Werte."""
        settings = SETTINGS
        key = settings.openai_api_key
        return jsonify({
            "databaseUrl": "✅ vorhanden" if settings.database_url else "❌ fehlt",
            "openAiKey": f"✅ {mask_secret(key)}" if key else "❌ fehlt",
            "supabaseUrl": "✅ vorhanden" if settings.supabase_url else "❌ fehlt",
            "supabaseJwtSecret": "✅ vorhanden" if settings.supabase_jwt_secret else "❌ fehlt",
            "allowedEmails": f"✅ {len(settings.allowed_emails)}" if settings.allowed_emails else "—",
            "model": settings.model,
        })

    @app.route("/api/version")
    def api_version() -> Any:
        """Return the configured application version and the catalog build date."""
        return jsonify({
            "version": SETTINGS.version,
            "catalog_generated_at": catalog_index.generated_at or None,
            "catalog_entries": len(catalog_index),
        })

    @app.route("/api/abrechnen", methods=["POST", "OPTIONS"])
    def api_abrechnen() -> Any:
        if request.method == "OPTIONS":
            return "", 204
        return _abrechnen()

    @app.route("/")
    def index_route() -> Any:
        """Liefert das statische Frontend aus."""
        return send_from_directory(str(SETTINGS.public_dir), "index.html")

    @app.route("/<path:filename>")
    def serve_static(filename: str) -> Any:
        file_path = Path(filename)
        # Keine versteckten Dateien oder Python-Quellen ausliefern
        if file_path.suffix in {".py", ".env"} or any(p.startswith(".") for p in file_path.parts):
            logger.warning("Zugriff verweigert (sensible Datei): %s", filename)
            abort(404)
        return send_from_directory(str(SETTINGS.public_dir), filename)


@require_auth
def _abrechnen() -> Any:
    request_id = f"req_{time.time_ns()}"
    start_time = time.time()
    data = request.get_json(silent=True) or {}
    prompt = data.get("prompt") if isinstance(data, dict) else None
    user_input = str(prompt).strip() if prompt is not None else ""
    if not user_input:
        return jsonify({"error": ERROR_MISSING_PROMPT}), 400
    if not SETTINGS.openai_api_key:
        return jsonify({"error": ERROR_MISSING_OPENAI_KEY}), 500

    logger.info("[%s] --- Start /api/abrechnen (user=%s) ---", request_id, g.user.get("email") or "unbekannt")
    if LOG_FLAGS.input_text:
        detail_logger.info("[%s] InputText: %s", request_id, user_input.replace("\r", "\\r").replace("\n", "\\n"))

    if assistant is None:
        load_data(SETTINGS)
    try:
        reply = assistant.handle(_session_key(), user_input)
    except NoCandidatesError as exc:
        logger.info("[%s] Keine Kandidaten nach Rückfrage", request_id)
        return jsonify({"error": str(exc)}), 400
    except UpstreamModelError as exc:
        return jsonify({"error": str(exc)}), 502
    except Exception as exc:
        logger.exception("[%s] Unbehandelter Fehler in /api/abrechnen", request_id)
        return jsonify({"error": str(exc) or "Unbekannter Serverfehler"}), 500

    logger.info(
        "[%s] Antwort '%s' (payer=%s, Kandidaten=%s) in %.2fs",
        request_id, reply.kind, reply.payer, len(reply.candidates), time.time() - start_time,
    )
    return jsonify(reply.to_json())


app: Flask = create_app()


def _run_local() -> None:
    """Lokaler Debug-Server."""
    port = SETTINGS.port
    logger.warning("🚀 Lokal verfügbar auf http://127.0.0.1:%s", port)
    app.run(host="0.0.0.0", port=port, debug=True)


if __name__ == "__main__":
    _run_local()

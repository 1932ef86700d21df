"""Helper-Funktionen, um statische und dynamische Konfiguration zu trennen.

Die Anwendung liest weiterhin ``config.ini`` als Basis. Laufzeitwerte wie
erkannte Modellfähigkeiten werden hingegen in
``config.runtime.ini`` gespeichert. So bleiben Kommentare in der Hauptdatei
erhalten und Versionsstände lassen sich sauber nachverfolgen.
"""

from __future__ import annotations

import configparser
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

CONFIG_MAIN_PATH = Path(__file__).resolve().parent / "config.ini"
CONFIG_RUNTIME_PATH = Path(__file__).resolve().parent / "config.runtime.ini"


def load_base_config() -> configparser.ConfigParser:
    """Lädt ausschließlich die statische Grundkonfiguration."""
    cfg = configparser.ConfigParser()
    cfg.read(CONFIG_MAIN_PATH, encoding="utf-8-sig")
    return cfg


def load_runtime_config() -> configparser.ConfigParser:
    """Lädt nur die dynamische Laufzeitkonfiguration."""
    cfg = configparser.ConfigParser()
    if CONFIG_RUNTIME_PATH.exists():
        cfg.read(CONFIG_RUNTIME_PATH, encoding="utf-8-sig")
    return cfg


def load_merged_config() -> configparser.ConfigParser:
    """Kombiniert statische und dynamische Konfiguration."""
    base = load_base_config()
    runtime = load_runtime_config()
    for section in runtime.sections():
        if not base.has_section(section):
            base.add_section(section)
        for key, value in runtime.items(section):
            base.set(section, key, value)
    return base


def save_runtime_config(cfg: configparser.ConfigParser) -> None:
    """Persistiert die Laufzeitdaten in ``config.runtime.ini``."""
    CONFIG_RUNTIME_PATH.parent.mkdir(parents=True, exist_ok=True)
    with CONFIG_RUNTIME_PATH.open("w", encoding="utf-8") as fh:
        cfg.write(fh)


def update_runtime_section(section: str, updates: Dict[str, str]) -> None:
    """Aktualisiert gezielt ein Konfigurations-Teilsegment."""
    cfg = load_runtime_config()
    if not cfg.has_section(section):
        cfg.add_section(section)
    for key, value in updates.items():
        cfg.set(section, key, value)
    save_runtime_config(cfg)


# --- Typisierte Anwendungseinstellungen -------------------------------------

BASE_DIR = CONFIG_MAIN_PATH.parent


@dataclass(frozen=True)
class AppSettings:
    """Alle Werte, die Server und Pipeline beim Start benötigen.

    Geheimnisse stammen ausschliesslich aus der Umgebung (``.env``), alle
    anderen Werte aus ``config.ini`` mit Umgebungs-Override.
    """

    version: str = "dev"
    port: int = 3000
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_completion_tokens: int = 1000
    candidate_limit: int = 12
    fuzzy_threshold: float = 0.35
    fuzzy_distance: int = 2
    synonyms_enabled: bool = True
    session_ttl_seconds: int = 300
    catalog_index_path: Path = BASE_DIR / "catalogs" / "index.json"
    synonyms_path: Path = BASE_DIR / "catalogs" / "synonyms.json"
    rules_path: Path = BASE_DIR / "rules" / "catalog_rules.json"
    public_dir: Path = BASE_DIR / "public"
    cors_origin: str = "*"
    allowed_emails: Tuple[str, ...] = ()
    openai_api_key: str = ""
    supabase_jwt_secret: str = ""
    supabase_url: str = ""
    database_url: str = ""
    jwt_audience: str = ""


def _resolve(path_value: str) -> Path:
    path = Path(path_value)
    return path if path.is_absolute() else BASE_DIR / path


def parse_email_list(raw: Optional[str]) -> Tuple[str, ...]:
    """``ALLOWED_EMAILS`` (kommagetrennt) → kleingeschriebene Adressen."""
    if not raw:
        return ()
    return tuple(e.strip().lower() for e in raw.split(",") if e.strip())


def load_settings(
    config: Optional[configparser.ConfigParser] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """Baut :class:`AppSettings` aus ``config.ini`` und Umgebungsvariablen."""
    cfg = config if config is not None else load_merged_config()
    env = os.environ if environ is None else environ
    defaults = AppSettings()

    def _get(section: str, key: str, fallback):
        if isinstance(fallback, bool):
            return cfg.getboolean(section, key, fallback=fallback)
        if isinstance(fallback, int):
            return cfg.getint(section, key, fallback=fallback)
        if isinstance(fallback, float):
            return cfg.getfloat(section, key, fallback=fallback)
        return cfg.get(section, key, fallback=fallback)

    port_raw = env.get("PORT")
    try:
        port = int(port_raw) if port_raw else _get("SERVER", "port", defaults.port)
    except ValueError:
        logger.warning("Ungültiger PORT '%s', nutze %s", port_raw, defaults.port)
        port = _get("SERVER", "port", defaults.port)

    return AppSettings(
        version=_get("APP", "version", defaults.version),
        port=port,
        model=env.get("OPENAI_MODEL") or _get("LLM", "model", defaults.model),
        temperature=_get("LLM", "temperature", defaults.temperature),
        max_completion_tokens=_get("LLM", "max_completion_tokens", defaults.max_completion_tokens),
        candidate_limit=_get("SEARCH", "candidate_limit", defaults.candidate_limit),
        fuzzy_threshold=_get("SEARCH", "fuzzy_threshold", defaults.fuzzy_threshold),
        fuzzy_distance=_get("SEARCH", "fuzzy_distance", defaults.fuzzy_distance),
        synonyms_enabled=_get("SEARCH", "synonyms_enabled", defaults.synonyms_enabled),
        session_ttl_seconds=_get("SESSION", "ttl_seconds", defaults.session_ttl_seconds),
        catalog_index_path=_resolve(_get("DATA", "catalog_index", "catalogs/index.json")),
        synonyms_path=_resolve(_get("DATA", "synonyms", "catalogs/synonyms.json")),
        rules_path=_resolve(_get("DATA", "rules", "rules/catalog_rules.json")),
        public_dir=_resolve(_get("DATA", "public_dir", "public")),
        cors_origin=_get("SERVER", "cors_origin", defaults.cors_origin),
        allowed_emails=parse_email_list(env.get("ALLOWED_EMAILS")),
        openai_api_key=env.get("OPENAI_API_KEY", ""),
        supabase_jwt_secret=env.get("SUPABASE_JWT_SECRET", ""),
        supabase_url=env.get("SUPABASE_URL", ""),
        database_url=env.get("DATABASE_URL", ""),
        jwt_audience=env.get("SUPABASE_JWT_AUDIENCE") or _get("SERVER", "jwt_audience", ""),
    )

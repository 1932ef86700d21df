"""Logging-Konfiguration für Server und Skripte.

Drei Logger werden eingerichtet:

* Root-Logger für die normalen Meldungen (Level aus ``[LOGGING] console_level``),
* ``detail`` für optionale Ausgaben wie Eingabetext, Prompt und Tokenverbrauch,
  die einzeln per ``log_*``-Schalter aktiviert werden,
* ``werkzeug`` mit mindestens INFO, damit die Server-URL sichtbar bleibt.

Optional schreibt ein rotierender Datei-Handler alle drei zusätzlich in
``[LOGGING] file_path``.
"""

from __future__ import annotations

import configparser
import logging
import os
import shutil
import sys
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DETAIL_LOGGER = "detail"


class SafeEncodingStreamHandler(logging.StreamHandler):
    """Schreibt Logzeilen, auch wenn die Konsole kein UTF-8 kann."""

    def emit(self, record):
        try:
            msg = self.format(record)
            self.stream.write(msg.encode("utf-8", errors="replace").decode("utf-8", errors="ignore") + self.terminator)
            self.flush()
        except Exception:
            self.handleError(record)


class SafeRotatingFileHandler(RotatingFileHandler):
    """Rotiert auch dann, wenn Windows die Datei gesperrt hält (OneDrive, Virenscanner)."""

    def rotate(self, source: str, dest: str) -> None:
        try:
            super().rotate(source, dest)
            return
        except PermissionError as exc:
            if getattr(exc, "winerror", None) != 32:
                raise
        # kopieren und leeren statt umbenennen
        if os.path.exists(source):
            shutil.copy2(source, dest)
        with open(source, "w", encoding=self.encoding or "utf-8") as fh:
            fh.truncate(0)


@dataclass(frozen=True)
class LogFlags:
    input_text: bool = False
    llm_prompt: bool = False
    llm_output: bool = False
    tokens: bool = False

    @property
    def any(self) -> bool:
        return self.input_text or self.llm_prompt or self.llm_output or self.tokens


def _level(name: str, fallback: int) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else fallback


def _reset(logger: logging.Logger, level: int, formatter: logging.Formatter) -> None:
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()
    handler = SafeEncodingStreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    logger.addHandler(handler)
    logger.setLevel(level)


def _file_handler(config: configparser.ConfigParser, default_level: int, formatter: logging.Formatter) -> Optional[RotatingFileHandler]:
    path = config.get("LOGGING", "file_path", fallback="")
    if config.getint("LOGGING", "file_enabled", fallback=0) != 1 or not path:
        return None
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        handler = SafeRotatingFileHandler(
            path,
            maxBytes=max(0, config.getint("LOGGING", "file_max_bytes", fallback=1048576)),
            backupCount=max(0, config.getint("LOGGING", "file_backup_count", fallback=5)),
            encoding="utf-8",
            delay=True,
        )
    except OSError as exc:
        logging.getLogger(__name__).warning("Dateilogs konnten nicht initialisiert werden: %s", exc)
        return None
    handler.setLevel(_level(config.get("LOGGING", "file_level", fallback=""), default_level))
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: configparser.ConfigParser) -> LogFlags:
    """Richtet die Logger gemäss ``[LOGGING]`` ein und gibt die Detail-Schalter zurück."""
    formatter = logging.Formatter(FORMAT)
    console_level = _level(config.get("LOGGING", "console_level", fallback="INFO"), logging.INFO)
    flags = LogFlags(
        input_text=config.getint("LOGGING", "log_input_text", fallback=0) == 1,
        llm_prompt=config.getint("LOGGING", "log_llm_prompt", fallback=0) == 1,
        llm_output=config.getint("LOGGING", "log_llm_output", fallback=0) == 1,
        tokens=config.getint("LOGGING", "log_tokens", fallback=0) == 1,
    )

    root = logging.getLogger()
    _reset(root, console_level, formatter)

    detail = logging.getLogger(DETAIL_LOGGER)
    _reset(detail, logging.INFO if flags.any else logging.WARNING, formatter)
    detail.propagate = False

    werkzeug = logging.getLogger("werkzeug")
    _reset(werkzeug, max(console_level, logging.INFO), formatter)
    werkzeug.propagate = False

    file_handler = _file_handler(config, console_level, formatter)
    if file_handler is not None:
        for logger in (root, detail, werkzeug):
            logger.addHandler(file_handler)
    return flags

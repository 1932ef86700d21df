"""Ablauf einer Abrechnungsanfrage vom Freitext bis zur geprüften Antwort.

:class:`BillingAssistant` bündelt die Schritte:

1. offene Rückfrage derselben Identität anhängen,
2. Träger und Absichten erkennen, Vorab-Rückfragen prüfen,
3. deterministischer Blutentnahme-Treffer (ohne Modell),
4. Kandidatensuche plus Zusatzpositionen,
5. Rückfrage-Heuristik,
6. Modellaufruf mit Gating-Prompt,
7. Prüfung der Antwort gegen die Kandidatenliste.

Das Modell wird als Callable injiziert (``messages -> (text, usage)``), damit
die Pipeline ohne Netzwerk testbar bleibt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from clarification import ClarificationContext, ClarificationDecision, ClarificationHeuristic
from katalog.addons import ADDON_CATEGORIES, AddonCategory, derive_addons, merge_addons
from katalog.finder import CandidateFinder
from katalog.models import CatalogEntry
from katalog.payer import detect_payer
from prompts import build_messages, render_candidate_table
from response_validator import enforce_allow_list
from session_store import SessionStore
from utils import normalize_text

logger = logging.getLogger(__name__)

Messages = List[Dict[str, str]]
LLMCallable = Callable[[Messages], Tuple[str, Optional[Dict[str, Any]]]]

NO_CANDIDATES_MESSAGE = (
    "Keine passenden Katalogeinträge gefunden. Bitte präziser eingeben "
    "(z. B. 'ÖGK, Blutentnahme aus der Vene')."
)

KIND_CLARIFICATION = "clarification"
KIND_SHORTCUT = "shortcut"
KIND_MODEL = "model"
KIND_REJECTED = "rejected"


class NoCandidatesError(ValueError):
    """Auch nach einer Rückfrage kein passender Katalogeintrag."""

    def __init__(self, message: str = NO_CANDIDATES_MESSAGE) -> None:
        super().__init__(message)


class UpstreamModelError(RuntimeError):
    """Fehler des Sprachmodell-Dienstes; ``status_code`` ist der Upstream-Status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class AssistantReply:
    output: str
    usage: Optional[Dict[str, Any]] = None
    kind: str = KIND_MODEL
    payer: Optional[str] = None
    candidates: List[CatalogEntry] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"output": self.output}
        if self.usage is not None:
            payload["usage"] = self.usage
        return payload


class BillingAssistant:
    def __init__(
        self,
        finder: CandidateFinder,
        sessions: SessionStore,
        llm: LLMCallable,
        heuristic: Optional[ClarificationHeuristic] = None,
        addon_categories: Sequence[AddonCategory] = ADDON_CATEGORIES,
        limit: Optional[int] = None,
    ) -> None:
        self.finder = finder
        self.sessions = sessions
        self.llm = llm
        self.heuristic = heuristic or ClarificationHeuristic()
        self.addon_categories = tuple(addon_categories)
        self.limit = finder.limit if limit is None else limit

    def _ask(self, identity: str, text: str, decision: ClarificationDecision, payer: Optional[str]) -> AssistantReply:
        self.sessions.set(identity, text)
        logger.info("Rückfrage (%s) für %s", decision.rule, identity)
        return AssistantReply(output=decision.question or "", kind=KIND_CLARIFICATION, payer=payer)

    def collect_candidates(self, text: str, payer: Optional[str]) -> List[CatalogEntry]:
        """Kandidatensuche inklusive Zusatzpositionen, höchstens ``limit`` Einträge."""
        candidates = self.finder.find(text, payer, limit=self.limit)
        addons = derive_addons(text, payer, self.finder.index, self.addon_categories)
        return merge_addons(candidates, addons, self.limit)

    def handle(self, identity: str, prompt: str) -> AssistantReply:
        """Beantwortet eine Anfrage; wirft :class:`NoCandidatesError` oder :class:`UpstreamModelError`."""
        text = (prompt or "").strip()
        pending = self.sessions.get(identity)
        followup = pending is not None
        if pending is not None:
            text = f"{pending.prompt} {text}".strip()
            self.sessions.delete(identity)
            logger.info("Offene Rückfrage für %s mit neuer Eingabe zusammengeführt", identity)

        norm_text = normalize_text(text)
        payer = detect_payer(text)
        found = self.finder.engine.evaluate(norm_text)
        ctx = ClarificationContext(text=norm_text, payer=payer, intents=found)

        decision = self.heuristic.check_guards(ctx)
        if decision.needs_clarification:
            return self._ask(identity, text, decision, payer)

        exact = self.finder.exact_blood_draw_match(norm_text, payer, found)
        if exact is not None:
            addons = derive_addons(text, payer, self.finder.index, self.addon_categories)
            entries = merge_addons([exact], addons, self.limit)
            logger.info("Deterministischer Treffer %s %s, kein Modellaufruf", exact.payer, exact.pos)
            return AssistantReply(
                output=render_candidate_table(entries),
                kind=KIND_SHORTCUT,
                payer=payer,
                candidates=entries,
            )

        candidates = self.collect_candidates(text, payer)
        prefer, _rule = self.finder.preferred_codes(norm_text, payer)
        logger.debug(
            "DEBUG: payer/prefer/candidates payer=%s prefer=%s cand=%s",
            payer, prefer, [c.pos for c in candidates][:10],
        )

        ctx.candidates = candidates
        decision = self.heuristic.check(ctx)
        if decision.needs_clarification:
            if decision.rule == "no_candidates" and followup:
                raise NoCandidatesError()
            return self._ask(identity, text, decision, payer)

        output, usage = self.llm(build_messages(text, candidates))
        final, result = enforce_allow_list(output, candidates)
        if not result.ok:
            self.sessions.set(identity, text)
            return AssistantReply(
                output=final, usage=usage, kind=KIND_REJECTED, payer=payer, candidates=candidates,
            )
        return AssistantReply(output=final, usage=usage, kind=KIND_MODEL, payer=payer, candidates=candidates)

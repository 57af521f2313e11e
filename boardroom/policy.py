from __future__ import annotations

import random
import re
from typing import Callable, Dict, List, Optional, Sequence

from loguru import logger

from .personas import AI_PERSONAS, PersonaType
from .states import Message


ClaimPredicate = Callable[[str], bool]


_CLAIM_MARKERS = re.compile(
    r"\d|%|\bpercent\b|\baccording to\b|\bstudies show\b|\bresearch shows\b"
    r"|\bstatistic|\bdata (shows|suggests)\b|\bsurvey\b|\bon average\b",
    re.IGNORECASE,
)


def contains_factual_claim(text: str) -> bool:
    """Best-effort check for quantitative or sourced statements."""
    return bool(_CLAIM_MARKERS.search(text or ""))


DEFAULT_WEIGHTS: Dict[PersonaType, int] = {
    PersonaType.FAST_THINKER: 3,
    PersonaType.ANALYTICAL_THINKER: 3,
    PersonaType.DEVILS_ADVOCATE: 1,
}


class SpeakerPolicy:
    """Decides which persona speaks next.

    The moderator is scheduled outside the weighted pool: it speaks whenever
    ``moderator_every`` AI turns have passed without it, or earlier when the
    latest AI message looks like a factual claim. Everyone else is ranked by
    ``weight * turns since they last spoke``; ties go to the persona that
    comes first in ``AI_PERSONAS``, whatever order ``weights`` is given in.
    Nobody speaks twice in a row: when the previous speaker is the only
    eligible persona left, the moderator takes the turn instead. Passing
    ``rng`` turns the ranking into a weighted draw, which stays reproducible
    for a seeded ``random.Random``.

    ``topic_focus`` is accepted so subclasses can bias on the current
    sub-topic; the default rules do not look at it.
    """

    def __init__(
        self,
        moderator_every: int = 4,
        claim_predicate: Optional[ClaimPredicate] = None,
        weights: Optional[Dict[PersonaType, int]] = None,
        rng: Optional[random.Random] = None,
        opening_speaker: PersonaType = PersonaType.FAST_THINKER,
        warmup_rounds: int = 2,
        min_claim_gap: int = 2,
    ) -> None:
        if opening_speaker is PersonaType.USER:
            raise ValueError("opening_speaker must be an AI persona")
        self.moderator_every = max(1, int(moderator_every))
        self.claim_predicate = claim_predicate or contains_factual_claim
        raw = weights if weights is not None else DEFAULT_WEIGHTS
        self.weights = {
            p: raw[p] for p in AI_PERSONAS
            if p is not PersonaType.MODERATOR and raw.get(p, 0) > 0
        }
        if not self.weights:
            raise ValueError("at least one non-moderator persona needs a positive weight")
        self.rng = rng
        self.opening_speaker = opening_speaker
        self.warmup_rounds = max(0, int(warmup_rounds))
        self.min_claim_gap = max(1, int(min_claim_gap))

    @staticmethod
    def _turns_since(ai_speakers: List[PersonaType], persona: PersonaType) -> int:
        for i, spk in enumerate(reversed(ai_speakers)):
            if spk is persona:
                return i + 1
        return len(ai_speakers) + 1

    def _moderator_due(self, history: Sequence[Message], ai_speakers: List[PersonaType]) -> bool:
        since = self._turns_since(ai_speakers, PersonaType.MODERATOR)
        if since >= self.moderator_every:
            return True
        last = history[-1]
        if last.persona.is_ai and since >= self.min_claim_gap:
            try:
                return bool(self.claim_predicate(last.content))
            except Exception as e:
                logger.warning(f"claim_predicate_failed | {e}")
        return False

    def select(self, history: Sequence[Message], round_number: int, topic_focus: str = "") -> PersonaType:
        ai_speakers = [m.persona for m in history if m.persona.is_ai]
        if not ai_speakers:
            return self.opening_speaker

        previous = history[-1].persona
        if previous is not PersonaType.MODERATOR and self._moderator_due(history, ai_speakers):
            return PersonaType.MODERATOR

        eligible = [
            p for p in self.weights
            if not (p is PersonaType.DEVILS_ADVOCATE and round_number < self.warmup_rounds)
        ] or list(self.weights)
        candidates = [p for p in eligible if p is not previous]
        if not candidates:
            return PersonaType.MODERATOR

        scores = [self.weights[p] * self._turns_since(ai_speakers, p) for p in candidates]
        if self.rng is None:
            best = max(range(len(candidates)), key=lambda i: scores[i])
            return candidates[best]
        return self.rng.choices(candidates, weights=scores, k=1)[0]

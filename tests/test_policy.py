"""Tests for SpeakerPolicy and the factual-claim heuristic."""

import random
from collections import Counter

import pytest

from boardroom.personas import PersonaType
from boardroom.policy import SpeakerPolicy, contains_factual_claim

from conftest import make_message


F = PersonaType.FAST_THINKER
A = PersonaType.ANALYTICAL_THINKER
M = PersonaType.MODERATOR
D = PersonaType.DEVILS_ADVOCATE
U = PersonaType.USER


def run_policy(policy, turns, history=None):
    """Feed the policy its own choices, as the engine does."""
    history = list(history or [])
    rounds = 0
    chosen = []
    for _ in range(turns):
        persona = policy.select(history, rounds, "topic")
        chosen.append(persona)
        history.append(make_message(persona, "an opinion without figures"))
        rounds += 1
    return chosen


class TestSelection:
    """Core turn-taking rules."""

    def test_opening_speaker_on_empty_history(self):
        assert SpeakerPolicy().select([], 0, "") is F

    def test_opening_speaker_after_user_only_history(self):
        history = [make_message(U, "I want your views")]
        assert SpeakerPolicy(opening_speaker=A).select(history, 0, "") is A

    def test_deterministic_sequence(self):
        """Same inputs give the same speakers, with the moderator by the fourth turn."""
        first = run_policy(SpeakerPolicy(), 5)
        second = run_policy(SpeakerPolicy(), 5)
        assert first == second == [F, A, F, M, A]

    def test_never_repeats_or_returns_user(self):
        chosen = run_policy(SpeakerPolicy(), 60)
        assert U not in chosen
        assert all(a is not b for a, b in zip(chosen, chosen[1:]))

    def test_moderator_cadence(self):
        """The moderator speaks at least once in every window of moderator_every turns."""
        policy = SpeakerPolicy(moderator_every=4)
        chosen = run_policy(policy, 40)
        for start in range(0, len(chosen) - 4):
            assert M in chosen[start:start + 4]

    def test_devils_advocate_is_rarer_than_thinkers(self):
        counts = Counter(run_policy(SpeakerPolicy(), 60))
        assert counts[D] >= 1
        assert counts[D] < counts[F]
        assert counts[D] < counts[A]

    def test_devils_advocate_waits_for_warmup(self):
        policy = SpeakerPolicy(warmup_rounds=2)
        history = [make_message(F), make_message(A)]
        for round_number in (0, 1):
            assert policy.select(history, round_number, "") is not D

    def test_single_eligible_persona_hands_over_to_moderator(self):
        policy = SpeakerPolicy(weights={F: 1}, moderator_every=100)
        history = [make_message(F, "gut feeling")]
        assert policy.select(history, 1, "") is M

    def test_single_eligible_persona_follows_moderator(self):
        policy = SpeakerPolicy(weights={F: 1}, moderator_every=100)
        history = [make_message(F, "gut feeling"), make_message(M, "let's recap")]
        assert policy.select(history, 2, "") is F

    def test_lone_thinker_alternates_with_moderator(self):
        chosen = run_policy(SpeakerPolicy(weights={A: 2}, moderator_every=100, opening_speaker=A), 6)
        assert chosen == [A, M, A, M, A, M]

    def test_tie_break_follows_persona_order_not_dict_order(self):
        policy = SpeakerPolicy(weights={D: 3, A: 3, F: 3}, moderator_every=100, warmup_rounds=0)
        history = [make_message(M, "over to you")]
        assert list(policy.weights) == [F, A, D]
        assert policy.select(history, 1, "") is F

    def test_user_message_does_not_block_previous_ai_speaker(self):
        """Only the immediately preceding message is excluded; a user turn excludes nobody."""
        policy = SpeakerPolicy(weights={F: 1, A: 1}, moderator_every=100)
        history = [make_message(A), make_message(F), make_message(U, "and?")]
        assert policy.select(history, 2, "") is A

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            SpeakerPolicy(opening_speaker=U)
        with pytest.raises(ValueError):
            SpeakerPolicy(weights={M: 5})


class TestFactCheckBias:
    """Moderator scheduling after factual claims."""

    def test_claim_brings_in_moderator_early(self):
        history = [make_message(F), make_message(A, "Revenue grew 40% last year")]
        assert SpeakerPolicy().select(history, 2, "") is M

    def test_claim_from_user_does_not_trigger(self):
        history = [make_message(F), make_message(U, "I read that 40% of startups fail")]
        assert SpeakerPolicy().select(history, 1, "") is not M

    def test_claim_ignored_right_after_moderator(self):
        """The moderator is not summoned back immediately after speaking."""
        policy = SpeakerPolicy(min_claim_gap=3)
        history = [make_message(M), make_message(F, "Costs doubled in 2023")]
        assert policy.select(history, 2, "") is not M

    def test_custom_predicate(self):
        policy = SpeakerPolicy(claim_predicate=lambda text: "allegedly" in text)
        history = [make_message(F), make_message(A, "allegedly the market is saturated")]
        assert policy.select(history, 2, "") is M

        plain = [make_message(F), make_message(A, "Revenue grew 40%")]
        assert policy.select(plain, 2, "") is not M

    def test_failing_predicate_is_ignored(self):
        def broken(text):
            raise RuntimeError("classifier down")

        policy = SpeakerPolicy(claim_predicate=broken)
        history = [make_message(F), make_message(A)]
        assert policy.select(history, 2, "") in (F, D)


class TestSeededRandomness:
    def test_seeded_rng_is_reproducible(self):
        a = run_policy(SpeakerPolicy(rng=random.Random(7)), 30)
        b = run_policy(SpeakerPolicy(rng=random.Random(7)), 30)
        assert a == b

    def test_seeded_rng_still_never_repeats(self):
        chosen = run_policy(SpeakerPolicy(rng=random.Random(123)), 50)
        assert all(x is not y for x, y in zip(chosen, chosen[1:]))
        assert U not in chosen


class TestClaimHeuristic:
    @pytest.mark.parametrize("text", [
        "Sales rose 12 percent",
        "According to the survey, most users churn",
        "Studies show remote teams are slower",
        "On average it takes three months",
        "We saw 5x growth",
    ])
    def test_detects_claims(self, text):
        assert contains_factual_claim(text)

    @pytest.mark.parametrize("text", ["", "I feel good about this", "What if it backfires?"])
    def test_ignores_opinions(self, text):
        assert not contains_factual_claim(text)

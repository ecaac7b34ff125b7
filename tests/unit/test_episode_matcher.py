"""Unit tests for the episode matcher."""

import math

import pytest

from tvrename.core.results import Absent, Ok
from tvrename.matcher.episode_matcher import WEIGHT_FACTOR, EpisodeMatcher, score_entry
from tvrename.matcher.models import ReferenceEntry


def entry(episode: int, lines: list[str], season: int = 1) -> ReferenceEntry:
    return ReferenceEntry(
        season=season, episodes=[episode], text=" ".join(lines), line_count=len(lines)
    )


@pytest.fixture
def corpus():
    return [
        entry(1, ["take my love", "take my land", "never tell me the odds"]),
        entry(2, ["ten percent of nothing", "let me do the math for you"]),
        entry(3, ["we have done the impossible", "and that makes us mighty"]),
    ]


@pytest.mark.unit
class TestScoreEntry:
    def test_counts_substring_containment(self):
        result = score_entry(entry(1, ["never tell me the odds", "fly"]), ["tell me", "odds", "nope"])

        assert result.matched_lines == 2
        assert result.confidence == pytest.approx(1.0)

    def test_confidence_uses_reference_line_count(self):
        result = score_entry(entry(1, ["a b", "c d", "e f", "g h"]), ["a b", "zzz", "yyy"])

        assert result.confidence == pytest.approx(0.25)

    def test_weighted_score(self):
        result = score_entry(entry(1, ["one", "two", "three"]), ["one", "two"])

        expected = 2 * math.log(3 + WEIGHT_FACTOR) / math.log(WEIGHT_FACTOR)
        assert result.weighted_confidence == pytest.approx(expected)

    def test_empty_reference_entry(self):
        assert score_entry(entry(1, []), ["anything"]).confidence == 0.0


@pytest.mark.unit
class TestEpisodeMatcher:
    def test_best_match(self, corpus):
        outcome = EpisodeMatcher().match(corpus, ["let me do the math for you", "ten percent"])

        assert isinstance(outcome, Ok)
        assert outcome.value.episodes == [2]
        assert outcome.value.confidence == pytest.approx(1.0)

    def test_empty_corpus_is_absent(self):
        assert isinstance(EpisodeMatcher().match([], ["line"]), Absent)

    def test_adding_duplicate_lines_never_lowers_confidence(self, corpus):
        matcher = EpisodeMatcher()
        lines = ["take my love", "something else"]
        before = score_entry(corpus[0], lines).confidence

        for extra in range(1, 4):
            after = score_entry(corpus[0], lines + ["take my land"] * extra).confidence
            assert after >= before
            before = after

        assert matcher.match(corpus, lines + ["take my land"]).value.episodes == [1]

    def test_weighted_score_breaks_confidence_ties(self):
        short = entry(1, ["alpha", "beta"])
        long = entry(2, ["alpha", "beta", "gamma", "delta"])
        lines = ["alpha", "gamma", "delta", "beta"]
        # both entries are fully matched; the longer one matched more lines
        assert score_entry(short, lines).confidence == score_entry(long, lines).confidence

        outcome = EpisodeMatcher().match([short, long], lines)

        assert outcome.value.episodes == [2]

    def test_longer_entry_wins_with_equal_raw_confidence(self):
        short = entry(1, ["a1", "a2"])
        long = entry(2, ["b1", "b2", "b3", "b4"])
        lines = ["a1", "b1", "b2"]
        # 1/2 == 2/4
        ranked = EpisodeMatcher().rank([short, long], lines)

        assert ranked[0].episodes == [2]
        assert ranked[0].confidence == ranked[1].confidence

    def test_multi_episode_entry(self):
        double = ReferenceEntry(season=1, episodes=[8, 9], text="out of gas", line_count=1)

        outcome = EpisodeMatcher().match([double], ["out of gas"])

        assert outcome.value.episode_info.s_e_format == "s01e08-e09"

    def test_invalid_weight_factor(self):
        with pytest.raises(ValueError):
            EpisodeMatcher(weight_factor=1)

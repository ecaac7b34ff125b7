import math
from collections.abc import Sequence

from loguru import logger

from tvrename.core.results import Absent, Ok, Outcome
from tvrename.matcher.models import MatchResult, ReferenceEntry

# Larger K flattens the bonus long reference entries get over short ones
WEIGHT_FACTOR = 25


def score_entry(
    entry: ReferenceEntry, lines: Sequence[str], weight_factor: int = WEIGHT_FACTOR
) -> MatchResult:
    """Score candidate lines against one reference entry.

    A line counts when it occurs anywhere in the entry's joined text.
    Confidence is relative to the entry's own line count; the weighted score
    is ``count * log(entry_lines + K) / log(K)``.
    """
    count = sum(1 for line in lines if line in entry.text)
    confidence = count / entry.line_count if entry.line_count else 0.0
    weighted = count * (math.log(entry.line_count + weight_factor) / math.log(weight_factor))
    return MatchResult(
        season=entry.season,
        episodes=list(entry.episodes),
        confidence=confidence,
        weighted_confidence=weighted,
        matched_lines=count,
    )


class EpisodeMatcher:
    """
    Line-containment matcher over a reference corpus.

    Every reference entry is scored; entries are ranked by weighted score,
    then raw confidence. Equal scores keep corpus order (season, episode).
    """

    def __init__(self, weight_factor: int = WEIGHT_FACTOR):
        if weight_factor <= 1:
            raise ValueError("weight_factor must be greater than 1")
        self.weight_factor = weight_factor

    def rank(self, corpus: Sequence[ReferenceEntry], lines: Sequence[str]) -> list[MatchResult]:
        """All entries scored, best first."""
        scored = [score_entry(entry, lines, self.weight_factor) for entry in corpus]
        return sorted(scored, key=lambda m: (m.weighted_confidence, m.confidence), reverse=True)

    def match(self, corpus: Sequence[ReferenceEntry], lines: Sequence[str]) -> Outcome[MatchResult]:
        """Best match for ``lines``; Absent when the corpus is empty."""
        if not corpus:
            return Absent("Reference corpus is empty")

        ranked = self.rank(corpus, lines)
        for result in ranked:
            logger.debug(
                f"  {result.episode_info.s_e_format}: confidence={result.confidence:.2%} "
                f"weighted={result.weighted_confidence:.2f} ({result.matched_lines} lines)"
            )

        best = ranked[0]
        logger.debug(f"Best match {best.episode_info.s_e_format} at {best.confidence:.2%}")
        return Ok(best)

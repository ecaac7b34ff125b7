"""Subtitle text matching - normalization, reference corpus and scoring."""

from tvrename.matcher.episode_matcher import EpisodeMatcher
from tvrename.matcher.normalizer import TextNormalizer

__all__ = ["EpisodeMatcher", "TextNormalizer"]

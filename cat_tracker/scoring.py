"""Similarity score between two feature records.

Weighted partial credit, weights summing to 100:

    breed                 20  (both present and equal)
    colors                25  x share of the query's colors found on the candidate
    patterns              25  x share of the query's patterns found on the candidate
    distinctive features  30  x share of the query's features found on the candidate

Shares are taken against the query's own set size (floored at 1), so a
dimension the query extracted nothing for contributes 0. Age and size do not
contribute.
"""

from typing import FrozenSet

from .features import FeatureRecord

BREED_WEIGHT = 20.0
COLOR_WEIGHT = 25.0
PATTERN_WEIGHT = 25.0
DISTINCTIVE_WEIGHT = 30.0

MIN_SCORE = 0.0
MAX_SCORE = 100.0


def _overlap(query: FrozenSet[str], candidate: FrozenSet[str]) -> float:
    return len(query & candidate) / max(len(query), 1)


def score(candidate: FeatureRecord, query: FeatureRecord) -> float:
    """Score how well ``candidate`` (a stored cat's features) matches ``query``, in [0, 100]."""
    total = 0.0
    if candidate.breed is not None and query.breed is not None and candidate.breed == query.breed:
        total += BREED_WEIGHT
    total += COLOR_WEIGHT * _overlap(query.colors, candidate.colors)
    total += PATTERN_WEIGHT * _overlap(query.patterns, candidate.patterns)
    total += DISTINCTIVE_WEIGHT * _overlap(query.distinctive_features, candidate.distinctive_features)
    return min(max(total, MIN_SCORE), MAX_SCORE)

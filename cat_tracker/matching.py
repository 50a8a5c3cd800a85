import logging
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from .features import FeatureRecord
from .models import Cat
from .scoring import score

logger = logging.getLogger(__name__)

# Score at or above which a candidate is treated as likely the same cat
MATCH_THRESHOLD = 70.0


class MatchOutcome(BaseModel):
    """Result of scoring one query against the catalog. Never persisted."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    candidate: Optional[Cat]
    score: float
    is_likely_same_cat: bool
    features: Optional[FeatureRecord] = None


def no_match(features: Optional[FeatureRecord] = None) -> MatchOutcome:
    return MatchOutcome(candidate=None, score=0.0, is_likely_same_cat=False, features=features)


def resolve(query: FeatureRecord, catalog: Iterable[Cat]) -> MatchOutcome:
    """Find the best catalog cat for ``query``.

    Scans every cat (catalog order, expected newest first). Only a strictly
    higher score replaces the current best, so the first cat seen wins ties.
    Cats without stored features are skipped. Linear scan; no index.
    """
    best_cat = None
    best_score = 0.0
    for cat in catalog:
        candidate_features = cat.features
        if candidate_features is None:
            continue
        cat_score = score(candidate_features, query)
        logger.debug("Cat %s (%s): match score %.2f", cat.id, cat.name, cat_score)
        if cat_score > best_score and cat_score >= MATCH_THRESHOLD:
            best_cat = cat
            best_score = cat_score

    if best_cat is None:
        logger.info("No catalog cat reached the match threshold")
        return no_match(query)

    logger.info("Best match: cat id=%s name=%s score=%.2f", best_cat.id, best_cat.name, best_score)
    return MatchOutcome(
        candidate=best_cat,
        score=best_score,
        is_likely_same_cat=best_score >= MATCH_THRESHOLD,
        features=query,
    )

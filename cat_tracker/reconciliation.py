"""Two-phase identify-then-commit flow for a cat submission.

``propose_identity`` extracts features and scores them against the catalog
without writing anything. The caller (a person looking at the proposal) then
calls ``commit`` with its decision. ``commit`` never re-scores: the identity
decision stands as of proposal time, even if another submission has created a
better match in between.
"""

import logging
import math
from enum import Enum
from typing import Optional

from .errors import ValidationError
from .extractor import FeatureExtractor, detect_image_type
from .matching import MatchOutcome, resolve
from .models import Cat
from .store import CatalogStore

logger = logging.getLogger(__name__)


class CommitDecision(str, Enum):
    append_to_existing = "append_to_existing"
    create_new = "create_new"


def validate_location(latitude: float, longitude: float) -> None:
    for label, value, bound in (("latitude", latitude, 90.0), ("longitude", longitude, 180.0)):
        if value is None or not math.isfinite(value):
            raise ValidationError(f"{label} must be a finite number")
        if not -bound <= value <= bound:
            raise ValidationError(f"{label} must be between {-bound:g} and {bound:g}")


class ReconciliationCoordinator:
    def __init__(self, extractor: FeatureExtractor, store: CatalogStore, extraction_timeout: Optional[float] = None):
        self.extractor = extractor
        self.store = store
        self.extraction_timeout = extraction_timeout

    def propose_identity(self, image_bytes: bytes, latitude: float, longitude: float) -> MatchOutcome:
        """Extract features from the photo and find the best catalog match. Read-only."""
        detect_image_type(image_bytes)
        validate_location(latitude, longitude)
        features = self.extractor.extract(
            image_bytes,
            location_hint=(latitude, longitude),
            timeout=self.extraction_timeout,
        )
        return resolve(features, self.store.list_cats())

    def commit(
        self,
        decision: CommitDecision,
        *,
        latitude: float,
        longitude: float,
        submitter_id: str,
        cat_id: Optional[str] = None,
        name: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        notes: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        skip_extraction: bool = False,
    ) -> Cat:
        """Apply the caller's decision and return the cat the sighting belongs to.

        ``append_to_existing`` adds one sighting to ``cat_id``. ``create_new``
        extracts features from ``image_bytes`` and creates the cat together with
        its first sighting; with ``skip_extraction`` the cat is stored without
        features (the fallback after a failed extraction) and is never matched.
        """
        if not submitter_id:
            raise ValidationError("Submitter id is required")
        validate_location(latitude, longitude)
        notes = notes.strip() if notes and notes.strip() else None

        if decision == CommitDecision.append_to_existing:
            if not cat_id:
                raise ValidationError("cat_id is required to append a sighting")
            self.store.add_sighting(cat_id, latitude, longitude, submitter_id, notes)
            cat = self.store.get_cat(cat_id)
            logger.info("Committed sighting for existing cat id=%s by %s", cat_id, submitter_id)
            return cat

        if decision != CommitDecision.create_new:
            raise ValidationError(f"Unknown decision {decision!r}")

        name = (name or "").strip()
        if not name:
            raise ValidationError("A name is required to create a new cat")
        if not image_bytes:
            raise ValidationError("An image is required to create a new cat")
        detect_image_type(image_bytes)

        features = None
        if not skip_extraction:
            features = self.extractor.extract(
                image_bytes,
                location_hint=(latitude, longitude),
                timeout=self.extraction_timeout,
            )
        cat = self.store.create_cat_with_sighting(
            name=name,
            features=features,
            created_by=submitter_id,
            latitude=latitude,
            longitude=longitude,
            notes=notes,
            description=description,
            image_url=image_url,
        )
        logger.info("Committed new cat id=%s name=%s by %s", cat.id, cat.name, submitter_id)
        return cat

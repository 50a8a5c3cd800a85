import logging
import uuid
from datetime import datetime, timezone

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .database import Base
from .features import FeatureRecord

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Cat(Base):
    __tablename__ = "cats"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    ai_features = Column(JSON, nullable=True)  # reference FeatureRecord used for matching
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    # Bumped by metadata edits only, never by new sightings
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    sightings = relationship(
        "CatSighting",
        back_populates="cat",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def features(self):
        """Stored FeatureRecord, or None when the cat has none (or it is unreadable)."""
        if not self.ai_features:
            return None
        try:
            return FeatureRecord.from_storage(self.ai_features)
        except PydanticValidationError:
            logger.warning("Ignoring unreadable ai_features on cat id=%s", self.id)
            return None

    def __repr__(self):
        return f"<Cat(id='{self.id}', name='{self.name}')>"


class CatSighting(Base):
    __tablename__ = "cat_sightings"

    id = Column(String(36), primary_key=True, default=_new_id)
    cat_id = Column(String(36), ForeignKey("cats.id", ondelete="CASCADE"), nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    spotted_by = Column(String, nullable=False)
    spotted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    cat = relationship("Cat", back_populates="sightings")

    __table_args__ = (
        CheckConstraint("latitude BETWEEN -90 AND 90", name="cat_sightings_latitude_check"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="cat_sightings_longitude_check"),
    )

    def __repr__(self):
        return f"<CatSighting(id='{self.id}', cat_id='{self.cat_id}')>"

"""Catalog and sighting store.

The only path through which cats and sightings are read or written. Each write
runs in its own transaction; on any failure the transaction is rolled back so a
cat never exists without its first sighting.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, sessionmaker

from .errors import CatTrackerError, CommitFailed, NotCatOwner, UnknownCat, ValidationError
from .features import FeatureRecord
from .models import Cat, CatSighting

logger = logging.getLogger(__name__)


class CatalogStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except CatTrackerError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Store transaction rolled back: %s", e)
            raise CommitFailed(f"Store transaction failed: {e}") from e
        finally:
            db.close()

    def list_cats(self) -> List[Cat]:
        """All cats, most recently created first."""
        with self._session_factory() as db:
            return db.query(Cat).order_by(Cat.created_at.desc()).all()

    def get_cat(self, cat_id: str) -> Optional[Cat]:
        with self._session_factory() as db:
            return db.get(Cat, cat_id)

    def count_sightings(self, cat_id: str) -> int:
        with self._session_factory() as db:
            return db.query(func.count(CatSighting.id)).filter(CatSighting.cat_id == cat_id).scalar()

    def list_sightings(self, cat_id: Optional[str] = None, limit: Optional[int] = None) -> List[CatSighting]:
        """Sightings most recent first, each with its cat loaded."""
        with self._session_factory() as db:
            q = db.query(CatSighting).options(joinedload(CatSighting.cat))
            if cat_id is not None:
                q = q.filter(CatSighting.cat_id == cat_id)
            q = q.order_by(CatSighting.spotted_at.desc())
            if limit is not None:
                q = q.limit(limit)
            return q.all()

    def sightings_between(self, start: datetime, end: datetime) -> List[CatSighting]:
        with self._session_factory() as db:
            return (
                db.query(CatSighting)
                .options(joinedload(CatSighting.cat))
                .filter(CatSighting.spotted_at >= start, CatSighting.spotted_at <= end)
                .order_by(CatSighting.spotted_at.desc())
                .all()
            )

    def create_cat_with_sighting(
        self,
        name: str,
        features: Optional[FeatureRecord],
        created_by: str,
        latitude: float,
        longitude: float,
        notes: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> Cat:
        """Insert a cat and its first sighting as one unit."""
        with self._transaction() as db:
            cat = Cat(
                name=name,
                description=description,
                image_url=image_url,
                ai_features=features.to_storage() if features is not None else None,
                created_by=created_by,
            )
            db.add(cat)
            db.flush()
            db.add(CatSighting(
                cat_id=cat.id,
                latitude=latitude,
                longitude=longitude,
                spotted_by=created_by,
                notes=notes,
            ))
            db.flush()
        logger.info("Created cat id=%s name=%s", cat.id, cat.name)
        return cat

    def add_sighting(
        self,
        cat_id: str,
        latitude: float,
        longitude: float,
        spotted_by: str,
        notes: Optional[str] = None,
    ) -> CatSighting:
        with self._transaction() as db:
            if db.get(Cat, cat_id) is None:
                raise UnknownCat(cat_id)
            sighting = CatSighting(
                cat_id=cat_id,
                latitude=latitude,
                longitude=longitude,
                spotted_by=spotted_by,
                notes=notes,
            )
            db.add(sighting)
            db.flush()
        logger.info("Added sighting id=%s to cat id=%s", sighting.id, cat_id)
        return sighting

    def update_cat(
        self,
        cat_id: str,
        editor_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> Cat:
        """Edit cat metadata. Features and sightings are never touched here."""
        with self._transaction() as db:
            cat = db.get(Cat, cat_id)
            if cat is None:
                raise UnknownCat(cat_id)
            if cat.created_by != editor_id:
                raise NotCatOwner(f"Only the creator of cat {cat_id!r} may edit it")
            if name is not None:
                name = name.strip()
                if not name:
                    raise ValidationError("Cat name must not be empty")
                cat.name = name
            if description is not None:
                cat.description = description
            if image_url is not None:
                cat.image_url = image_url
            db.flush()
        return cat

"""Descriptive feature records extracted from cat photos."""

from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

UNKNOWN_BREEDS = {"", "unknown", "unspecified", "none", "n/a"}


class EstimatedAge(str, Enum):
    young = "young"
    adult = "adult"
    senior = "senior"
    unspecified = "unspecified"


class CatSize(str, Enum):
    small = "small"
    medium = "medium"
    large = "large"
    unspecified = "unspecified"


def normalize_token(value: Any) -> str:
    """Trim, lower-case and collapse inner whitespace: ``" White  Paws "`` -> ``"white paws"``.

    Only strings and plain numbers are tokens; lists, dicts and booleans raise ValueError.
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"expected a string, got {type(value).__name__}")
    return " ".join(str(value).split()).lower()


def normalize_tokens(values: Optional[Iterable[Any]]) -> FrozenSet[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple, set, frozenset)):
        raise ValueError(f"expected a list of strings, got {type(values).__name__}")
    tokens = (normalize_token(v) for v in values if v is not None)
    return frozenset(t for t in tokens if t)


class FeatureRecord(BaseModel):
    """Best-effort description of one photographed cat.

    Every field may be missing: an absent breed is ``None``, absent sets are
    empty, and absent age or size is ``unspecified``. Records are immutable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    breed: Optional[str] = None
    colors: FrozenSet[str] = frozenset()
    patterns: FrozenSet[str] = frozenset()
    distinctive_features: FrozenSet[str] = Field(
        default=frozenset(),
        validation_alias=AliasChoices("distinctive_features", "distinctiveFeatures"),
    )
    estimated_age: EstimatedAge = Field(
        default=EstimatedAge.unspecified,
        validation_alias=AliasChoices("estimated_age", "estimatedAge"),
    )
    size: CatSize = CatSize.unspecified

    @field_validator("breed", mode="before")
    @classmethod
    def _normalize_breed(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        breed = normalize_token(v)
        return None if breed in UNKNOWN_BREEDS else breed

    @field_validator("colors", "patterns", "distinctive_features", mode="before")
    @classmethod
    def _normalize_sets(cls, v: Any) -> FrozenSet[str]:
        return normalize_tokens(v)

    @field_validator("estimated_age", mode="before")
    @classmethod
    def _parse_age(cls, v: Any) -> EstimatedAge:
        if isinstance(v, EstimatedAge):
            return v
        try:
            return EstimatedAge(normalize_token(v)) if v is not None else EstimatedAge.unspecified
        except ValueError:
            return EstimatedAge.unspecified

    @field_validator("size", mode="before")
    @classmethod
    def _parse_size(cls, v: Any) -> CatSize:
        if isinstance(v, CatSize):
            return v
        try:
            return CatSize(normalize_token(v)) if v is not None else CatSize.unspecified
        except ValueError:
            return CatSize.unspecified

    @field_serializer("colors", "patterns", "distinctive_features")
    def _serialize_set(self, value: FrozenSet[str]) -> List[str]:
        return sorted(value)

    def to_storage(self) -> Dict[str, Any]:
        """JSON-ready dict with snake_case keys, as kept in ``cats.ai_features``."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage(cls, data: Dict[str, Any]) -> "FeatureRecord":
        return cls.model_validate(data)

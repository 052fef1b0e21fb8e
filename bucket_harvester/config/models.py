"""Pydantic models used across Bucket-Harvester configuration flow."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Literal, Union

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_API_BASE_URL = "https://runescape.wiki/api.php"

Operand = Literal["=", "!=", ">=", "<=", ">", "<"]


class WhereCondition(BaseModel):
    """Single ``{'selector', 'operand', value}`` filter triple."""

    selector: str
    operand: Operand = "="
    value: Union[bool, int, float, str]


class JoinConfig(BaseModel):
    """Join another bucket on ``primary_selector`` = ``join_selector``."""

    bucket: str
    primary_selector: str
    join_selector: str


class OrderByConfig(BaseModel):
    selector: str
    direction: Literal["asc", "desc"] = "asc"


class BucketQuery(BaseModel):
    """Structured options describing one Bucket query."""

    bucket: str
    select: list[str] = Field(default_factory=list)
    where: list[WhereCondition] = Field(default_factory=list)
    join: list[JoinConfig] = Field(default_factory=list)
    limit: int | None = None
    offset: int | None = None
    order_by: OrderByConfig | None = None

    @model_validator(mode="after")
    def _validate_query(self) -> "BucketQuery":
        if not self.bucket:
            raise ValueError("bucket name cannot be empty")
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit must be >= 0")
        if self.offset is not None and self.offset < 0:
            raise ValueError("offset must be >= 0")
        return self


class KeyStrategy(str, Enum):
    """How the dedup key is derived from a decoded payload."""

    RECIPE = "recipe"
    FIELDS = "fields"


class DatasetConfig(BaseModel):
    """A named Bucket query plus its pagination and dedup settings."""

    name: str
    query: BucketQuery
    payload_field: str = "production_json"
    key_strategy: KeyStrategy = KeyStrategy.RECIPE
    key_fields: list[str] = Field(default_factory=list)
    page_size: int = 5000
    max_empty_chunks: int = 3
    checkpoint_every: int = 10
    retry_backoff: float = 5.0
    request_delay: float = 0.5
    # Only datasets with a stable ordering can resume from lastDataOffset
    track_offset: bool = False
    output_file: Path | None = None

    @field_validator("output_file", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value)

    @model_validator(mode="after")
    def _validate_dataset(self) -> "DatasetConfig":
        if not self.name:
            raise ValueError("dataset name cannot be empty")
        if not self.query.select:
            raise ValueError("query.select must list at least one field")
        if self.query.limit is not None or self.query.offset is not None:
            raise ValueError("query limit/offset are managed by pagination; remove them")
        for label in ("page_size", "max_empty_chunks", "checkpoint_every"):
            if getattr(self, label) < 1:
                raise ValueError(f"{label} must be >= 1")
        if self.retry_backoff < 0 or self.request_delay < 0:
            raise ValueError("retry_backoff and request_delay must be non-negative")
        if self.key_strategy is KeyStrategy.FIELDS and not self.key_fields:
            raise ValueError("key_strategy 'fields' requires key_fields")
        return self

    def resolved_output_path(self, outputs_dir: Path) -> Path:
        """Return the dump path, relative entries resolved against ``outputs_dir``."""

        path = self.output_file or Path(f"{self.name}.json")
        if not path.is_absolute():
            return (outputs_dir / path).resolve()
        return path


class GlobalConfig(BaseModel):
    """Global controls shared across datasets."""

    api_base_url: str = DEFAULT_API_BASE_URL
    user_agent: str = "bucket-harvester/0.1 (data export)"
    request_timeout: float = 30.0
    data_dir: Path = Field(default=Path("data"))
    outputs_dir: Path = Field(default=Path("data/outputs"))

    @field_validator("data_dir", "outputs_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("request_timeout")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout must be positive")
        return value


RECIPES_DATASET = DatasetConfig(
    name="recipes",
    # No orderBy: recipes have no reliable ordering field
    query=BucketQuery(bucket="recipe", select=["production_json"]),
    payload_field="production_json",
    key_strategy=KeyStrategy.RECIPE,
    output_file=Path("recipes.json"),
)


__all__ = [
    "BucketQuery",
    "DEFAULT_API_BASE_URL",
    "DatasetConfig",
    "GlobalConfig",
    "JoinConfig",
    "KeyStrategy",
    "Operand",
    "OrderByConfig",
    "RECIPES_DATASET",
    "WhereCondition",
]

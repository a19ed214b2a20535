"""
Pydantic models for bulk transfers.

These models validate the engine configuration and carry the values
exchanged with a remote store (listing pages and delete results).
"""

import os
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ConfigurationError

MiB = 1024 * 1024
GiB = 1024 * MiB

ENV_PREFIX = "BULKTRANSFER_"


def _read_env(model_cls, prefix: str) -> Dict[str, str]:
    """Collect ``<prefix><FIELD>`` environment variables for a model."""
    values = {}
    for name in model_cls.model_fields:
        raw = os.getenv(f"{prefix}{name.upper()}")
        if raw is not None and raw != "":
            values[name] = raw
    return values


# Configuration Models
class TransferConfig(BaseModel):
    """Tuning knobs for multipart uploads and bulk deletes."""

    parallel_degree: int = Field(
        4, ge=1, description="Maximum number of part uploads in flight"
    )
    min_retries: int = Field(
        5, ge=0, description="Minimum number of failed parts tolerated"
    )
    max_percent_retries: int = Field(
        10,
        ge=0,
        le=100,
        description="Failed parts tolerated as a percentage of the part count",
    )
    max_page_size: int = Field(
        1000, ge=1, le=1000, description="Keys requested per listing page"
    )
    max_outstanding_batches: int = Field(
        500, ge=1, description="Batch deletes in flight before a forced drain"
    )
    max_error_count: int = Field(
        3, ge=1, description="Drain timeouts tolerated before giving up"
    )
    request_timeout: Optional[float] = Field(
        None, gt=0, description="Seconds to wait for a single-shot put or a drain"
    )
    backoff_base: float = Field(
        0.05, ge=0, description="Base delay in seconds between drain attempts"
    )

    # Slicing policy
    default_part_size: int = Field(32 * MiB, gt=0, description="Initial chunk size")
    magnitude_base: int = Field(
        100, ge=1, description="Part count after which the chunk size grows"
    )
    min_part_size: int = Field(5 * MiB, gt=0, description="Smallest chunk accepted")
    max_part_size: int = Field(5 * GiB, gt=0, description="Largest chunk accepted")
    max_parts: int = Field(10000, ge=2, description="Service limit on part count")

    @model_validator(mode="after")
    def validate_part_sizes(self) -> "TransferConfig":
        """Ensure the default chunk size lies within the allowed range."""
        if not self.min_part_size <= self.default_part_size <= self.max_part_size:
            raise ValueError(
                "default_part_size must be between min_part_size and max_part_size"
            )
        return self

    @classmethod
    def from_env(cls, **overrides) -> "TransferConfig":
        """Build a config from ``BULKTRANSFER_*`` environment variables."""
        values = _read_env(cls, ENV_PREFIX)
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid transfer configuration: {e}") from e


class S3Config(BaseModel):
    """S3 connection settings."""

    access_key: Optional[str] = Field(None, description="S3 access key")
    secret_key: Optional[str] = Field(None, description="S3 secret key")
    region: Optional[str] = Field(None, description="S3 region")
    endpoint_url: Optional[str] = Field(None, description="S3 endpoint URL")
    max_attempts: int = Field(
        5, ge=1, le=20, description="botocore retry attempts per request"
    )

    @classmethod
    def from_env(cls, **overrides) -> "S3Config":
        """Build S3 settings from ``BULKTRANSFER_S3_*`` environment variables."""
        values = _read_env(cls, f"{ENV_PREFIX}S3_")
        values.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid S3 configuration: {e}") from e


# Store Models
class ListOptions(BaseModel):
    """Filter and paging options for a container listing."""

    prefix: str = Field("", description="Only keys starting with this prefix")
    max_keys: int = Field(1000, ge=1, le=1000, description="Keys per page")
    marker: Optional[str] = Field(None, description="Continue after this cursor")

    def after_marker(self, marker: str) -> "ListOptions":
        """Return a copy of these options continuing from ``marker``."""
        return self.model_copy(update={"marker": marker})


class ObjectPage(BaseModel):
    """One page of a container listing."""

    keys: List[str] = Field(default_factory=list, description="Object keys in the page")
    next_marker: Optional[str] = Field(
        None, description="Cursor for the next page, None on the last page"
    )


class DeleteResult(BaseModel):
    """Outcome of one batched delete call."""

    deleted: List[str] = Field(default_factory=list, description="Keys removed")
    errors: Dict[str, str] = Field(
        default_factory=dict, description="Keys not removed, with the store's reason"
    )

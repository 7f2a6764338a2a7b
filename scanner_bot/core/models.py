"""Canonical data models for scanned document filing."""
import math
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Characters the model tends to leave around amounts ("1,200", "¥1200", "1200円")
_AMOUNT_NOISE = (",", "¥", "￥", "円", "$", "€", "£", " ", "　")


class Category(str, Enum):
    """Recommended filing categories; each maps to a destination subdirectory."""
    MEDICAL = "Medical"
    GROCERY = "Grocery"
    TAX = "Tax"
    UTILITIES = "Utilities"
    SEPTIC = "Septic"
    OTHER = "Other"
    UNSORTED = "Unsorted"

    @classmethod
    def resolve(cls, raw: Optional[str]) -> "Category":
        """Map free text from the model onto a category, falling back to UNSORTED."""
        if not raw:
            return cls.UNSORTED
        wanted = raw.strip().lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return cls.UNSORTED


class EventKind(str, Enum):
    """Filesystem change kinds that can mean a document has arrived."""
    CREATE = "create"
    WRITE = "write"
    RENAME = "rename"
    CHMOD = "chmod"


class WatchEvent(BaseModel):
    """A raw change notification for one path in the watch directory."""
    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Absolute path the event refers to")
    kind: EventKind = Field(..., description="Kind of change observed")
    observed_at: datetime = Field(default_factory=datetime.now)


class ExtractedRecord(BaseModel):
    """One receipt/document found in a scanned file."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date: str = Field(default="", description="Document date (YYYY-MM-DD)")
    vendor: str = Field(default="", description="Vendor or clinic name")
    category: str = Field(default="", description="Category as returned by the model")
    amount: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("total_amount", "amount"),
        description="Total amount in whole currency units"
    )

    @field_validator("date", "vendor", "category", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        """Treat JSON null as an empty field."""
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> int:
        """Accept integers, integral-ish floats and decorated numeric strings."""
        if v is None:
            return 0
        if isinstance(v, bool):
            raise ValueError("amount must be a number")
        if isinstance(v, str):
            cleaned = v
            for noise in _AMOUNT_NOISE:
                cleaned = cleaned.replace(noise, "")
            if not cleaned:
                return 0
            try:
                v = float(cleaned)
            except ValueError as exc:
                raise ValueError(f"amount is not numeric: {v!r}") from exc
        if isinstance(v, float):
            if not math.isfinite(v):
                raise ValueError(f"amount is not a finite number: {v!r}")
            return int(round(v))
        return v

    @property
    def resolved_category(self) -> Category:
        """Category used for filing."""
        return Category.resolve(self.category)


class RecordFailure(BaseModel):
    """A record whose copy into the destination tree failed."""
    record: ExtractedRecord
    destination: Optional[Path] = None
    error_message: str = Field(..., description="Error description")


class CommitResult(BaseModel):
    """Result of filing every record parsed from one source file."""
    source: Path = Field(..., description="Original file in the watch directory")
    committed: List[Path] = Field(default_factory=list, description="Destination copies written")
    failures: List[RecordFailure] = Field(default_factory=list)
    archived_to: Optional[Path] = Field(None, description="Location of the archived original")
    archive_error: Optional[str] = None

    @property
    def succeeded(self) -> int:
        """Number of records copied successfully."""
        return len(self.committed)

    @property
    def archived(self) -> bool:
        """Whether the original left the watch directory."""
        return self.archived_to is not None


class ProcessingOutcome(str, Enum):
    """Terminal state of one processing task."""
    FILED = "filed"
    SKIPPED = "skipped"
    UNSTABLE = "unstable"
    VANISHED = "vanished"
    ANALYSIS_FAILED = "analysis_failed"
    PARSE_FAILED = "parse_failed"
    NOTHING_COMMITTED = "nothing_committed"
    ARCHIVE_FAILED = "archive_failed"
    FAILED = "failed"

"""Try-on job record data model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    QUEUED = "queued"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TryOnStyle(str, Enum):
    EDITORIAL = "editorial"
    SEDA = "seda"
    JUSTA = "justa"
    TRANSPARENTE = "transparente"
    CASUAL = "casual"
    PASSARELA = "passarela"


class JobRecord(BaseModel):
    """One try-on request: a model image plus a garment image in, one result out.

    Attribute names match the ``jobs`` table columns so store rows and realtime
    payloads validate directly. ``to_wire()`` renders the camelCase shape that
    clients consume.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    id: str
    user_id: str
    product_id: str
    model_id: str
    style: str = TryOnStyle.EDITORIAL.value
    user_instructions: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    result_public_url: Optional[str] = Field(default=None, alias="resultImage")
    ai_model_used: Optional[str] = None
    prompt_version: Optional[int] = None
    pipeline_version: Optional[int] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    is_favorite: bool = False
    is_public: bool = False

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "JobRecord":
        """Normalize a raw store row (fetch result or change event) into a record."""
        data = dict(row)
        # Nullable booleans in older rows
        for flag in ("is_favorite", "is_public"):
            if data.get(flag) is None:
                data.pop(flag, None)
        return cls.model_validate(data)

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

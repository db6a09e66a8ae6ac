"""
Pydantic schemas for the HTTP surface.

Request bodies use the producers' camelCase field names.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from monitoring.metrics_cache import MetricsCounters


# =============================================================================
# ENUMS
# =============================================================================

class PipelineStepStatusEnum(str, Enum):
    """Status of one step of a producer pipeline."""
    SUCCESS = "success"
    ERROR = "error"
    PENDING = "pending"


# =============================================================================
# NOTIFY
# =============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PipelineStep(_CamelModel):
    name: str
    status: PipelineStepStatusEnum = PipelineStepStatusEnum.PENDING


class OperationContext(_CamelModel):
    """What the producer was doing when it reported."""
    request_type: Optional[str] = Field(None, alias="requestType")
    model: Optional[str] = None
    start_time: Optional[int] = Field(None, alias="startTime", description="Epoch millis")
    pipeline_steps: List[PipelineStep] = Field(default_factory=list, alias="pipelineSteps")


class ActiveOperation(_CamelModel):
    """An operation still running on the producer when the error happened."""
    item_id: Optional[str] = Field(None, alias="itemId")
    board_id: Optional[str] = Field(None, alias="boardId")
    request_type: Optional[str] = Field(None, alias="requestType")
    start_time: Optional[int] = Field(None, alias="startTime", description="Epoch millis")
    model: Optional[str] = None


class ErrorContext(_CamelModel):
    board_id: Optional[str] = Field(None, alias="boardId")
    chat_id: Optional[str] = Field(None, alias="chatId")
    timestamp: Optional[str] = None
    active_operations: List[ActiveOperation] = Field(default_factory=list, alias="activeOperations")
    active_streams: List[str] = Field(default_factory=list, alias="activeStreams")


class NotifyMeta(_CamelModel):
    board_id: Optional[str] = Field(None, alias="boardId")
    operation_context: Optional[OperationContext] = Field(None, alias="operationContext")
    error_context: Optional[ErrorContext] = Field(None, alias="errorContext")


class NotifyRequest(_CamelModel):
    """Body of POST /notify."""
    text: str
    meta: Optional[NotifyMeta] = None

    def meta_dict(self) -> dict:
        """Metadata in wire form, as the formatter expects it."""
        if self.meta is None:
            return {}
        return self.meta.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# METRICS
# =============================================================================

class MetricsRequest(MetricsCounters):
    """Body of POST /metrics: the counters plus an optional source id."""

    source: Optional[str] = None

    def counters(self) -> MetricsCounters:
        return MetricsCounters.model_validate(self.model_dump(exclude={"source"}))


# =============================================================================
# ADMIN
# =============================================================================

class AdminChatRequest(_CamelModel):
    """Body of POST /admin/chats."""
    chat_id: str = Field(..., alias="chatId")

    @field_validator("chat_id", mode="before")
    @classmethod
    def _coerce_chat_id(cls, value):
        # Telegram ids arrive as JSON numbers from most clients
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("chat_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("chatId must not be empty")
        return value


# =============================================================================
# RESPONSES
# =============================================================================

class EnqueuedResponse(BaseModel):
    success: bool = True
    message_id: str

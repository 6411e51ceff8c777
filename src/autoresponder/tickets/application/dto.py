"""
Ticket Application DTOs
=======================

Pydantic request models for the ticket, review and settings endpoints.
Responses are plain dicts built from the domain entities' `to_dict`.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from autoresponder.responses.domain import GenerationOptions


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["low", "medium", "high", "urgent"]
TicketStatusStr = Literal["new", "ai_responded", "human_review", "resolved", "escalated", "closed"]


# ========== Tickets ==========

class TicketCreateRequest(BaseModel):
    """Direct ticket submission."""
    subject: str = Field(..., min_length=1, max_length=500, description="Ticket subject")
    initial_message: str = Field(..., min_length=1, description="Opening customer message")
    # Syntax is checked at intake, which keeps the address as typed
    customer_email: str = Field(..., min_length=1, max_length=320, description="Customer email address")
    customer_name: Optional[str] = Field(None, max_length=255)
    priority: PriorityStr = Field(default="medium", description="Ticket priority")
    category: Optional[str] = Field(None, max_length=100)
    auto_respond: bool = Field(default=False, description="Run the response pipeline right away")


class ReplyRequest(BaseModel):
    """A further customer message on an existing ticket."""
    message: str = Field(..., min_length=1, description="Customer message")
    auto_respond: bool = Field(default=True, description="Draft a response to the reply")


class TicketStatusUpdate(BaseModel):
    status: TicketStatusStr = Field(..., description="Target status")


class RespondRequest(BaseModel):
    """Per-call overrides for the response pipeline."""
    include_knowledge_base: bool = True
    model: Optional[str] = Field(None, min_length=1)
    temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, ge=1, le=8000)

    def to_options(self) -> GenerationOptions:
        return GenerationOptions(
            include_knowledge_base=self.include_knowledge_base,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )


# ========== Review actions ==========

class ApproveRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    send: bool = Field(default=True, description="Send the reply right after approving")
    reviewed_by: Optional[str] = Field(None, alias="reviewedBy")


class EditRequest(BaseModel):
    response_text: str = Field(..., description="Replacement reply text")


class SendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reviewed_by: Optional[str] = Field(None, alias="reviewedBy")


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


# ========== Knowledge base ==========

class KnowledgeEntryCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    content: str = Field(..., min_length=1)
    category: Optional[str] = Field(None, max_length=100)
    tags: List[str] = Field(default_factory=list)


# ========== Settings ==========

class AISettingsUpdate(BaseModel):
    """Partial update of the AI settings; omitted fields keep their value."""
    ai_model: Optional[str] = Field(None, min_length=1)
    ai_temperature: Optional[float] = Field(None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(None, ge=1, le=8000)
    auto_send_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    require_review_below: Optional[float] = Field(None, ge=0.0, le=1.0)
    brand_voice: Optional[str] = Field(None, min_length=1, max_length=500)

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "AISettingsUpdate":
        """Both thresholds given in one request must be ordered."""
        if (
            self.auto_send_threshold is not None
            and self.require_review_below is not None
            and self.require_review_below > self.auto_send_threshold
        ):
            raise ValueError("require_review_below cannot exceed auto_send_threshold")
        return self

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class IntegrationSettingsUpdate(BaseModel):
    """Partial update of the integration settings, merged key by key."""
    email: Optional[Dict[str, Any]] = None
    webhooks: Optional[Dict[str, Any]] = None
    slack: Optional[Dict[str, Any]] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)

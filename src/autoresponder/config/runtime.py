"""
Runtime Settings
================

Typed views over the key/value settings store.

Stored values are overlaid on the process defaults from `Settings`.
A stored value that does not validate is dropped (and logged) so a bad
row in the store can never surface as a type error in the pipeline.
"""

from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from autoresponder.config import Settings, WEBHOOK_EVENTS, WebhookEvent
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


# Settings-store key -> AISettings field
AI_SETTING_KEYS = {
    "ai_model": "model",
    "ai_temperature": "temperature",
    "max_tokens": "max_tokens",
    "auto_send_threshold": "auto_send_threshold",
    "require_review_below": "require_review_below",
    "brand_voice": "brand_voice",
}

INTEGRATIONS_KEY = "integrations"

DEFAULT_SLACK_EVENTS = [
    WebhookEvent.TICKET_CREATED,
    WebhookEvent.TICKET_ESCALATED,
    WebhookEvent.AI_RESPONSE_REQUIRES_REVIEW,
]


class AISettings(BaseModel):
    """Drafting model and routing thresholds."""
    model: str = Field(default="gpt-4o", min_length=1)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1, le=8000)
    auto_send_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    require_review_below: float = Field(default=0.6, ge=0.0, le=1.0)
    brand_voice: str = Field(default="professional and helpful")

    @classmethod
    def defaults(cls, settings: Settings) -> "AISettings":
        return cls(
            model=settings.ai_model,
            temperature=settings.ai_temperature,
            max_tokens=settings.ai_max_tokens,
            auto_send_threshold=settings.auto_send_threshold,
            require_review_below=settings.require_review_below,
            brand_voice=settings.brand_voice,
        )

    @classmethod
    def from_store(cls, defaults: "AISettings", stored: Mapping[str, Any]) -> "AISettings":
        """
        Build AI settings from raw store rows.

        Threshold pairs that would put require_review_below above
        auto_send_threshold are reset to the defaults.
        """
        renamed = {
            AI_SETTING_KEYS[key]: value
            for key, value in stored.items()
            if key in AI_SETTING_KEYS
        }
        merged = overlay_defaults(cls, defaults.model_dump(), renamed)
        if merged.require_review_below > merged.auto_send_threshold:
            logger.warning(
                "Stored thresholds out of order, using defaults",
                extra={
                    "auto_send_threshold": merged.auto_send_threshold,
                    "require_review_below": merged.require_review_below,
                }
            )
            merged = merged.model_copy(update={
                "auto_send_threshold": defaults.auto_send_threshold,
                "require_review_below": defaults.require_review_below,
            })
        return merged

    def to_store(self) -> Dict[str, Any]:
        """Inverse of `from_store`: field values keyed by store key."""
        values = self.model_dump()
        return {key: values[field] for key, field in AI_SETTING_KEYS.items()}


class EmailIntegration(BaseModel):
    """Outbound email switch and sender identity."""
    enabled: bool = False
    from_email: str = "support@example.com"
    from_name: str = "Support Team"


class WebhookIntegration(BaseModel):
    """Generic outbound webhook target."""
    enabled: bool = False
    url: Optional[str] = None
    secret: Optional[str] = None
    events: List[str] = Field(default_factory=lambda: list(WEBHOOK_EVENTS))

    def wants(self, event: str) -> bool:
        return self.enabled and bool(self.url) and event in self.events


class SlackIntegration(BaseModel):
    """Slack-style incoming webhook target."""
    enabled: bool = False
    webhook_url: Optional[str] = None
    channel: str = "#support"
    events: List[str] = Field(default_factory=lambda: list(DEFAULT_SLACK_EVENTS))

    def wants(self, event: str) -> bool:
        return self.enabled and bool(self.webhook_url) and event in self.events


class IntegrationSettings(BaseModel):
    """All notification sinks."""
    email: EmailIntegration = Field(default_factory=EmailIntegration)
    webhooks: WebhookIntegration = Field(default_factory=WebhookIntegration)
    slack: SlackIntegration = Field(default_factory=SlackIntegration)

    @classmethod
    def defaults(cls, settings: Settings) -> "IntegrationSettings":
        return cls(
            email=EmailIntegration(
                enabled=settings.email_enabled,
                from_email=settings.from_email,
                from_name=settings.from_name,
            )
        )

    @classmethod
    def from_store(
        cls,
        defaults: "IntegrationSettings",
        stored: Optional[Mapping[str, Any]]
    ) -> "IntegrationSettings":
        return overlay_defaults(cls, defaults.model_dump(), stored or {})


def overlay_defaults(
    model_cls: Type[ModelT],
    defaults: Mapping[str, Any],
    stored: Mapping[str, Any]
) -> ModelT:
    """
    Merge `stored` over `defaults` one key at a time.

    Unknown keys are ignored. Nested models are merged recursively.
    A key whose value fails validation keeps its default.
    """
    merged: Dict[str, Any] = dict(defaults)

    if not isinstance(stored, Mapping):
        logger.warning(
            "Ignoring non-mapping settings value",
            extra={"model": model_cls.__name__, "value_type": type(stored).__name__}
        )
        return model_cls.model_validate(merged)

    for key, value in stored.items():
        field = model_cls.model_fields.get(key)
        if field is None:
            continue

        annotation = field.annotation
        if (
            isinstance(annotation, type)
            and issubclass(annotation, BaseModel)
            and isinstance(merged.get(key), Mapping)
        ):
            value = overlay_defaults(annotation, merged[key], value).model_dump()

        candidate = {**merged, key: value}
        try:
            model_cls.model_validate(candidate)
        except ValidationError as e:
            logger.warning(
                "Invalid stored setting, keeping default",
                extra={
                    "model": model_cls.__name__,
                    "setting": key,
                    "error_count": e.error_count(),
                }
            )
            continue
        merged = candidate

    return model_cls.model_validate(merged)

"""
Core Exceptions
================

Error taxonomy shared by every module.

Services raise these; the API layer maps each one to its `status_code`
and reports `message` in the error body. Delivery failures inside the
notification queue are logged there and never reach a caller.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""

    status_code = 400


class InvalidStateTransitionException(DomainException):
    """Raised when a lifecycle move is not allowed from the current state."""

    def __init__(
        self,
        entity: str,
        current: str,
        target: str,
        message: Optional[str] = None
    ):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(
            message or f"Cannot move {entity} from '{current}' to '{target}'",
            {"entity": entity, "current": current, "target": target}
        )


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""

    status_code = 500


class ValidationException(ApplicationException):
    """Exception for validation errors."""

    status_code = 400


class UnsupportedEventException(ValidationException):
    """Inbound webhook carried an event kind we do not handle."""

    def __init__(self, event: Optional[str]):
        self.event = event
        super().__init__(f"Unsupported event type: {event}", {"event": event})


class AuthorizationException(ApplicationException):
    """Signature or token check failed."""

    status_code = 401


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

    status_code = 404

    def __init__(
        self,
        resource_type: str,
        resource_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type}"
        if resource_id:
            message += f" with id '{resource_id}'"
        message += " not found"
        super().__init__(message, details)


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class IntegrationDisabledException(ApplicationException):
    """An inbound integration is switched off in settings."""

    status_code = 503


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    status_code = 502

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """
    Exception for LLM API failures.

    The message is kept unprefixed; it is reported to API callers as is.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.service_name = "LLM Service"
        ApplicationException.__init__(self, message, details)


class DeliveryException(ExternalServiceException):
    """Outbound email/webhook/Slack delivery failed."""

    def __init__(self, channel: str, message: str, details: Optional[dict] = None):
        self.channel = channel
        super().__init__(f"{channel} delivery", message, details)

"""
Core Module
============

Exception taxonomy for the autoresponder. Framework-agnostic: domain and
application code import from here, never from FastAPI.
"""

from autoresponder.core.exceptions import (
    ApplicationException,
    DomainException,
    InvalidStateTransitionException,
    RepositoryException,
    ValidationException,
    UnsupportedEventException,
    AuthorizationException,
    ResourceNotFoundException,
    ConfigurationException,
    IntegrationDisabledException,
    ExternalServiceException,
    LLMException,
    DeliveryException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "InvalidStateTransitionException",
    "RepositoryException",
    "ValidationException",
    "UnsupportedEventException",
    "AuthorizationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "IntegrationDisabledException",
    "ExternalServiceException",
    "LLMException",
    "DeliveryException",
]

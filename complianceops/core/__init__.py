"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from complianceops.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    NotificationException,
    IllegalTransition,
    StaleTransition,
    MalformedEscalationRule,
    DuplicateEscalationExecution,
    IllegalBreachTransition,
    TransitionNotPermitted,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "NotificationException",
    "IllegalTransition",
    "StaleTransition",
    "MalformedEscalationRule",
    "DuplicateEscalationExecution",
    "IllegalBreachTransition",
    "TransitionNotPermitted",
]

"""
Core Exceptions
================

Custom exceptions for the application following clean architecture principles.

These exceptions define domain-specific errors that can be caught and handled
appropriately at the application boundaries.
"""

from typing import Any, Iterable, List, Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ResourceNotFoundException(ApplicationException):
    """Exception when a requested resource is not found."""

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


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class NotificationException(ExternalServiceException):
    """Exception for notification gateway failures."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notification Gateway", message, details)


class IllegalTransition(DomainException):
    """A status change that is not in the adjacency set of the current status."""

    def __init__(
        self,
        from_status: Any,
        to_status: Any,
        allowed: Iterable[Any] = ()
    ):
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        self.allowed = sorted(getattr(s, "value", s) for s in allowed)
        super().__init__(
            f"Illegal transition: {self.from_status} -> {self.to_status}",
            {
                "from_status": self.from_status,
                "to_status": self.to_status,
                "allowed": self.allowed,
            }
        )


class StaleTransition(DomainException):
    """The stored status no longer matches the status the caller expected."""

    def __init__(self, service_request_id: str, expected: Any, actual: Any):
        self.service_request_id = service_request_id
        self.expected = getattr(expected, "value", expected)
        self.actual = getattr(actual, "value", actual)
        super().__init__(
            f"Service request {service_request_id} changed status "
            f"(expected {self.expected}, found {self.actual})",
            {
                "service_request_id": service_request_id,
                "expected_status": self.expected,
                "actual_status": self.actual,
            }
        )


class MalformedEscalationRule(ValidationException):
    """Escalation rule configuration rejected at write time."""

    def __init__(self, rule_key: str, problems: List[str]):
        self.rule_key = rule_key
        self.problems = list(problems)
        super().__init__(
            f"Escalation rule '{rule_key}' is malformed: {'; '.join(self.problems)}",
            {"rule_key": rule_key, "problems": self.problems}
        )


class DuplicateEscalationExecution(RepositoryException):
    """An execution for (rule, work item, tier) already exists."""

    def __init__(self, rule_id: str, work_item_id: str, tier: int):
        self.rule_id = rule_id
        self.work_item_id = work_item_id
        self.tier = tier
        super().__init__(
            f"Escalation rule {rule_id} already fired tier {tier} for {work_item_id}",
            {"rule_id": rule_id, "work_item_id": work_item_id, "tier": tier}
        )


class IllegalBreachTransition(DomainException):
    """An SLA breach lifecycle move that its current status does not allow."""

    def __init__(self, breach_id: str, from_status: Any, to_status: Any):
        self.breach_id = breach_id
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        super().__init__(
            f"SLA breach {breach_id} cannot move from {self.from_status} to {self.to_status}",
            {
                "breach_id": breach_id,
                "from_status": self.from_status,
                "to_status": self.to_status,
            }
        )


class TransitionNotPermitted(DomainException):
    """A legal transition the acting role is not allowed to perform."""

    def __init__(self, from_status: Any, to_status: Any, actor_role: Optional[str]):
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        self.actor_role = actor_role
        super().__init__(
            f"Role {actor_role or '<none>'} may not move {self.from_status} -> {self.to_status}",
            {
                "from_status": self.from_status,
                "to_status": self.to_status,
                "actor_role": actor_role,
            }
        )

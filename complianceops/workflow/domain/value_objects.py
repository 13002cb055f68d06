"""
Workflow Value Objects
======================

Closed status enumeration for service requests and the single adjacency
table every other view of the lifecycle is derived from.
"""

from enum import Enum
from types import MappingProxyType
from typing import Callable, FrozenSet, Mapping, Tuple


class ServiceRequestStatus(str, Enum):
    """Every status a service request can hold."""

    # Initial
    DRAFT = "draft"
    INITIATED = "initiated"
    PENDING_PAYMENT = "pending_payment"

    # Active
    PAYMENT_RECEIVED = "payment_received"
    DOCUMENTS_PENDING = "documents_pending"
    DOCUMENTS_UPLOADED = "documents_uploaded"
    DOCUMENTS_VERIFIED = "documents_verified"
    IN_PROGRESS = "in_progress"
    PROCESSING = "processing"

    # Review
    PENDING_REVIEW = "pending_review"
    UNDER_REVIEW = "under_review"
    QC_REVIEW = "qc_review"
    QC_APPROVED = "qc_approved"
    QC_REJECTED = "qc_rejected"

    # Delivery
    READY_FOR_DELIVERY = "ready_for_delivery"
    DELIVERED = "delivered"
    AWAITING_CLIENT_CONFIRMATION = "awaiting_client_confirmation"

    # Terminal
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

    # Special
    ON_HOLD = "on_hold"
    ESCALATED = "escalated"
    SLA_BREACHED = "sla_breached"


class Phase(str, Enum):
    """Lifecycle phase a status belongs to."""
    INITIAL = "initial"
    ACTIVE = "active"
    REVIEW = "review"
    DELIVERY = "delivery"
    TERMINAL = "terminal"
    SPECIAL = "special"


S = ServiceRequestStatus

PHASES: Mapping[Phase, tuple] = MappingProxyType({
    Phase.INITIAL: (S.DRAFT, S.INITIATED, S.PENDING_PAYMENT),
    Phase.ACTIVE: (
        S.PAYMENT_RECEIVED, S.DOCUMENTS_PENDING, S.DOCUMENTS_UPLOADED,
        S.DOCUMENTS_VERIFIED, S.IN_PROGRESS, S.PROCESSING,
    ),
    Phase.REVIEW: (
        S.PENDING_REVIEW, S.UNDER_REVIEW, S.QC_REVIEW, S.QC_APPROVED, S.QC_REJECTED,
    ),
    Phase.DELIVERY: (S.READY_FOR_DELIVERY, S.DELIVERED, S.AWAITING_CLIENT_CONFIRMATION),
    Phase.TERMINAL: (S.COMPLETED, S.CANCELLED, S.REJECTED),
    Phase.SPECIAL: (S.ON_HOLD, S.ESCALATED, S.SLA_BREACHED),
})

PHASE_OF: Mapping[ServiceRequestStatus, Phase] = MappingProxyType({
    status: phase for phase, statuses in PHASES.items() for status in statuses
})

TERMINAL_STATUSES: FrozenSet[ServiceRequestStatus] = frozenset(PHASES[Phase.TERMINAL])

# Overlays are entered from any non-terminal status and resolve back to the
# status the request held before entering them.
OVERLAY_STATUSES: FrozenSet[ServiceRequestStatus] = frozenset({S.ESCALATED, S.SLA_BREACHED})

# Adjacency for every non-overlay status. Overlay entry edges are added by
# the state machine for every non-terminal status, so they are not repeated here.
TRANSITIONS: Mapping[ServiceRequestStatus, FrozenSet[ServiceRequestStatus]] = MappingProxyType({
    S.DRAFT: frozenset({S.INITIATED, S.CANCELLED}),
    S.INITIATED: frozenset({S.PENDING_PAYMENT, S.DOCUMENTS_PENDING, S.CANCELLED, S.ON_HOLD}),
    S.PENDING_PAYMENT: frozenset({S.PAYMENT_RECEIVED, S.CANCELLED, S.ON_HOLD}),
    S.PAYMENT_RECEIVED: frozenset({S.DOCUMENTS_PENDING, S.IN_PROGRESS, S.ON_HOLD}),
    S.DOCUMENTS_PENDING: frozenset({S.DOCUMENTS_UPLOADED, S.ON_HOLD, S.CANCELLED}),
    S.DOCUMENTS_UPLOADED: frozenset({S.DOCUMENTS_VERIFIED, S.DOCUMENTS_PENDING, S.ON_HOLD}),
    S.DOCUMENTS_VERIFIED: frozenset({S.IN_PROGRESS, S.PROCESSING, S.ON_HOLD}),
    S.IN_PROGRESS: frozenset({S.PROCESSING, S.PENDING_REVIEW, S.QC_REVIEW, S.ON_HOLD}),
    S.PROCESSING: frozenset({S.PENDING_REVIEW, S.QC_REVIEW, S.IN_PROGRESS, S.ON_HOLD}),
    S.PENDING_REVIEW: frozenset({S.UNDER_REVIEW, S.QC_REVIEW, S.IN_PROGRESS, S.ON_HOLD}),
    S.UNDER_REVIEW: frozenset({S.QC_REVIEW, S.IN_PROGRESS, S.ON_HOLD, S.REJECTED}),
    S.QC_REVIEW: frozenset({S.QC_APPROVED, S.QC_REJECTED, S.ON_HOLD}),
    S.QC_APPROVED: frozenset({S.READY_FOR_DELIVERY, S.ON_HOLD}),
    S.QC_REJECTED: frozenset({S.IN_PROGRESS, S.ON_HOLD}),
    S.READY_FOR_DELIVERY: frozenset({S.DELIVERED, S.ON_HOLD}),
    S.DELIVERED: frozenset({S.AWAITING_CLIENT_CONFIRMATION, S.COMPLETED}),
    S.AWAITING_CLIENT_CONFIRMATION: frozenset({S.COMPLETED, S.IN_PROGRESS}),
    S.ON_HOLD: frozenset({
        S.INITIATED, S.IN_PROGRESS, S.PENDING_PAYMENT, S.DOCUMENTS_PENDING, S.CANCELLED,
    }),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.REJECTED: frozenset(),
})


def may_approve_qc(role: str) -> bool:
    """QC staff, ops managers and admins can sign off a QC review."""
    role = role.lower()
    return "qc" in role or role in ("ops_manager", "admin")


# Legal edges that additionally depend on who performs them.
ROLE_GUARDS: Mapping[Tuple[ServiceRequestStatus, ServiceRequestStatus], Callable[[str], bool]] = MappingProxyType({
    (S.QC_REVIEW, S.QC_APPROVED): may_approve_qc,
})

del S

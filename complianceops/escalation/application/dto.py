"""
Escalation Application DTOs
===========================

Pydantic models for escalation rule configuration, shared by the API and
the YAML ops configuration.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from complianceops.escalation.domain import (
    EscalationExecution,
    EscalationRule,
)
from complianceops.workflow.domain import ServiceRequestStatus


# ========== Type Aliases for Literals ==========
PriorityStr = Literal["urgent", "high", "medium", "low"]
TriggerTypeStr = Literal["time_based", "sla_based", "status_based"]
EscalationSeverityStr = Literal["warning", "critical", "breach"]
EscalationActionStr = Literal["notify", "reassign", "notify_client", "open_incident"]


# ========== Request DTOs ==========

class TriggerConfig(BaseModel):
    """Trigger variant; fields not used by the chosen type are ignored."""
    type: TriggerTypeStr
    duration_hours: Optional[float] = Field(None, gt=0, description="time_based: hours until 100%")
    statuses: List[ServiceRequestStatus] = Field(default_factory=list, description="status_based: matching statuses")
    window_hours: Optional[float] = Field(None, gt=0, description="status_based: hours in status until 100%")


class TierConfig(BaseModel):
    tier: int = Field(..., ge=1)
    threshold_percent: float = Field(..., gt=0, description="Percent of trigger progress")
    severity: EscalationSeverityStr
    notify_roles: List[str] = Field(default_factory=list)
    actions: List[EscalationActionStr] = Field(default_factory=lambda: ["notify"])
    reassign_to_role: Optional[str] = Field(None, description="Overrides the rule's reassign_to_role for this tier")


class EscalationRuleCreate(BaseModel):
    """DTO for creating or replacing an escalation rule."""
    rule_key: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=200)
    trigger: TriggerConfig
    tiers: List[TierConfig]
    service_key: Optional[str] = None
    status_filter: List[ServiceRequestStatus] = Field(default_factory=list)
    priority_filter: List[PriorityStr] = Field(default_factory=list)
    auto_reassign: bool = False
    reassign_to_role: Optional[str] = None
    notify_client: bool = False
    create_incident: bool = False
    is_active: bool = True


# ========== Response DTOs ==========

class EscalationRuleResponse(BaseModel):
    id: str
    rule_key: str
    name: str
    trigger: dict
    tiers: List[dict]
    service_key: Optional[str]
    status_filter: List[str]
    priority_filter: List[str]
    auto_reassign: bool
    reassign_to_role: Optional[str]
    notify_client: bool
    create_incident: bool
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_entity(cls, rule: EscalationRule) -> "EscalationRuleResponse":
        return cls(
            id=rule.id,
            rule_key=rule.rule_key,
            name=rule.name,
            trigger=rule.trigger.to_dict(),
            tiers=[tier.to_dict() for tier in rule.tiers],
            service_key=rule.service_key,
            status_filter=sorted(s.value for s in rule.status_filter),
            priority_filter=sorted(p.value for p in rule.priority_filter),
            auto_reassign=rule.auto_reassign,
            reassign_to_role=rule.reassign_to_role,
            notify_client=rule.notify_client,
            create_incident=rule.create_incident,
            is_active=rule.is_active,
            created_at=rule.created_at,
            updated_at=rule.updated_at,
        )


class EscalationExecutionResponse(BaseModel):
    id: str
    rule_id: str
    work_item_id: str
    tier: int
    severity: str
    progress_percent: float
    fired_at: datetime
    actions: List[str]
    notified_roles: List[str]
    previous_assignee: Optional[str] = None
    reassign_role: Optional[str] = None
    new_assignee: Optional[str] = None

    @classmethod
    def from_entity(cls, execution: EscalationExecution) -> "EscalationExecutionResponse":
        return cls(
            id=execution.id,
            rule_id=execution.rule_id,
            work_item_id=execution.work_item_id,
            tier=execution.tier,
            severity=execution.severity.value,
            progress_percent=round(execution.progress_percent, 2),
            fired_at=execution.fired_at,
            actions=[a.value for a in execution.actions],
            notified_roles=list(execution.notified_roles),
            previous_assignee=execution.previous_assignee,
            reassign_role=execution.reassign_role,
            new_assignee=execution.new_assignee,
        )

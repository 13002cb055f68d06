"""
Escalation External Integrations
================================

External collaborators for escalation side effects:
- Webhook notification gateway (httpx, retry + circuit breaker)
- YAML ops config with hot reload (watchdog)
- Roster-based assignment provider
"""

import asyncio
import threading
import time
from collections import defaultdict
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import httpx
import yaml
from pydantic import BaseModel, Field, ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from complianceops.config import settings
from complianceops.core import ConfigurationException, NotificationException
from complianceops.escalation.application.dto import EscalationRuleCreate
from complianceops.escalation.application.services import (
    IAssignmentProvider,
    INotificationGateway,
)
from complianceops.sla.application.dto import (
    BusinessHoursConfig,
    SlaPolicyConfig,
    build_deadline_calculator,
)
from complianceops.sla.domain import SlaDeadlineCalculator
from complianceops.shared.infrastructure.logging import get_logger
from complianceops.workflow.domain import ServiceRequest

logger = get_logger(__name__)


# ========== Ops Configuration ==========

class OpsConfig(BaseModel):
    """Operational configuration loaded from YAML."""
    assignment_roster: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Role name -> actor IDs eligible for reassignment"
    )
    escalation_rules: List[EscalationRuleCreate] = Field(
        default_factory=list,
        description="Default escalation rules, upserted by rule_key at startup"
    )
    sla_policies: Dict[str, SlaPolicyConfig] = Field(
        default_factory=dict,
        description="Service key -> resolution window used to set deadlines on new requests"
    )
    default_sla_policy: Optional[SlaPolicyConfig] = Field(
        default=None,
        description="Window for services without their own policy; none means no automatic deadline"
    )
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)

    def deadline_calculator(self, tz: tzinfo) -> SlaDeadlineCalculator:
        return build_deadline_calculator(self.sla_policies, self.default_sla_policy, self.business_hours, tz)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for ops config file changes."""

    def __init__(self, config_manager: "OpsConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("Ops config file changed", extra={"path": str(event.src_path)})
            self.config_manager.reload()


class OpsConfigManager:
    """
    Thread-safe ops configuration manager with hot-reload support.

    The watchdog observer runs in its own thread; readers always see either
    the old or the new config, never a partial one. A reload that fails to
    parse keeps the previous config.
    """

    def __init__(self):
        self._config: Optional[OpsConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> OpsConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: File exists but is not a valid config
        """
        self._path = Path(path)
        try:
            config = self._load_from_file(self._path)
        except (yaml.YAMLError, ValidationError) as e:
            raise ConfigurationException(f"Invalid ops config {self._path}: {e}") from e

        with self._lock:
            self._config = config
        return config

    def _load_from_file(self, path: Path) -> OpsConfig:
        if not path.exists():
            logger.warning("Ops config file not found, using defaults", extra={"path": str(path)})
            return OpsConfig()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return OpsConfig.model_validate(data)

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            logger.error("Failed to reload ops config", extra={"error": str(e)})
            return False

        with self._lock:
            self._config = new_config
        logger.info("Ops configuration reloaded")
        return True

    def start_watching(self) -> None:
        """Start watching the config file; skipped when it does not exist."""
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info("Ops config file doesn't exist, skipping file watch", extra={"path": str(self._path)})
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(self._path.resolve().parent), recursive=False)
            self._observer.start()
            logger.info("Started watching ops config", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> OpsConfig:
        with self._lock:
            if self._config is None:
                raise RuntimeError("Ops configuration not loaded")
            return self._config


# ========== Assignment ==========

class RosterAssignmentProvider(IAssignmentProvider):
    """
    Round-robin over the actors the ops config lists for a role.

    The current assignee is skipped when someone else holds the role.
    """

    def __init__(self, config_manager: OpsConfigManager):
        self._config_manager = config_manager
        self._cursors: Dict[str, int] = defaultdict(int)

    async def pick_assignee(self, role: str, item: ServiceRequest) -> Optional[str]:
        members = self._config_manager.config.assignment_roster.get(role) or []
        if not members:
            return None

        for _ in range(len(members)):
            candidate = members[self._cursors[role] % len(members)]
            self._cursors[role] += 1
            if candidate != item.assigned_to or len(members) == 1:
                return candidate
        return None


# ========== Notifications ==========

class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for the notification webhook.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: float = 60.0):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            if time.monotonic() - self._last_failure_time >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class WebhookNotificationGateway(INotificationGateway):
    """
    Delivers notifications as JSON events to a single webhook.

    The receiving service fans out to email, SMS or push. Delivery is
    retried with exponential backoff; exhausted retries and an open circuit
    raise NotificationException. An unset URL disables delivery.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._webhook_url = webhook_url if webhook_url is not None else settings.notification_webhook_url
        self._timeout = timeout_seconds or settings.notification_timeout_seconds
        self._max_retries = max(1, max_retries)
        self._backoff_base = backoff_base
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._http_client

    async def notify_roles(self, roles: Sequence[str], payload: dict) -> bool:
        return await self._send("escalation.notify", {"roles": list(roles), **payload})

    async def notify_client(self, entity_id: str, payload: dict) -> bool:
        return await self._send("escalation.notify_client", {"client_entity_id": entity_id, **payload})

    async def open_incident(self, payload: dict) -> bool:
        return await self._send("escalation.incident", payload)

    async def _send(self, event: str, data: Dict[str, Any]) -> bool:
        if not self._webhook_url:
            logger.debug("Notification webhook URL not configured, skipping", extra={"event": event})
            return False

        if not self._circuit_breaker.allow_request():
            raise NotificationException(f"Circuit open, {event} not sent")

        body = {
            "event": event,
            "sent_at": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }

        for attempt in range(self._max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self._webhook_url, json=body)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Notification sent",
                        extra={"event": event, "work_item_id": data.get("work_item_id")}
                    )
                    return True

                logger.warning(
                    "Notification webhook returned error status",
                    extra={"status_code": response.status_code, "attempt": attempt + 1}
                )

            except httpx.HTTPError as e:
                logger.error(
                    "Notification request failed",
                    extra={"error": str(e), "attempt": attempt + 1, "event": event}
                )

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._backoff_base * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise NotificationException(f"{event} not delivered after {self._max_retries} attempts")

    async def close(self) -> None:
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

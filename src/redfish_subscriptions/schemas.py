"""Pydantic schemas for Redfish servers and event subscriptions.

Field aliases follow the Redfish property names (``Destination``,
``EventTypes``...) so payloads can be loaded straight from the JSON the
callers already use, and dumped back with ``by_alias=True``.

Redfish schema reference: EventService, EventDestination
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LoginType(str, Enum):
    """How to authenticate against a BMC."""

    SESSION = "Session"
    BASIC = "Basic"


class EventType(str, Enum):
    """Event types accepted by legacy (EventTypes based) subscriptions."""

    STATUS_CHANGE = "StatusChange"
    RESOURCE_UPDATED = "ResourceUpdated"
    RESOURCE_ADDED = "ResourceAdded"
    RESOURCE_REMOVED = "ResourceRemoved"
    ALERT = "Alert"
    METRIC_REPORT = "MetricReport"
    OTHER = "Other"


class EventDestinationProtocol(str, Enum):
    """Protocol used to deliver events to the destination."""

    REDFISH = "Redfish"
    KAFKA = "Kafka"
    SNMPV1 = "SNMPv1"
    SNMPV2C = "SNMPv2c"
    SNMPV3 = "SNMPv3"
    SMTP = "SMTP"
    SYSLOG_TLS = "SyslogTLS"
    SYSLOG_TCP = "SyslogTCP"
    SYSLOG_UDP = "SyslogUDP"
    SYSLOG_RELP = "SyslogRELP"
    OEM = "OEM"


class DeliveryRetryPolicy(str, Enum):
    """What the BMC does when event delivery keeps failing."""

    TERMINATE_AFTER_RETRIES = "TerminateAfterRetries"
    SUSPEND_RETRIES = "SuspendRetries"
    RETRY_FOREVER = "RetryForever"
    RETRY_FOREVER_WITH_BACKOFF = "RetryForeverWithBackoff"


class RedfishServer(BaseModel):
    """A BMC targeted by a fleet operation.

    ``ip`` identifies the server within a fleet operation. It may be a bare
    host (``10.0.0.5``) or a full endpoint (``https://10.0.0.5:8443``).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ip: str = Field(..., min_length=1, description="BMC address or endpoint URL")
    username: str = Field(..., description="BMC account name")
    password: str = Field(..., repr=False, description="BMC account password")
    login_type: LoginType = Field(
        default=LoginType.SESSION,
        alias="loginType",
        description="Authentication method",
    )
    slurm_node: str = Field(
        default="",
        alias="slurmNode",
        description="Scheduler node name backed by this server",
    )

    @property
    def base_url(self) -> str:
        """Endpoint URL, assuming HTTPS when no scheme is given."""
        if self.ip.startswith(("http://", "https://")):
            return self.ip.rstrip("/")
        return f"https://{self.ip}"


class SubscriptionPayload(BaseModel):
    """The subscription replicated onto every server of a fleet operation.

    ``event_types`` is used by legacy controllers; ``registry_prefixes`` and
    ``resource_types`` replace it from Redfish 1.5 on.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    destination: str = Field(..., alias="Destination", description="Event callback URL")
    event_types: list[EventType] = Field(default_factory=list, alias="EventTypes")
    registry_prefixes: list[str] = Field(default_factory=list, alias="RegistryPrefixes")
    resource_types: list[str] = Field(default_factory=list, alias="ResourceTypes")
    delivery_retry_policy: DeliveryRetryPolicy | None = Field(
        default=None, alias="DeliveryRetryPolicy"
    )
    http_headers: dict[str, str] = Field(default_factory=dict, alias="HttpHeaders")
    oem: Any = Field(default=None, alias="Oem")
    protocol: EventDestinationProtocol = Field(
        default=EventDestinationProtocol.REDFISH, alias="Protocol"
    )
    context: str = Field(default="", alias="Context")

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        """Redfish only pushes events to HTTP(S) listeners."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Destination must be an http(s) URL, got: {v}")
        return v


class EventDestination(BaseModel):
    """An active subscription as reported by a BMC."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., alias="Id", description="Subscription Id on the BMC")
    odata_id: str = Field(..., alias="@odata.id", description="Subscription resource URI")
    destination: str = Field(default="", alias="Destination")
    context: str | None = Field(default=None, alias="Context")
    protocol: str | None = Field(default=None, alias="Protocol")
    event_types: list[str] = Field(default_factory=list, alias="EventTypes")

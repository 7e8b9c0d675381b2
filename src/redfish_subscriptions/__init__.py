"""Redfish event subscription management across a fleet of BMCs."""

from redfish_subscriptions.client import RedfishClient, RedfishSession, SubscriptionShape
from redfish_subscriptions.errors import (
    AggregateSubscriptionError,
    BMCConnectionError,
    QueryError,
    SubscriptionError,
    SubscriptionManagerError,
)
from redfish_subscriptions.orchestrator import (
    SubscriptionOrchestrator,
    create_subscriptions_for_all_servers,
    delete_subscriptions_from_all_servers,
)
from redfish_subscriptions.schemas import (
    DeliveryRetryPolicy,
    EventDestination,
    EventDestinationProtocol,
    EventType,
    LoginType,
    RedfishServer,
    SubscriptionPayload,
)

__all__ = [
    "AggregateSubscriptionError",
    "BMCConnectionError",
    "DeliveryRetryPolicy",
    "EventDestination",
    "EventDestinationProtocol",
    "EventType",
    "LoginType",
    "QueryError",
    "RedfishClient",
    "RedfishServer",
    "RedfishSession",
    "SubscriptionError",
    "SubscriptionManagerError",
    "SubscriptionOrchestrator",
    "SubscriptionPayload",
    "SubscriptionShape",
    "create_subscriptions_for_all_servers",
    "delete_subscriptions_from_all_servers",
]

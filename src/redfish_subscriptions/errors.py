"""Error types raised by the subscription client and fleet orchestrator."""


class SubscriptionManagerError(Exception):
    """Base class for all subscription management errors."""


class ServerError(SubscriptionManagerError):
    """An error scoped to a single Redfish server."""

    def __init__(self, server_ip: str, message: str):
        super().__init__(message)
        self.server_ip = server_ip


class BMCConnectionError(ServerError):
    """Opening an authenticated session to a BMC failed.

    Covers authentication failures, unreachable hosts and TLS errors.
    """


class QueryError(ServerError):
    """Listing the active subscriptions on a BMC failed."""


class SubscriptionError(ServerError):
    """Creating or deleting a subscription failed."""


class AggregateSubscriptionError(SubscriptionManagerError):
    """One or more servers failed during a fleet-wide create.

    ``errors`` holds one message per failed server in completion order.
    """

    def __init__(self, errors: list[str]):
        super().__init__("subscription process encountered errors: " + "; ".join(errors))
        self.errors = errors

"""Fleet-wide event subscription orchestration.

Creates the same subscription on every server concurrently. Either every
server ends up subscribed, or every subscription created by the operation is
rolled back and an ``AggregateSubscriptionError`` is raised.

Usage:
    from redfish_subscriptions import create_subscriptions_for_all_servers

    subscriptions = await create_subscriptions_for_all_servers(servers, payload)
    ...
    await delete_subscriptions_from_all_servers(servers, subscriptions)
"""

import asyncio
from collections import Counter
from typing import Any

from redfish_subscriptions.client import Connector, RedfishClient, SubscriptionSession
from redfish_subscriptions.errors import (
    AggregateSubscriptionError,
    SubscriptionError,
    SubscriptionManagerError,
)
from redfish_subscriptions.logging_config import get_logger
from redfish_subscriptions.schemas import RedfishServer, SubscriptionPayload


def find_server(servers: list[RedfishServer], server_ip: str) -> RedfishServer | None:
    """Return the descriptor whose address is ``server_ip``, if any."""
    for server in servers:
        if server.ip == server_ip:
            return server
    return None


class SubscriptionOrchestrator:
    """Drives subscription create/delete across a fleet of BMCs.

    Args:
        connect: Opens a session to one server as an async context manager.
                 Defaults to ``RedfishClient(logger=logger).connect``.
        logger: Structured logger. Defaults to this module's logger.
    """

    def __init__(self, connect: Connector | None = None, logger: Any | None = None):
        self._connect = connect or RedfishClient(logger=logger).connect
        self.logger = logger or get_logger(__name__)

    async def create_subscriptions_for_all_servers(
        self,
        servers: list[RedfishServer],
        payload: SubscriptionPayload,
    ) -> dict[str, str]:
        """Create ``payload`` on every server, rolling back on any failure.

        Existing subscriptions with the same destination are removed from each
        server before the new one is created.

        Returns:
            Mapping of server address to the new subscription identifier.

        Raises:
            ValueError: If two servers share an address.
            AggregateSubscriptionError: If any server failed. Subscriptions
                created on the other servers have been rolled back.
        """
        duplicates = sorted(ip for ip, count in Counter(s.ip for s in servers).items() if count > 1)
        if duplicates:
            raise ValueError(f"Duplicate server addresses: {', '.join(duplicates)}")

        subscriptions: dict[str, str] = {}
        lock = asyncio.Lock()
        errors: asyncio.Queue[str] = asyncio.Queue(maxsize=len(servers))

        self.logger.info(
            "fleet_subscription_started",
            server_count=len(servers),
            destination=payload.destination,
        )

        await asyncio.gather(
            *(
                self._create_on_server(server, payload, subscriptions, lock, errors)
                for server in servers
            )
        )

        all_errors: list[str] = []
        while not errors.empty():
            all_errors.append(errors.get_nowait())

        if all_errors:
            self.logger.error(
                "fleet_subscription_rolling_back",
                failed_count=len(all_errors),
                created_count=len(subscriptions),
            )
            await self.delete_subscriptions_from_all_servers(servers, subscriptions)
            self.logger.error("fleet_subscription_aborted", errors=all_errors)
            raise AggregateSubscriptionError(all_errors)

        self.logger.info("fleet_subscription_committed", server_count=len(subscriptions))
        return subscriptions

    async def _create_on_server(
        self,
        server: RedfishServer,
        payload: SubscriptionPayload,
        subscriptions: dict[str, str],
        lock: asyncio.Lock,
        errors: asyncio.Queue[str],
    ) -> None:
        # Errors never escape the worker; they are reported through the queue
        try:
            async with self._connect(server) as session:
                await self._delete_conflicting_subscriptions(session, server, payload)
                subscription_id = await session.create_subscription(payload)
        except Exception as e:
            self.logger.warning(
                "subscription_create_failed",
                server_ip=server.ip,
                error=str(e),
                error_type=type(e).__name__,
            )
            errors.put_nowait(f"subscription failed on server {server.ip}: {e}")
            return

        async with lock:
            subscriptions[server.ip] = subscription_id

        self.logger.info(
            "subscription_created",
            server_ip=server.ip,
            subscription_id=subscription_id,
        )

    async def _delete_conflicting_subscriptions(
        self,
        session: SubscriptionSession,
        server: RedfishServer,
        payload: SubscriptionPayload,
    ) -> None:
        """Remove every subscription already pointing at the payload's destination.

        Only the destination is compared; filters, headers and context are ignored.
        """
        for existing in await session.list_subscriptions():
            if existing.destination != payload.destination:
                continue
            try:
                await session.delete_subscription(existing.odata_id)
            except SubscriptionManagerError as e:
                raise SubscriptionError(
                    server.ip,
                    f"failed to delete event subscription {existing.id}, "
                    f"on server {server.ip}: {e}"
                ) from e
            self.logger.info(
                "conflicting_subscription_deleted",
                server_ip=server.ip,
                subscription_id=existing.odata_id,
            )

    async def delete_subscriptions_from_all_servers(
        self,
        servers: list[RedfishServer],
        subscriptions: dict[str, str],
    ) -> None:
        """Delete every subscription in ``subscriptions`` concurrently.

        Best effort: failures are logged, never raised or retried. Entries whose
        address matches no server in ``servers`` are skipped.
        """
        self.logger.info("fleet_unsubscribe_started", subscription_count=len(subscriptions))

        await asyncio.gather(
            *(
                self._delete_on_server(servers, server_ip, subscription_id)
                for server_ip, subscription_id in subscriptions.items()
            )
        )

    async def _delete_on_server(
        self,
        servers: list[RedfishServer],
        server_ip: str,
        subscription_id: str,
    ) -> None:
        server = find_server(servers, server_ip)
        if server is None:
            self.logger.warning(
                "unsubscribe_server_not_found",
                server_ip=server_ip,
                subscription_id=subscription_id,
            )
            return

        try:
            async with self._connect(server) as session:
                await session.delete_subscription(subscription_id)
        except Exception as e:
            self.logger.error(
                "subscription_delete_failed",
                server_ip=server_ip,
                subscription_id=subscription_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        self.logger.info(
            "subscription_deleted",
            server_ip=server_ip,
            subscription_id=subscription_id,
        )


async def create_subscriptions_for_all_servers(
    servers: list[RedfishServer],
    payload: SubscriptionPayload,
) -> dict[str, str]:
    """Create ``payload`` on every server with the default orchestrator."""
    return await SubscriptionOrchestrator().create_subscriptions_for_all_servers(servers, payload)


async def delete_subscriptions_from_all_servers(
    servers: list[RedfishServer],
    subscriptions: dict[str, str],
) -> None:
    """Delete ``subscriptions`` from their servers with the default orchestrator."""
    await SubscriptionOrchestrator().delete_subscriptions_from_all_servers(servers, subscriptions)

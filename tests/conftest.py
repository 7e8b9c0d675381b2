import pytest

from redfish_subscriptions.config import get_settings
from redfish_subscriptions.schemas import EventType, RedfishServer, SubscriptionPayload


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached; make every test read the environment afresh."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def server():
    return RedfishServer(ip="10.0.0.1", username="admin", password="secret", slurm_node="node-1")


@pytest.fixture
def payload():
    return SubscriptionPayload(
        destination="http://hook/x",
        event_types=[EventType.ALERT, EventType.STATUS_CHANGE],
        registry_prefixes=["Base", "EventLog"],
        resource_types=["Systems"],
        context="slurm-exporter",
    )

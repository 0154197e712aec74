import pytest

from search_ai.core.rabbitmq import EventHandlingError, handle_product_event
from search_ai.schemas.catalog import ImportResult, OperationResult


class StubService:
    def __init__(self, status=200, success=True):
        self.status = status
        self.success = success
        self.calls = []

    async def upsert_from_payload(self, app_id, payload):
        self.calls.append(("upsert", app_id, payload))
        return ImportResult(message="done", imported_count=1, status=self.status)

    async def delete_product(self, app_id, product_id):
        self.calls.append(("delete", app_id, product_id))
        return OperationResult(success=self.success, message="deleted")

    async def set_published_status_with_fetch(self, app_id, product_id, is_published):
        self.calls.append(("publish", app_id, product_id, is_published))
        return OperationResult(success=self.success, message="publish failed")


@pytest.mark.parametrize("routing_key", ["product.created", "product.updated"])
async def test_upsert_events(routing_key):
    service = StubService()
    payload = {"product_id": 3, "name": "Scarf"}

    await handle_product_event(routing_key, {"app_id": "7", "product": payload}, service)

    assert service.calls == [("upsert", 7, payload)]


async def test_delete_event():
    service = StubService()

    await handle_product_event("product.deleted", {"app_id": 7, "product_id": 3}, service)

    assert service.calls == [("delete", 7, "3")]


@pytest.mark.parametrize(
    "routing_key, flag",
    [("product.published", True), ("product.unpublished", False)],
)
async def test_publish_events(routing_key, flag):
    service = StubService()

    await handle_product_event(routing_key, {"app_id": 7, "product_id": "3"}, service)

    assert service.calls == [("publish", 7, "3", flag)]


async def test_failed_operation_raises_for_dead_lettering():
    with pytest.raises(EventHandlingError, match="publish failed"):
        await handle_product_event(
            "product.published", {"app_id": 7, "product_id": "3"}, StubService(success=False)
        )

    with pytest.raises(EventHandlingError):
        await handle_product_event(
            "product.created", {"app_id": 7, "product": {}}, StubService(status=500)
        )


async def test_unknown_routing_key_raises():
    service = StubService()

    with pytest.raises(EventHandlingError, match="Unsupported routing key"):
        await handle_product_event("product.archived", {"app_id": 7, "product_id": "3"}, service)

    assert service.calls == []

import pytest

from fakes import FakeVectorIndex, make_record
from search_ai.core.exceptions import VectorIndexError
from search_ai.repositories.vector_mirror import VectorMirrorRepository
from search_ai.services.persistence import PersistenceSink


def make_sink(db, vector_index):
    return PersistenceSink(VectorMirrorRepository(db), vector_index, batch_size=50, batch_pause=0)


async def test_write_chunk_batches_into_tenant_namespace(db, tenant):
    index = FakeVectorIndex()
    records = [make_record(str(n)) for n in range(120)]

    written = await make_sink(db, index).write_chunk(records, app_id=1)

    assert written == 120
    assert [len(batch) for _, batch in index.upserts] == [50, 50, 20]
    assert {namespace for namespace, _ in index.upserts} == {"app_1"}
    assert index.upserted_ids == [str(n) for n in range(120)]
    assert await VectorMirrorRepository(db).count() == 120


async def test_index_record_layout(db, tenant):
    index = FakeVectorIndex()

    await make_sink(db, index).write_chunk([make_record("7")], app_id=1)

    assert index.upserts[0][1][0] == {
        "_id": "7",
        "text": "Shirt 7",
        "description": "Description 7",
        "firstImageUrl": "https://cdn.example.com/7.jpg",
        "productName": "Shirt 7",
        "productDescription": "",
        "productId": "7",
        "isPublished": True,
    }


async def test_vector_failure_aborts_chunk_before_mirror(db, tenant):
    index = FakeVectorIndex(fail_ids={"60"})
    records = [make_record(str(n)) for n in range(100)]

    with pytest.raises(VectorIndexError):
        await make_sink(db, index).write_chunk(records, app_id=1)

    assert len(index.upserts) == 1
    assert await VectorMirrorRepository(db).count() == 0


async def test_empty_chunk_writes_nothing(db, tenant):
    index = FakeVectorIndex()

    assert await make_sink(db, index).write_chunk([], app_id=1) == 0
    assert index.upserts == []


async def test_delete_product_removes_from_both_stores(db, tenant):
    index = FakeVectorIndex()
    sink = make_sink(db, index)
    await sink.write_chunk([make_record("5")], app_id=1)

    result = await sink.delete_product(1, "5")

    assert result.success is True
    assert result.message == "Product 5 deleted successfully from app 1"
    assert index.deletes == [("app_1", "5")]
    assert await VectorMirrorRepository(db).exists(1, "5") is False


async def test_delete_product_failure_is_reported_not_raised(db, tenant):
    index = FakeVectorIndex(fail_deletes=True)
    sink = make_sink(db, index)
    await sink.write_chunk([make_record("5")], app_id=1)

    result = await sink.delete_product(1, "5")

    assert result.success is False
    assert "delete rejected" in result.message
    assert await VectorMirrorRepository(db).exists(1, "5") is True


async def test_set_published_updates_metadata_and_mirror(db, tenant):
    index = FakeVectorIndex()
    sink = make_sink(db, index)
    await sink.write_chunk([make_record("5")], app_id=1)

    result = await sink.set_published(1, "5", False)

    assert result.success is True
    assert index.updates == [("app_1", "5", {"isPublished": False})]
    row = await VectorMirrorRepository(db).get_product(1, "5")
    assert row.is_published is False

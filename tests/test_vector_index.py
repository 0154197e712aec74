import pytest

from fakes import fast_settings
from search_ai.core.exceptions import ConfigurationError, VectorIndexError
from search_ai.services.vector_index import (
    PgVectorIndex,
    PineconeVectorIndex,
    build_vector_index,
    namespace_for,
)


class FakePineconeIndex:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def upsert_records(self, namespace, records):
        if self.error:
            raise self.error
        self.calls.append(("upsert_records", namespace, records))

    def delete(self, ids, namespace):
        self.calls.append(("delete", namespace, ids))

    def update(self, id, set_metadata, namespace):
        self.calls.append(("update", namespace, id, set_metadata))


def test_namespace_for():
    assert namespace_for(12) == "app_12"


async def test_pinecone_calls_map_to_sdk():
    raw = FakePineconeIndex()
    index = PineconeVectorIndex(raw)

    await index.upsert_batch("app_1", [{"_id": "1", "text": "Shirt"}])
    await index.delete_one("app_1", "1")
    await index.update_metadata("app_1", "2", {"isPublished": False})

    assert raw.calls == [
        ("upsert_records", "app_1", [{"_id": "1", "text": "Shirt"}]),
        ("delete", "app_1", ["1"]),
        ("update", "app_1", "2", {"isPublished": False}),
    ]


async def test_pinecone_errors_are_wrapped():
    index = PineconeVectorIndex(FakePineconeIndex(error=RuntimeError("429 Too Many Requests")))

    with pytest.raises(VectorIndexError) as exc_info:
        await index.upsert_batch("app_1", [{"_id": "1", "text": "Shirt"}])

    assert isinstance(exc_info.value.original_error, RuntimeError)


def test_pinecone_backend_needs_api_key():
    with pytest.raises(ConfigurationError, match="PINECONE_API_KEY"):
        build_vector_index(fast_settings(VECTOR_BACKEND="pinecone", PINECONE_API_KEY=None))


def test_pgvector_backend_needs_session_factory_and_embeddings():
    config = fast_settings(VECTOR_BACKEND="pgvector")

    with pytest.raises(ConfigurationError):
        build_vector_index(config)

    index = build_vector_index(config, session_factory=object(), embeddings=object())
    assert isinstance(index, PgVectorIndex)


def test_unknown_backend():
    with pytest.raises(ConfigurationError, match="Unknown VECTOR_BACKEND"):
        build_vector_index(fast_settings(VECTOR_BACKEND="faiss"))

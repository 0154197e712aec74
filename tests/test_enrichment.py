import pytest

from fakes import DEFAULT_DESCRIPTION, FakeProvider, make_product
from search_ai.core.exceptions import ImageDescriptionError
from search_ai.models.vector import ProductVector
from search_ai.repositories.vector_mirror import VectorMirrorRepository
from search_ai.schemas.catalog import RawProduct
from search_ai.services.checksum import checksum
from search_ai.services.description_cache import DescriptionCache
from search_ai.services.enrichment import ProductEnricher, normalize_image_description


def make_enricher(db, provider):
    return ProductEnricher(DescriptionCache(VectorMirrorRepository(db)), provider)


def test_normalize_splits_sentences_and_clauses():
    raw = "Slim fit. Cotton!  Long sleeves,  chest pocket;\r\n collar"
    assert normalize_image_description(raw) == (
        "Slim fit.\nCotton!\nLong sleeves,\nchest pocket;\ncollar"
    )


def test_normalize_clause_break_needs_ascii_word_before_punctuation():
    assert normalize_image_description("Vestido plissé, gola alta; manga longa") == (
        "Vestido plissé, gola alta;\nmanga longa"
    )


def test_normalize_collapses_whitespace_and_drops_empty_lines():
    assert normalize_image_description("  Blazer\r\n\r\n  Tailored   fit  ") == "Blazer Tailored fit"
    assert normalize_image_description(" \n \t ") == ""


async def test_enrich_generates_description_on_cache_miss(db, tenant):
    provider = FakeProvider()
    product = make_product(1, images=["https://cdn.example.com/a.jpg", "https://cdn.example.com/b.jpg"])

    record = await make_enricher(db, provider).enrich(product, app_id=1)

    assert provider.calls == [(list(product.images), "Shirt 1")]
    assert record.image_description == "Button-down shirt.\nCotton,\nslim fit"
    assert record.text == "Shirt 1 Shirt number 1\nButton-down shirt.\nCotton,\nslim fit"
    assert record.text_checksum == checksum(record.text)
    assert record.first_image_url == "https://cdn.example.com/a.jpg"
    assert record.image_url_checksum == checksum("https://cdn.example.com/a.jpg")
    assert record.product_id == "1"
    assert record.is_published is True


async def test_enrich_reuses_cached_description(db, tenant):
    product = make_product(2)
    db.add(
        ProductVector(
            app_id=1,
            product_id="999",
            product_name="Other shirt",
            text_checksum="x",
            image_url_checksum=checksum(product.first_image_url),
            image_description="Cached line one\nCached line two",
        )
    )
    await db.commit()
    provider = FakeProvider()

    record = await make_enricher(db, provider).enrich(product, app_id=1)

    assert provider.calls == []
    assert record.image_description == "Cached line one\nCached line two"
    assert record.text.endswith("\nCached line one\nCached line two")


async def test_enrich_without_images_skips_provider(db, tenant):
    provider = FakeProvider()
    product = make_product(3, images=[], description=None)

    record = await make_enricher(db, provider).enrich(product, app_id=1)

    assert provider.calls == []
    assert record.text == "Shirt 3 "
    assert record.first_image_url is None
    assert record.image_url_checksum is None
    assert record.image_description is None


@pytest.mark.parametrize("answer", ["", ImageDescriptionError("no valid images")])
async def test_enrich_degrades_when_provider_has_nothing(db, tenant, answer):
    provider = FakeProvider({"Shirt 4": answer})

    record = await make_enricher(db, provider).enrich(make_product(4), app_id=1)

    assert record.image_description is None
    assert record.text == "Shirt 4 Shirt number 4"
    assert record.image_url_checksum == checksum("https://cdn.example.com/shirt-4.jpg")


async def test_enrich_propagates_unexpected_provider_errors(db, tenant):
    provider = FakeProvider({"Shirt 5": RuntimeError("connection reset")})

    with pytest.raises(RuntimeError):
        await make_enricher(db, provider).enrich(make_product(5), app_id=1)


@pytest.mark.parametrize(
    "product",
    [RawProduct(name="No id"), RawProduct(product_id=7, name=""), RawProduct(product_id=8)],
)
async def test_enrich_rejects_structurally_invalid_products(db, tenant, product):
    provider = FakeProvider()
    enricher = make_enricher(db, provider)

    assert await enricher.enrich(product, app_id=1) is None
    assert await enricher.enrich_with_prefetched_cache(product, 1, {}) is None
    assert provider.calls == []


async def test_prefetched_cache_hit_never_calls_provider(db):
    provider = FakeProvider()
    product = make_product(9)
    cache = {checksum(product.first_image_url): "Exact. Cached, value"}

    record = await make_enricher(db, provider).enrich_with_prefetched_cache(product, 1, cache)

    assert provider.calls == []
    assert record.image_description == "Exact. Cached, value"


async def test_prefetched_cache_miss_calls_provider(db):
    provider = FakeProvider()

    record = await make_enricher(db, provider).enrich_with_prefetched_cache(make_product(10), 1, {})

    assert len(provider.calls) == 1
    assert record.image_description == normalize_image_description(DEFAULT_DESCRIPTION)

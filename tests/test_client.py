# tests/test_client.py

"""
Tests for the typed API client, driven through the app's TestClient.
"""

import pytest
from fastapi.testclient import TestClient

from marketplace.chat import get_completion_stream
from marketplace.client import MarketplaceAPIError, MarketplaceClient
from marketplace.main import app
from marketplace.schemas import ProductCreate, ProductSpecifications, ReviewCreate


@pytest.fixture
def api(client: TestClient) -> MarketplaceClient:
    return MarketplaceClient(client)


def test_product_round_trip(api: MarketplaceClient):
    created = api.create_product(
        ProductCreate(
            name="MediCode AI",
            slug="medicode-ai",
            description="Automated medical coding.",
            is_ai_capable=True,
            ai_capabilities=["NLP"],
            specifications=ProductSpecifications(licensing="Per claim"),
        )
    )
    assert created.id > 0
    assert created.specifications == {"licensing": "Per claim"}

    assert [p.id for p in api.list_products(is_ai_capable=True)] == [created.id]
    assert api.list_products(is_ai_capable=False) == []
    assert [p.name for p in api.list_products(search="medi", sort="rating")] == ["MediCode AI"]

    detail = api.get_product(created.id)
    assert detail.category is None
    assert detail.topics == []
    assert api.get_product(999999) is None


def test_validation_error_is_raised(api: MarketplaceClient):
    api.create_product(ProductCreate(name="One", slug="dup", description="x"))
    with pytest.raises(MarketplaceAPIError) as excinfo:
        api.create_product(ProductCreate(name="Two", slug="dup", description="x"))
    assert excinfo.value.status_code == 400
    assert excinfo.value.field == "slug"


def test_reviews_need_a_session(api: MarketplaceClient):
    product = api.create_product(ProductCreate(name="P", slug="p", description="x"))
    with pytest.raises(MarketplaceAPIError) as excinfo:
        api.create_review(product.id, ReviewCreate(rating=5, content="Great"))
    assert excinfo.value.status_code == 401


def test_reviews_and_comparisons(api: MarketplaceClient, signed_in):
    first = api.create_product(ProductCreate(name="First", slug="first", description="x"))
    second = api.create_product(ProductCreate(name="Second", slug="second", description="x"))

    review = api.create_review(first.id, ReviewCreate(rating=5, content="Great", pros="Fast"))
    assert review.user_id == signed_in
    assert [r.id for r in api.list_reviews(first.id)] == [review.id]
    assert api.get_product(first.id).rating == 50

    comparison = api.create_comparison([first.id, second.id], title="Shortlist")
    fetched = api.get_comparison(comparison.id)
    assert fetched.title == "Shortlist"
    assert {p.id for p in fetched.products} == {first.id, second.id}
    assert api.get_comparison(999999) is None


def test_empty_reads(api: MarketplaceClient):
    assert api.list_categories() == []
    assert api.list_topics() == []
    assert api.get_topic("missing") is None
    assert api.list_stats() == []
    assert api.list_articles(article_type="news", limit=5) == []
    assert api.list_events(limit=5) == []


def test_stream_chat(api: MarketplaceClient):
    async def complete(messages):
        for token in ["Hello", ", ", "world"]:
            yield token

    app.dependency_overrides[get_completion_stream] = lambda: complete
    try:
        conversation = api.create_conversation("Client chat")
        assert "".join(api.stream_chat(conversation.id, "Hi")) == "Hello, world"

        detail = api.get_conversation(conversation.id)
        assert [m.role for m in detail.messages] == ["user", "assistant"]
        assert [c.id for c in api.list_conversations()] == [conversation.id]
        assert api.delete_conversation(conversation.id) is True
        assert api.delete_conversation(conversation.id) is False
    finally:
        app.dependency_overrides.pop(get_completion_stream, None)

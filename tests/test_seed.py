# tests/test_seed.py

"""
Tests for the bootstrap dataset.
"""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from marketplace import seed
from marketplace.models import Article, Category, Event, Product, ProductTopic, Stat, Topic


def _counts(db: Session):
    return {
        model.__tablename__: db.query(model).count()
        for model in (Category, Topic, Product, ProductTopic, Stat, Article, Event)
    }


def test_seed_populates_empty_database(db_session_for_test: Session):
    assert seed.seed_database(db_session_for_test) is True

    counts = _counts(db_session_for_test)
    assert counts["categories"] == len(seed.CATEGORIES)
    assert counts["topics"] == len(seed.TOPICS)
    assert counts["products"] == len(seed.PRODUCTS)
    assert counts["product_topics"] == sum(len(slugs) for _, slugs, _, _ in seed.PRODUCTS)
    assert counts["stats"] == len(seed.STATS)
    assert counts["articles"] == len(seed.ARTICLES)
    assert counts["events"] == len(seed.EVENTS)


def test_seed_twice_is_noop(db_session_for_test: Session):
    seed.seed_database(db_session_for_test)
    before = _counts(db_session_for_test)

    assert seed.seed_database(db_session_for_test) is False
    assert _counts(db_session_for_test) == before


def test_seed_skipped_when_categories_exist(db_session_for_test: Session):
    db_session_for_test.add(Category(name="Existing", slug="existing"))
    db_session_for_test.commit()

    assert seed.seed_database(db_session_for_test) is False
    assert db_session_for_test.query(Product).count() == 0


def test_seed_ratings_are_consistent(db_session_for_test: Session):
    seed.seed_database(db_session_for_test)
    for product in db_session_for_test.query(Product).all():
        assert 0 <= product.rating <= 50
        assert product.rating == seed.scaled_rating(product.rating_sum, product.review_count)

    radai = db_session_for_test.query(Product).filter(Product.slug == "radai-pro").one()
    assert radai.rating == 43


def test_scaled_rating():
    assert seed.scaled_rating(0, 0) == 0
    assert seed.scaled_rating(9, 2) == 45
    assert seed.scaled_rating(15, 4) == 38


def test_seeded_catalog_is_served(client: TestClient, db_session_for_test: Session):
    seed.seed_database(db_session_for_test)

    response = client.get("/api/topics/medical-coding")
    assert response.status_code == 200
    assert [p["slug"] for p in response.json()["products"]] == ["medicode-ai"]

    ai_only = client.get("/api/products", params={"isAiCapable": "true"}).json()
    assert "sepsiswatch" not in {p["slug"] for p in ai_only}
    assert len(client.get("/api/events").json()) == len(seed.EVENTS)

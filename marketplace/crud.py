# marketplace/crud.py

"""
Query layer for the Marketplace Service.

Read functions return ORM objects (or None when a row is missing) with the
relationships the API renders already loaded. Write functions commit their
own transaction and roll it back on any failure.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .errors import FieldValidationError
from .models import (
    Article,
    Category,
    Comparison,
    ComparisonProduct,
    Conversation,
    Event,
    Message,
    Product,
    ProductTopic,
    Review,
    Stat,
    Topic,
)
from .schemas import ProductCreate, ReviewCreate

logger = logging.getLogger(__name__)

DEFAULT_COMPARISON_TITLE = "Product Comparison"
DEFAULT_CONVERSATION_TITLE = "New Chat"


def _like_pattern(term: str) -> str:
    # Treat LIKE wildcards in user input as literal characters
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# -----------------------------
# Products
# -----------------------------
def list_products(
    db: Session,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    topic_id: Optional[int] = None,
    is_ai_capable: Optional[bool] = None,
    sort: Optional[str] = None,
) -> List[Product]:
    """
    Returns every product matching all of the given filters.

    - `search`: case-insensitive substring of the product name.
    - `topic_id`: products linked to that topic.
    - `sort`: "rating" or "reviews" (both descending); anything else lists
      the newest products first.
    """
    query = db.query(Product)
    if search:
        query = query.filter(Product.name.ilike(_like_pattern(search), escape="\\"))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if is_ai_capable is not None:
        query = query.filter(Product.is_ai_capable == is_ai_capable)
    if topic_id is not None:
        topic_products = select(ProductTopic.product_id).where(
            ProductTopic.topic_id == topic_id
        )
        query = query.filter(Product.id.in_(topic_products))

    if sort == "rating":
        query = query.order_by(Product.rating.desc(), Product.id.desc())
    elif sort == "reviews":
        query = query.order_by(Product.review_count.desc(), Product.id.desc())
    else:
        query = query.order_by(Product.created_at.desc(), Product.id.desc())

    products = query.all()
    logger.info(
        f"Retrieved {len(products)} products (search='{search}', category_id={category_id}, "
        f"topic_id={topic_id}, is_ai_capable={is_ai_capable}, sort={sort})."
    )
    return products


def get_product(db: Session, product_id: int) -> Optional[Product]:
    return (
        db.query(Product)
        .options(selectinload(Product.category), selectinload(Product.topics))
        .filter(Product.id == product_id)
        .first()
    )


def _unique(ids: Iterable[int]) -> List[int]:
    return list(dict.fromkeys(ids))


def create_product(db: Session, product: ProductCreate) -> Product:
    """
    Inserts a product and links it to `product.topic_ids`.

    Raises `FieldValidationError` for a taken slug or an unknown category or
    topic id.
    """
    if db.query(Product.id).filter(Product.slug == product.slug).first():
        raise FieldValidationError("slug", "A product with this slug already exists")

    if product.category_id is not None and db.get(Category, product.category_id) is None:
        raise FieldValidationError("categoryId", "Category not found")

    topic_ids = _unique(product.topic_ids)
    if topic_ids:
        found = {
            topic_id
            for (topic_id,) in db.query(Topic.id).filter(Topic.id.in_(topic_ids))
        }
        missing = [topic_id for topic_id in topic_ids if topic_id not in found]
        if missing:
            raise FieldValidationError(
                "topicIds", f"Unknown topic id(s): {', '.join(map(str, missing))}"
            )

    data = product.model_dump(exclude={"topic_ids", "specifications"})
    if product.specifications is not None:
        data["specifications"] = product.specifications.model_dump(
            by_alias=True, exclude_none=True
        )
    db_product = Product(**data)

    try:
        db.add(db_product)
        db.flush()
        db.add_all(
            ProductTopic(product_id=db_product.id, topic_id=topic_id)
            for topic_id in topic_ids
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        # Lost a race with a concurrent insert of the same slug
        logger.warning(f"Integrity error creating product '{product.slug}': {e}")
        raise FieldValidationError("slug", "A product with this slug already exists")
    except Exception:
        db.rollback()
        raise

    db.refresh(db_product)
    logger.info(f"Product '{db_product.name}' (ID: {db_product.id}) created.")
    return db_product


# -----------------------------
# Taxonomy and display content
# -----------------------------
def list_categories(db: Session) -> List[Category]:
    return db.query(Category).order_by(Category.id).all()


def list_topics(db: Session, category_id: Optional[int] = None) -> List[Topic]:
    query = db.query(Topic)
    if category_id is not None:
        query = query.filter(Topic.category_id == category_id)
    return query.order_by(Topic.id).all()


def get_topic_by_slug(db: Session, slug: str) -> Optional[Topic]:
    return (
        db.query(Topic)
        .options(selectinload(Topic.products))
        .filter(Topic.slug == slug)
        .first()
    )


def list_stats(db: Session) -> List[Stat]:
    return db.query(Stat).order_by(Stat.id).all()


def list_articles(
    db: Session, article_type: Optional[str] = None, limit: Optional[int] = None
) -> List[Article]:
    query = db.query(Article)
    if article_type:
        query = query.filter(Article.type == article_type)
    query = query.order_by(Article.published_at.desc(), Article.id.desc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def list_events(db: Session, limit: Optional[int] = None) -> List[Event]:
    query = db.query(Event).order_by(Event.event_date.asc(), Event.id.asc())
    if limit is not None:
        query = query.limit(limit)
    return query.all()


# -----------------------------
# Reviews
# -----------------------------
def list_reviews_by_product(db: Session, product_id: int) -> List[Review]:
    return (
        db.query(Review)
        .filter(Review.product_id == product_id)
        .order_by(Review.created_at.asc(), Review.id.asc())
        .all()
    )


def create_review(
    db: Session, product_id: int, user_id: str, review: ReviewCreate
) -> Optional[Review]:
    """
    Stores a review and folds its rating into the product's aggregate.

    The aggregate is updated by a single UPDATE statement so concurrent
    reviews of one product cannot overwrite each other. `rating` becomes the
    mean of all ratings scaled x10 and rounded half up, computed in integer
    arithmetic as (20 * sum + n) // (2 * n).

    Returns None when the product does not exist.
    """
    if db.query(Product.id).filter(Product.id == product_id).first() is None:
        return None

    db_review = Review(product_id=product_id, user_id=user_id, **review.model_dump())
    new_count = Product.review_count + 1
    new_sum = Product.rating_sum + review.rating
    aggregate = (
        update(Product)
        .where(Product.id == product_id)
        .values(
            review_count=new_count,
            rating_sum=new_sum,
            rating=(new_sum * 20 + new_count) // (new_count * 2),
        )
        .execution_options(synchronize_session=False)
    )

    try:
        db.add(db_review)
        db.flush()
        db.execute(aggregate)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(db_review)
    logger.info(
        f"Review {db_review.id} (rating={db_review.rating}) added to product {product_id} by {user_id}."
    )
    return db_review


# -----------------------------
# Comparisons
# -----------------------------
def create_comparison(
    db: Session,
    user_id: Optional[str],
    product_ids: List[int],
    title: Optional[str] = None,
) -> Comparison:
    """
    Creates a comparison and its product links in one transaction.
    Repeated product ids are linked once; an empty list is allowed.
    """
    comparison = Comparison(user_id=user_id, title=title or DEFAULT_COMPARISON_TITLE)
    unique_ids = _unique(product_ids)
    try:
        db.add(comparison)
        db.flush()
        db.add_all(
            ComparisonProduct(comparison_id=comparison.id, product_id=product_id)
            for product_id in unique_ids
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(comparison)
    logger.info(f"Comparison {comparison.id} created with {len(unique_ids)} products.")
    return comparison


def get_comparison(db: Session, comparison_id: int) -> Optional[Comparison]:
    return (
        db.query(Comparison)
        .options(selectinload(Comparison.products))
        .filter(Comparison.id == comparison_id)
        .first()
    )


# -----------------------------
# Conversations
# -----------------------------
def list_conversations(db: Session) -> List[Conversation]:
    return (
        db.query(Conversation)
        .order_by(Conversation.created_at.desc(), Conversation.id.desc())
        .all()
    )


def get_conversation(db: Session, conversation_id: int) -> Optional[Conversation]:
    return (
        db.query(Conversation)
        .options(selectinload(Conversation.messages))
        .filter(Conversation.id == conversation_id)
        .first()
    )


def create_conversation(db: Session, title: Optional[str] = None) -> Conversation:
    conversation = Conversation(title=title or DEFAULT_CONVERSATION_TITLE)
    try:
        db.add(conversation)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(conversation)
    return conversation


def delete_conversation(db: Session, conversation_id: int) -> bool:
    conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        return False
    try:
        db.delete(conversation)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info(f"Conversation {conversation_id} deleted.")
    return True


def add_message(db: Session, conversation_id: int, role: str, content: str) -> Message:
    message = Message(conversation_id=conversation_id, role=role, content=content)
    try:
        db.add(message)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(message)
    return message

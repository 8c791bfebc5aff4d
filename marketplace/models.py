# marketplace/models.py

"""
SQLAlchemy database models for the Marketplace Service.
These classes define the structure of tables in the database.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .db import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Category(Base):
    """Top-level taxonomy node grouping topics and products."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    # Icon tag understood by the frontend's icon set
    icon = Column(String(100), nullable=True)

    def __repr__(self):
        return f"<Category(id={self.id}, slug='{self.slug}')>"


class Topic(Base):
    """
    Sub-taxonomy node under a category, linked to many products.
    `offering_count` is seeded display data and is never recomputed.
    """

    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    icon = Column(String(100), nullable=True)
    offering_count = Column(Integer, nullable=False, default=0)

    category = relationship("Category")
    products = relationship(
        "Product",
        secondary="product_topics",
        order_by="Product.id",
        viewonly=True,
    )

    def __repr__(self):
        return f"<Topic(id={self.id}, slug='{self.slug}')>"


class Product(Base):
    """
    SQLAlchemy model for the 'products' table.
    A vendor's software offering listed in the marketplace.
    """

    __tablename__ = "products"

    # Primary Key: Unique identifier for each product, auto-incrementing.
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Product name: Required, indexed for search.
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=False)
    short_description = Column(String(500), nullable=True)
    logo_url = Column(String(1000), nullable=True)
    website_url = Column(String(1000), nullable=True)
    vendor_name = Column(String(255), nullable=True)

    # Categorization: pricing (Free, Freemium, Paid, Enterprise),
    # integration (API, Native, HL7, FHIR), deployment (Cloud, On-premise, Hybrid)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    pricing_tier = Column(String(50), nullable=True)
    integration_type = Column(String(50), nullable=True)
    deployment_type = Column(String(50), nullable=True)

    # Free-form spec sheet: technicalDetails, requirements, licensing
    specifications = Column(JSONType, nullable=True)

    is_ai_capable = Column(Boolean, nullable=False, default=False, index=True)
    ai_capabilities = Column(JSONType, nullable=True, default=list)

    # Rating aggregate. `rating` is the mean review rating scaled x10 (0-50),
    # `rating_sum` is the plain sum of the 1-5 review ratings behind it.
    rating = Column(Integer, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    rating_sum = Column(Integer, nullable=False, default=0)

    # 'created_at' defaults to current timestamp on creation.
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    category = relationship("Category")
    topics = relationship(
        "Topic",
        secondary="product_topics",
        order_by="Topic.id",
        viewonly=True,
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', rating={self.rating})>"


class ProductTopic(Base):
    """Association between a product and a topic."""

    __tablename__ = "product_topics"

    product_id = Column(Integer, ForeignKey("products.id"), primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), primary_key=True)


class Review(Base):
    """A user-submitted rating (1-5) and comment on a product."""

    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    # Identity issued by the external auth provider
    user_id = Column(String(255), nullable=False, index=True)

    rating = Column(Integer, nullable=False)
    content = Column(Text, nullable=True)
    pros = Column(Text, nullable=True)
    cons = Column(Text, nullable=True)

    # Reviewer context
    organization_size = Column(String(100), nullable=True)
    usage_duration = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Review(id={self.id}, product_id={self.product_id}, rating={self.rating})>"


class Comparison(Base):
    """A saved, named set of products for side-by-side viewing."""

    __tablename__ = "comparisons"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Anonymous comparisons have no user
    user_id = Column(String(255), nullable=True, index=True)
    title = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    products = relationship(
        "Product",
        secondary="comparison_products",
        order_by="Product.id",
        viewonly=True,
    )


class ComparisonProduct(Base):
    __tablename__ = "comparison_products"

    comparison_id = Column(Integer, ForeignKey("comparisons.id"), primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), primary_key=True)


class Stat(Base):
    """Flat key/value counter shown on the landing page."""

    __tablename__ = "stats"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Integer, nullable=False)
    label = Column(String(255), nullable=False)


class Article(Base):
    """Editorial content (news, guides, research) listed alongside products."""

    __tablename__ = "articles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    summary = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    type = Column(String(50), nullable=False, default="news", index=True)
    image_url = Column(String(1000), nullable=True)
    author = Column(String(255), nullable=True)
    published_at = Column(DateTime(timezone=True), server_default=func.now())


class Event(Base):
    """Industry event (conference, webinar) listed alongside products."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    url = Column(String(1000), nullable=True)
    type = Column(String(50), nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)


class Conversation(Base):
    """A chat session with the AI assistant."""

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="Message.id",
    )


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    conversation_id = Column(
        Integer,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # "user" or "assistant"
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    conversation = relationship("Conversation", back_populates="messages")

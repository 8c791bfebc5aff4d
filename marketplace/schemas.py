# marketplace/schemas.py

"""
Pydantic schemas for the Marketplace Service API.
These define the data structures for incoming requests and outgoing responses,
ensuring data validation and clear API contracts.

JSON bodies use camelCase keys (``categoryId``, ``isAiCapable``); Python code
uses the snake_case attribute names.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic.alias_generators import to_camel

ProductSort = Literal["rating", "newest", "reviews"]

# Ids are int4 columns
MAX_ROW_ID = 2**31 - 1
RowId = Annotated[int, Field(ge=1, le=MAX_ROW_ID)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# -----------------------------
# Taxonomy
# -----------------------------
class CategoryResponse(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    icon: Optional[str] = None


class TopicResponse(CamelModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    category_id: Optional[int] = None
    icon: Optional[str] = None
    offering_count: int = 0


# -----------------------------
# Products
# -----------------------------
class ProductSpecifications(CamelModel):
    """Free-form spec sheet; the three named keys are the ones the UI renders."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="allow",
    )

    technical_details: Optional[str] = None
    requirements: Optional[str] = None
    licensing: Optional[str] = None


# Schema for creating a new product.
# Used in POST /api/products. Rating, review count and creation time are
# assigned by the server; any such keys in the body are ignored.
class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255, description="Name of the product.")
    slug: str = Field(
        ...,
        min_length=1,
        max_length=255,
        pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$",
        description="URL slug, unique across products. Lowercased before validation.",
    )
    description: str = Field(..., min_length=1, max_length=5000)
    short_description: Optional[str] = Field(None, max_length=500)
    logo_url: Optional[str] = Field(None, max_length=1000)
    website_url: Optional[str] = Field(None, max_length=1000)
    vendor_name: Optional[str] = Field(None, max_length=255)
    category_id: Optional[RowId] = None
    pricing_tier: Optional[str] = Field(None, max_length=50)
    integration_type: Optional[str] = Field(None, max_length=50)
    deployment_type: Optional[str] = Field(None, max_length=50)
    specifications: Optional[ProductSpecifications] = None
    is_ai_capable: bool = False
    ai_capabilities: List[str] = Field(default_factory=list)
    topic_ids: List[RowId] = Field(
        default_factory=list,
        description="Existing topics to link the new product to.",
    )

    @field_validator("slug", mode="before")
    @classmethod
    def normalize_slug(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


# Schema for representing a product in API responses.
class ProductResponse(CamelModel):
    id: int
    name: str
    slug: str
    description: str
    short_description: Optional[str] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    vendor_name: Optional[str] = None
    category_id: Optional[int] = None
    pricing_tier: Optional[str] = None
    integration_type: Optional[str] = None
    deployment_type: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    is_ai_capable: bool = False
    ai_capabilities: List[str] = Field(default_factory=list)
    rating: int = Field(0, description="Mean review rating scaled x10 (0-50).")
    review_count: int = 0
    created_at: Optional[datetime] = None

    @field_validator("ai_capabilities", mode="before")
    @classmethod
    def empty_capabilities(cls, value):
        return value or []


class ProductDetailResponse(ProductResponse):
    category: Optional[CategoryResponse] = None
    topics: List[TopicResponse] = Field(default_factory=list)


class TopicDetailResponse(TopicResponse):
    products: List[ProductResponse] = Field(default_factory=list)


# -----------------------------
# Reviews
# -----------------------------
class ReviewCreate(CamelModel):
    rating: StrictInt = Field(..., ge=1, le=5, description="Rating from 1 to 5.")
    content: str = Field(..., min_length=1, max_length=5000)
    pros: Optional[str] = Field(None, max_length=2000)
    cons: Optional[str] = Field(None, max_length=2000)
    organization_size: Optional[str] = Field(None, max_length=100)
    usage_duration: Optional[str] = Field(None, max_length=100)


class ReviewResponse(CamelModel):
    id: int
    product_id: int
    user_id: str
    rating: int
    content: Optional[str] = None
    pros: Optional[str] = None
    cons: Optional[str] = None
    organization_size: Optional[str] = None
    usage_duration: Optional[str] = None
    created_at: Optional[datetime] = None


# -----------------------------
# Comparisons
# -----------------------------
class ComparisonCreate(CamelModel):
    product_ids: List[RowId]
    title: Optional[str] = Field(None, max_length=255)


class ComparisonResponse(CamelModel):
    id: int
    user_id: Optional[str] = None
    title: Optional[str] = None
    created_at: Optional[datetime] = None


class ComparisonDetailResponse(ComparisonResponse):
    products: List[ProductResponse] = Field(default_factory=list)


# -----------------------------
# Display content
# -----------------------------
class StatResponse(CamelModel):
    id: int
    key: str
    value: int
    label: str


class ArticleResponse(CamelModel):
    id: int
    title: str
    slug: str
    summary: Optional[str] = None
    content: Optional[str] = None
    type: str
    image_url: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[datetime] = None


class EventResponse(CamelModel):
    id: int
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    url: Optional[str] = None
    type: Optional[str] = None
    event_date: datetime


# -----------------------------
# Chat
# -----------------------------
class ConversationCreate(CamelModel):
    title: Optional[str] = Field(None, max_length=255)


class ConversationResponse(CamelModel):
    id: int
    title: str
    created_at: Optional[datetime] = None


class MessageCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=8000)


class MessageResponse(CamelModel):
    id: int
    conversation_id: int
    role: str
    content: str
    created_at: Optional[datetime] = None


class ConversationDetailResponse(ConversationResponse):
    messages: List[MessageResponse] = Field(default_factory=list)


# -----------------------------
# Auth / errors
# -----------------------------
class UserResponse(CamelModel):
    id: str


class ErrorResponse(BaseModel):
    message: str
    field: Optional[str] = None

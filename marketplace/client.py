# marketplace/client.py

"""
Typed HTTP client for the Marketplace Service API.

Wraps an ``httpx.Client`` (or FastAPI's ``TestClient``, which is one) and
returns the same Pydantic models the service responds with. Lookups return
None on 404; every other error status raises `MarketplaceAPIError`.
"""
import json
from typing import Iterator, List, Optional

import httpx

from .schemas import (
    ArticleResponse,
    CategoryResponse,
    ComparisonDetailResponse,
    ComparisonResponse,
    ConversationDetailResponse,
    ConversationResponse,
    EventResponse,
    ProductCreate,
    ProductDetailResponse,
    ProductResponse,
    ReviewCreate,
    ReviewResponse,
    StatResponse,
    TopicDetailResponse,
    TopicResponse,
)


class MarketplaceAPIError(Exception):
    def __init__(self, status_code: int, message: str, field: Optional[str] = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.field = field


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    raise MarketplaceAPIError(
        response.status_code,
        body.get("message") or response.reason_phrase,
        body.get("field"),
    )


def _params(**values) -> dict:
    return {key: value for key, value in values.items() if value is not None}


class MarketplaceClient:
    def __init__(self, http: httpx.Client):
        self.http = http

    def _get(self, path: str, **params) -> httpx.Response:
        response = self.http.get(path, params=_params(**params))
        _raise_for_status(response)
        return response

    def _get_or_none(self, path: str) -> Optional[httpx.Response]:
        response = self.http.get(path)
        if response.status_code == 404:
            return None
        _raise_for_status(response)
        return response

    def _post(self, path: str, payload: dict) -> httpx.Response:
        response = self.http.post(path, json=payload)
        _raise_for_status(response)
        return response

    # --- Products ---
    def list_products(
        self,
        search: Optional[str] = None,
        category_id: Optional[int] = None,
        topic_id: Optional[int] = None,
        is_ai_capable: Optional[bool] = None,
        sort: Optional[str] = None,
    ) -> List[ProductResponse]:
        flag = None if is_ai_capable is None else str(is_ai_capable).lower()
        response = self._get(
            "/api/products",
            search=search,
            categoryId=category_id,
            topicId=topic_id,
            isAiCapable=flag,
            sort=sort,
        )
        return [ProductResponse.model_validate(item) for item in response.json()]

    def get_product(self, product_id: int) -> Optional[ProductDetailResponse]:
        response = self._get_or_none(f"/api/products/{product_id}")
        return ProductDetailResponse.model_validate(response.json()) if response else None

    def create_product(self, product: ProductCreate) -> ProductResponse:
        payload = product.model_dump(by_alias=True, exclude_none=True, mode="json")
        return ProductResponse.model_validate(self._post("/api/products", payload).json())

    # --- Taxonomy and display content ---
    def list_categories(self) -> List[CategoryResponse]:
        return [CategoryResponse.model_validate(item) for item in self._get("/api/categories").json()]

    def list_topics(self, category_id: Optional[int] = None) -> List[TopicResponse]:
        response = self._get("/api/topics", categoryId=category_id)
        return [TopicResponse.model_validate(item) for item in response.json()]

    def get_topic(self, slug: str) -> Optional[TopicDetailResponse]:
        response = self._get_or_none(f"/api/topics/{slug}")
        return TopicDetailResponse.model_validate(response.json()) if response else None

    def list_stats(self) -> List[StatResponse]:
        return [StatResponse.model_validate(item) for item in self._get("/api/stats").json()]

    def list_articles(
        self, article_type: Optional[str] = None, limit: Optional[int] = None
    ) -> List[ArticleResponse]:
        response = self._get("/api/articles", type=article_type, limit=limit)
        return [ArticleResponse.model_validate(item) for item in response.json()]

    def list_events(self, limit: Optional[int] = None) -> List[EventResponse]:
        response = self._get("/api/events", limit=limit)
        return [EventResponse.model_validate(item) for item in response.json()]

    # --- Reviews ---
    def list_reviews(self, product_id: int) -> List[ReviewResponse]:
        response = self._get(f"/api/products/{product_id}/reviews")
        return [ReviewResponse.model_validate(item) for item in response.json()]

    def create_review(self, product_id: int, review: ReviewCreate) -> ReviewResponse:
        payload = review.model_dump(by_alias=True, exclude_none=True)
        response = self._post(f"/api/products/{product_id}/reviews", payload)
        return ReviewResponse.model_validate(response.json())

    # --- Comparisons ---
    def create_comparison(
        self, product_ids: List[int], title: Optional[str] = None
    ) -> ComparisonResponse:
        payload = _params(productIds=list(product_ids), title=title)
        return ComparisonResponse.model_validate(self._post("/api/comparisons", payload).json())

    def get_comparison(self, comparison_id: int) -> Optional[ComparisonDetailResponse]:
        response = self._get_or_none(f"/api/comparisons/{comparison_id}")
        return ComparisonDetailResponse.model_validate(response.json()) if response else None

    # --- Chat ---
    def list_conversations(self) -> List[ConversationResponse]:
        response = self._get("/api/conversations")
        return [ConversationResponse.model_validate(item) for item in response.json()]

    def create_conversation(self, title: Optional[str] = None) -> ConversationResponse:
        response = self._post("/api/conversations", _params(title=title))
        return ConversationResponse.model_validate(response.json())

    def get_conversation(self, conversation_id: int) -> Optional[ConversationDetailResponse]:
        response = self._get_or_none(f"/api/conversations/{conversation_id}")
        return ConversationDetailResponse.model_validate(response.json()) if response else None

    def delete_conversation(self, conversation_id: int) -> bool:
        response = self.http.delete(f"/api/conversations/{conversation_id}")
        if response.status_code == 404:
            return False
        _raise_for_status(response)
        return True

    def stream_chat(self, conversation_id: int, content: str) -> Iterator[str]:
        """Sends a message and yields the assistant's reply token by token."""
        with self.http.stream(
            "POST",
            f"/api/conversations/{conversation_id}/messages",
            json={"content": content},
        ) as response:
            if not response.is_success:
                response.read()
                _raise_for_status(response)
            for line in response.iter_lines():
                if not line.startswith("data: "):
                    continue
                event = json.loads(line[len("data: "):])
                if event.get("error"):
                    raise MarketplaceAPIError(response.status_code, event["error"])
                if event.get("content"):
                    yield event["content"]
                if event.get("done"):
                    return

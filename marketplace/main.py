# marketplace/main.py

"""
FastAPI Marketplace Service API.
Directory, product detail, reviews and comparisons for healthcare software,
plus the AI assistant chat relay. Database access lives in `crud`; this module
maps HTTP requests onto it and errors onto status codes.
"""
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Annotated, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Path, Query, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from starlette.middleware.sessions import SessionMiddleware

from . import crud
from .auth import get_current_user_id, require_user_id
from .chat import close_openai_client, router as chat_router
from .config import (
    CORS_ORIGINS,
    DB_CONNECT_RETRIES,
    DB_CONNECT_RETRY_DELAY,
    HOST,
    LOG_LEVEL,
    OPENAI_API_KEY,
    PORT,
    SEED_DATABASE,
    SESSION_SECRET,
)
from .db import Base, SessionLocal, engine, get_db
from .errors import FieldValidationError, register_error_handlers
from .schemas import (
    ArticleResponse,
    CategoryResponse,
    ComparisonCreate,
    ComparisonDetailResponse,
    ComparisonResponse,
    ErrorResponse,
    EventResponse,
    MAX_ROW_ID,
    ProductCreate,
    ProductDetailResponse,
    ProductResponse,
    ProductSort,
    ReviewCreate,
    ReviewResponse,
    StatResponse,
    TopicDetailResponse,
    TopicResponse,
    UserResponse,
)
from .seed import seed_database

# -----------------------------
# Configure Logging
# -----------------------------
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress noisy logs from third-party libraries for cleaner output
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)
logging.getLogger("httpx").setLevel(logging.WARNING)

if OPENAI_API_KEY:
    logger.info("Marketplace Service: OpenAI credentials populated, chat enabled.")
else:
    logger.info("Marketplace Service: OPENAI_API_KEY **NOT SET**, chat replies will fail.")


def init_database():
    """
    Ensures database tables exist, then seeds an empty database.
    Retries while the database is still starting up and exits the process if
    it never becomes reachable.
    """
    for i in range(DB_CONNECT_RETRIES):
        try:
            logger.info(
                f"Attempting to connect to the database and create tables (attempt {i+1}/{DB_CONNECT_RETRIES})..."
            )
            Base.metadata.create_all(bind=engine)
            logger.info("Successfully connected to the database and ensured tables exist.")
            break
        except OperationalError as e:
            logger.warning(f"Failed to connect to the database: {e}")
            if i < DB_CONNECT_RETRIES - 1:
                logger.info(f"Retrying in {DB_CONNECT_RETRY_DELAY} seconds...")
                time.sleep(DB_CONNECT_RETRY_DELAY)
            else:
                logger.critical(
                    f"Failed to connect to the database after {DB_CONNECT_RETRIES} attempts. Exiting application."
                )
                sys.exit(1)

    if not SEED_DATABASE:
        return
    db = SessionLocal()
    try:
        seed_database(db)
    except Exception as e:
        # A failed seed leaves an empty catalog but the API still serves
        logger.error(f"Error seeding database: {e}", exc_info=True)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    yield
    await close_openai_client()


# -----------------------------
# FastAPI App Initialization
# -----------------------------
app = FastAPI(
    title="Marketplace Service API",
    description="Directory, reviews, comparisons and AI chat for healthcare software",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# The identity provider signs the user id into this cookie
app.add_middleware(SessionMiddleware, secret_key=SESSION_SECRET, same_site="lax")

register_error_handlers(app)
app.include_router(chat_router)


# --- Root Endpoint ---
@app.get("/", status_code=status.HTTP_200_OK, summary="Root endpoint")
async def read_root():
    """
    Returns a welcome message for the Marketplace Service.
    """
    return {"message": "Welcome to the Marketplace Service!"}


# --- Health Check Endpoint ---
@app.get("/health", status_code=status.HTTP_200_OK, summary="Health check endpoint")
async def health_check():
    return {"status": "ok", "service": "marketplace-service"}


@app.get("/api/auth/user", response_model=UserResponse, summary="Current session user")
def read_current_user(user_id: str = Depends(require_user_id)):
    return {"id": user_id}


# -----------------------------
# Products
# -----------------------------
def _parse_flag(value: Optional[str]) -> Optional[bool]:
    # Only the literal strings "true" and "false" filter; anything else is ignored
    if value == "true":
        return True
    if value == "false":
        return False
    return None


@app.get(
    "/api/products",
    response_model=List[ProductResponse],
    summary="List products with filters and sorting",
)
def list_products(
    db: Session = Depends(get_db),
    search: Optional[str] = Query(
        None,
        max_length=255,
        description="Case-insensitive substring of the product name.",
    ),
    category_id: Optional[int] = Query(None, alias="categoryId", ge=1, le=MAX_ROW_ID),
    topic_id: Optional[int] = Query(None, alias="topicId", ge=1, le=MAX_ROW_ID),
    is_ai_capable: Optional[str] = Query(
        None, alias="isAiCapable", description='"true" or "false".'
    ),
    sort: Optional[ProductSort] = Query(None, description="rating, reviews or newest (default)."),
):
    """
    Retrieves every product matching all of the given filters. No pagination.
    """
    return crud.list_products(
        db,
        search=search,
        category_id=category_id,
        topic_id=topic_id,
        is_ai_capable=_parse_flag(is_ai_capable),
        sort=sort,
    )


@app.get(
    "/api/products/{product_id}",
    response_model=ProductDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Retrieve a product with its category and topics",
)
def get_product(
    product_id: Annotated[int, Path(ge=1, le=MAX_ROW_ID)],
    db: Session = Depends(get_db),
):
    logger.info(f"Fetching product with ID: {product_id}")
    product = crud.get_product(db, product_id)
    if not product:
        logger.warning(f"Product with ID: {product_id} not found.")
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.post(
    "/api/products",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}},
    summary="Create a new product listing",
)
def create_product(product: ProductCreate, db: Session = Depends(get_db)):
    """
    Creates a new product listing.

    - Rating, review count and creation time are assigned by the server.
    - Returns 400 with the offending field for invalid input, a taken slug, or
      an unknown category or topic.
    """
    logger.info(f"Creating product: {product.name}")
    try:
        return crud.create_product(db, product)
    except FieldValidationError:
        raise
    except Exception as e:
        logger.error(f"Error creating product: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not create product.",
        )


# -----------------------------
# Taxonomy and display content
# -----------------------------
@app.get("/api/categories", response_model=List[CategoryResponse], summary="List categories")
def list_categories(db: Session = Depends(get_db)):
    return crud.list_categories(db)


@app.get("/api/topics", response_model=List[TopicResponse], summary="List topics")
def list_topics(
    db: Session = Depends(get_db),
    category_id: Optional[int] = Query(None, alias="categoryId", ge=1, le=MAX_ROW_ID),
):
    return crud.list_topics(db, category_id=category_id)


@app.get(
    "/api/topics/{slug}",
    response_model=TopicDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Retrieve a topic with its products",
)
def get_topic(slug: str, db: Session = Depends(get_db)):
    topic = crud.get_topic_by_slug(db, slug)
    if not topic:
        logger.warning(f"Topic '{slug}' not found.")
        raise HTTPException(status_code=404, detail="Topic not found")
    return topic


@app.get("/api/stats", response_model=List[StatResponse], summary="List display counters")
def list_stats(db: Session = Depends(get_db)):
    return crud.list_stats(db)


@app.get("/api/articles", response_model=List[ArticleResponse], summary="List articles")
def list_articles(
    db: Session = Depends(get_db),
    article_type: Optional[str] = Query(None, alias="type", max_length=50),
    limit: Optional[int] = Query(None, ge=1, le=100),
):
    return crud.list_articles(db, article_type=article_type, limit=limit)


@app.get("/api/events", response_model=List[EventResponse], summary="List upcoming events")
def list_events(
    db: Session = Depends(get_db),
    limit: Optional[int] = Query(None, ge=1, le=100),
):
    return crud.list_events(db, limit=limit)


# -----------------------------
# Reviews
# -----------------------------
@app.get(
    "/api/products/{product_id}/reviews",
    response_model=List[ReviewResponse],
    summary="List a product's reviews, oldest first",
)
def list_reviews(
    product_id: Annotated[int, Path(ge=1, le=MAX_ROW_ID)],
    db: Session = Depends(get_db),
):
    return crud.list_reviews_by_product(db, product_id)


@app.post(
    "/api/products/{product_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Review a product",
)
def create_review(
    product_id: Annotated[int, Path(ge=1, le=MAX_ROW_ID)],
    review: ReviewCreate,
    user_id: str = Depends(require_user_id),
    db: Session = Depends(get_db),
):
    """
    Stores a review from the session user and updates the product's rating
    aggregate. Requires a signed-in session.
    """
    db_review = crud.create_review(db, product_id, user_id, review)
    if db_review is None:
        logger.warning(f"Review rejected, product with ID: {product_id} not found.")
        raise HTTPException(status_code=404, detail="Product not found")
    return db_review


# -----------------------------
# Comparisons
# -----------------------------
@app.post(
    "/api/comparisons",
    response_model=ComparisonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save a product comparison",
)
def create_comparison(
    body: ComparisonCreate,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Saves a comparison for the session user, or anonymously. Nothing is
    stored if any of the products cannot be linked.
    """
    try:
        return crud.create_comparison(db, user_id, body.product_ids, body.title)
    except Exception as e:
        logger.error(f"Error creating comparison: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create comparison",
        )


@app.get(
    "/api/comparisons/{comparison_id}",
    response_model=ComparisonDetailResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Retrieve a comparison with its products",
)
def get_comparison(
    comparison_id: Annotated[int, Path(ge=1, le=MAX_ROW_ID)],
    db: Session = Depends(get_db),
):
    comparison = crud.get_comparison(db, comparison_id)
    if not comparison:
        raise HTTPException(status_code=404, detail="Comparison not found")
    return comparison


def run():
    uvicorn.run("marketplace.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()

# marketplace/seed.py

"""
Bootstrap dataset for a fresh database.

`seed_database` is a no-op when any category already exists. The whole
dataset is inserted in one transaction; if another instance seeds at the same
moment, the unique slug/key constraints make the slower one fail, and its
transaction is rolled back.
"""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import Article, Category, Event, Product, ProductTopic, Stat, Topic

logger = logging.getLogger(__name__)


def scaled_rating(rating_sum: int, review_count: int) -> int:
    """Mean rating x10, rounded half up. Mirrors the review aggregate update."""
    if review_count <= 0:
        return 0
    return (rating_sum * 20 + review_count) // (review_count * 2)


CATEGORIES = [
    {"name": "Radiology AI", "slug": "radiology-ai", "description": "AI tools for medical imaging analysis", "icon": "scan"},
    {"name": "Clinical Decision Support", "slug": "cds", "description": "Tools to assist clinical decision making", "icon": "stethoscope"},
    {"name": "Revenue Cycle Management", "slug": "rcm", "description": "AI for billing and coding", "icon": "receipt"},
    {"name": "Patient Engagement", "slug": "patient-engagement", "description": "Chatbots and patient portals", "icon": "message-circle"},
]

# (category slug, topic)
TOPICS = [
    ("radiology-ai", {"name": "Chest X-Ray Triage", "slug": "chest-xray-triage", "description": "Prioritise critical findings on chest radiographs", "icon": "activity", "offering_count": 14}),
    ("radiology-ai", {"name": "Radiology Reporting", "slug": "radiology-reporting", "description": "Structured and automated report drafting", "icon": "file-text", "offering_count": 9}),
    ("cds", {"name": "Sepsis Prediction", "slug": "sepsis-prediction", "description": "Early warning scores for sepsis", "icon": "alert-triangle", "offering_count": 6}),
    ("rcm", {"name": "Medical Coding", "slug": "medical-coding", "description": "ICD-10 and CPT code suggestion", "icon": "code", "offering_count": 11}),
    ("patient-engagement", {"name": "Virtual Assistants", "slug": "virtual-assistants", "description": "Conversational agents for patients", "icon": "bot", "offering_count": 18}),
]

# (category slug, topic slugs, rating sum, product)
PRODUCTS = [
    ("radiology-ai", ["radiology-reporting", "chest-xray-triage"], 52, {
        "name": "RadAI Pro",
        "slug": "radai-pro",
        "description": "Advanced AI for radiology reporting and analysis.",
        "short_description": "Automated radiology reports.",
        "vendor_name": "RadAI Inc.",
        "pricing_tier": "Enterprise",
        "integration_type": "HL7/FHIR",
        "deployment_type": "Cloud",
        "specifications": {"technicalDetails": "DICOM ingestion, HL7 ORU output", "licensing": "Annual per-site"},
        "is_ai_capable": True,
        "ai_capabilities": ["Computer Vision", "NLP"],
        "review_count": 12,
    }),
    ("rcm", ["medical-coding"], 38, {
        "name": "MediCode AI",
        "slug": "medicode-ai",
        "description": "Automated medical coding using deep learning.",
        "short_description": "AI for medical coding.",
        "vendor_name": "MediCode",
        "pricing_tier": "Paid",
        "integration_type": "API",
        "deployment_type": "Hybrid",
        "is_ai_capable": True,
        "ai_capabilities": ["NLP"],
        "review_count": 8,
    }),
    ("patient-engagement", ["virtual-assistants"], 95, {
        "name": "PatientConnect",
        "slug": "patient-connect",
        "description": "AI-driven patient engagement platform.",
        "short_description": "Engage patients automatically.",
        "vendor_name": "Connect Health",
        "pricing_tier": "Freemium",
        "integration_type": "Native",
        "deployment_type": "Cloud",
        "is_ai_capable": True,
        "ai_capabilities": ["Chatbot"],
        "review_count": 25,
    }),
    ("cds", ["sepsis-prediction"], 21, {
        "name": "SepsisWatch",
        "slug": "sepsiswatch",
        "description": "Rules-based early warning dashboard for inpatient sepsis screening.",
        "short_description": "Sepsis screening dashboard.",
        "vendor_name": "WardSafe",
        "pricing_tier": "Paid",
        "integration_type": "HL7",
        "deployment_type": "On-premise",
        "is_ai_capable": False,
        "ai_capabilities": [],
        "review_count": 5,
    }),
]

STATS = [
    {"key": "products", "value": 1200, "label": "Healthcare products listed"},
    {"key": "reviews", "value": 8500, "label": "Verified reviews"},
    {"key": "vendors", "value": 450, "label": "Vendors"},
    {"key": "ai_products", "value": 600, "label": "AI-capable products"},
]

ARTICLES = [
    {"title": "How to Evaluate Radiology AI", "slug": "evaluate-radiology-ai", "type": "guide", "author": "Editorial Team",
     "summary": "A buyer's checklist for imaging AI: validation data, PACS integration and workflow fit.", "days_ago": 3},
    {"title": "FHIR Adoption in 2024", "slug": "fhir-adoption-2024", "type": "news", "author": "Editorial Team",
     "summary": "Interoperability mandates keep pushing vendors toward FHIR-native APIs.", "days_ago": 10},
    {"title": "Measuring ROI of Coding Automation", "slug": "coding-automation-roi", "type": "research", "author": "Analyst Desk",
     "summary": "What health systems report after a year of autonomous coding.", "days_ago": 21},
]

EVENTS = [
    {"title": "HealthTech AI Summit", "location": "Boston, MA", "type": "conference", "days_ahead": 30,
     "description": "Two days of clinical AI case studies and vendor demos.", "url": "https://example.com/healthtech-ai-summit"},
    {"title": "Interoperability Webinar", "location": "Online", "type": "webinar", "days_ahead": 12,
     "description": "Connecting EHRs with FHIR APIs in practice.", "url": "https://example.com/interop-webinar"},
]


def _insert_dataset(db: Session) -> None:
    now = datetime.now(timezone.utc)

    categories = {data["slug"]: Category(**data) for data in CATEGORIES}
    db.add_all(categories.values())
    db.flush()

    topics = {}
    for category_slug, data in TOPICS:
        topics[data["slug"]] = Topic(category_id=categories[category_slug].id, **data)
    db.add_all(topics.values())

    products = []
    for category_slug, topic_slugs, rating_sum, data in PRODUCTS:
        product = Product(
            category_id=categories[category_slug].id,
            rating_sum=rating_sum,
            rating=scaled_rating(rating_sum, data["review_count"]),
            **data,
        )
        products.append((product, topic_slugs))
    db.add_all(product for product, _ in products)
    db.flush()

    db.add_all(
        ProductTopic(product_id=product.id, topic_id=topics[slug].id)
        for product, topic_slugs in products
        for slug in topic_slugs
    )

    db.add_all(Stat(**data) for data in STATS)
    for data in ARTICLES:
        fields = {k: v for k, v in data.items() if k != "days_ago"}
        db.add(Article(published_at=now - timedelta(days=data["days_ago"]), **fields))
    for data in EVENTS:
        fields = {k: v for k, v in data.items() if k != "days_ahead"}
        db.add(Event(event_date=now + timedelta(days=data["days_ahead"]), **fields))


def seed_database(db: Session) -> bool:
    """
    Inserts the bootstrap dataset when the categories table is empty.
    Returns True if this call inserted it.
    """
    if db.query(Category.id).first() is not None:
        logger.info("Database already seeded.")
        return False

    logger.info("Seeding database...")
    try:
        _insert_dataset(db)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Seeding skipped, another instance seeded first: {e}")
        return False
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Seeding complete: {len(CATEGORIES)} categories, {len(TOPICS)} topics, "
        f"{len(PRODUCTS)} products."
    )
    return True

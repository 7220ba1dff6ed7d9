"""
Read side of the product catalog plus demo seeding.

Catalog CRUD belongs to another service; orders only need to look a product
up by id to price and classify line items.
"""

import logging
import re
from typing import List, Optional

from pymongo.database import Database

from database import create_document, get_documents, to_object_id
from errors import NotFoundError
from schemas import Product, Role, User

logger = logging.getLogger(__name__)


def get_product(db: Database, product_id: str) -> Product:
    oid = to_object_id(product_id)
    doc = db["product"].find_one({"_id": oid}) if oid else None
    if not doc:
        raise NotFoundError("product", product_id)
    return Product.from_document(doc)


def list_products(db: Database, category: Optional[str] = None, featured: bool = False,
                  search: Optional[str] = None, limit: Optional[int] = None) -> List[Product]:
    query = {}
    if category:
        query["category"] = category.lower()
    if featured:
        query["featured"] = True
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        query["$or"] = [{"name": pattern}, {"description": pattern}]
    return [Product.from_document(d) for d in get_documents(db, "product", query, limit=limit)]


DEMO_PRODUCTS = [
    {"name": "Espresso", "description": "Rich and bold Italian espresso", "base_price": 25000,
     "category": "coffee", "featured": True,
     "sizes": [{"name": "Single", "price": 25000}, {"name": "Double", "price": 35000}]},
    {"name": "Cappuccino", "description": "Creamy espresso with steamed milk foam", "base_price": 35000,
     "category": "coffee", "featured": True,
     "sizes": [{"name": "Regular", "price": 35000}, {"name": "Large", "price": 42000}]},
    {"name": "Caffe Latte", "description": "Smooth espresso with silky steamed milk", "base_price": 38000,
     "category": "coffee", "featured": True,
     "sizes": [{"name": "Regular", "price": 38000}, {"name": "Large", "price": 45000}]},
    {"name": "Cold Brew", "description": "Slow-steeped for 12 hours", "base_price": 40000,
     "category": "coffee"},
    {"name": "Green Tea Latte", "description": "Matcha with steamed milk", "base_price": 38000,
     "category": "tea",
     "sizes": [{"name": "Regular", "price": 38000}, {"name": "Large", "price": 45000}]},
    {"name": "Earl Grey Tea", "description": "Black tea with bergamot", "base_price": 25000,
     "category": "tea"},
    {"name": "Thai Tea", "description": "Sweet spiced tea with milk", "base_price": 32000,
     "category": "tea"},
    {"name": "Croissant", "description": "Buttery, flaky pastry", "base_price": 28000,
     "category": "snacks"},
    {"name": "Chocolate Cake", "description": "Rich dark chocolate slice", "base_price": 35000,
     "category": "snacks"},
    {"name": "Blueberry Muffin", "description": "Baked fresh every morning", "base_price": 25000,
     "category": "snacks"},
]

DEMO_USERS = [
    {"name": "Super Admin", "email": "admin@coffee.com", "role": Role.ADMIN},
    {"name": "Coffee Lover", "email": "user@coffee.com", "role": Role.USER},
]


def seed_demo_data(db: Database) -> dict:
    """Insert demo products and users into empty collections. Balances start at zero."""
    seeded = {"products": 0, "users": 0}
    if db["product"].count_documents({}) == 0:
        for p in DEMO_PRODUCTS:
            create_document(db, "product", Product(**p).to_document())
            seeded["products"] += 1
    if db["user"].count_documents({}) == 0:
        for u in DEMO_USERS:
            create_document(db, "user", User(**u).to_document())
            seeded["users"] += 1
    logger.info("Seeded %(products)d products and %(users)d users", seeded)
    return seeded

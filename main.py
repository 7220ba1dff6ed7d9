import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from catalog import get_product, list_products, seed_demo_data
from config import CORS_ORIGINS, LOG_LEVEL, POINTS_HISTORY_LIMIT, PORT
from database import ensure_indexes, get_db
from errors import OrderingError
from ledger import PointsLedger
from orders import OrderRepository
from schemas import OrderItemInput, Schema

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db = app.dependency_overrides.get(get_db, get_db)()
    if db is not None:
        ensure_indexes(db)
    yield


app = FastAPI(title="Coffee Shop Ordering API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class OrderCreateRequest(Schema):
    items: List[OrderItemInput] = []
    customer_name: str = ""
    notes: Optional[str] = None
    user_id: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: str = ""


# Utility

def require_db(db=Depends(get_db)):
    if db is None:
        raise HTTPException(status_code=503, detail="Database not configured")
    return db


def ok(data, status_code: int = 200):
    return JSONResponse(status_code=status_code, content={"success": True, "data": data})


@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"] if part != "body")
    message = f"{field}: {first['msg']}" if field else first["msg"]
    return JSONResponse(status_code=400, content={"success": False, "message": message})


@app.get("/")
def root():
    return {"message": "Coffee Shop Ordering Backend Running"}


@app.get("/test")
def test_database(db=Depends(get_db)):
    info = {
        "backend": "running",
        "database": "unavailable",
        "collections": [],
    }
    try:
        if db is not None:
            info["database"] = "connected"
            info["collections"] = db.list_collection_names()
    except Exception as e:
        logger.exception("Database check failed")
        info["database"] = f"error: {str(e)[:80]}"
    return info


# Catalog (read-only)
@app.get("/api/products")
def products(category: Optional[str] = None, featured: bool = False, search: Optional[str] = None,
             limit: Optional[int] = Query(None, ge=1), db=Depends(require_db)):
    return ok([p.to_api() for p in list_products(db, category, featured, search, limit)])


@app.get("/api/products/{product_id}")
def product_detail(product_id: str, db=Depends(require_db)):
    return ok(get_product(db, product_id).to_api())


# Orders
@app.post("/api/orders")
def create_order(payload: OrderCreateRequest, db=Depends(require_db)):
    order = OrderRepository(db).create_order(
        payload.items,
        payload.customer_name,
        notes=payload.notes,
        user_id=payload.user_id,
    )
    return ok(order.to_api(), status_code=201)


@app.get("/api/orders")
def list_orders(user_id: Optional[str] = Query(None, alias="userId"), status: Optional[str] = None,
                db=Depends(require_db)):
    orders = OrderRepository(db).list_orders(user_id=user_id, status=status)
    return ok([o.to_api() for o in orders])


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, db=Depends(require_db)):
    return ok(OrderRepository(db).get_order_by_id(order_id).to_api())


@app.patch("/api/orders/{order_id}")
def update_order_status(order_id: str, payload: StatusUpdateRequest, db=Depends(require_db)):
    logger.info("Updating order %s to %s", order_id, payload.status)
    order = OrderRepository(db).update_status(order_id, payload.status)
    return ok(order.to_api())


# Loyalty
@app.get("/api/user/profile")
def user_profile(user_id: Optional[str] = Query(None, alias="userId"), db=Depends(require_db)):
    return ok(PointsLedger(db).get_user(user_id).to_api())


@app.get("/api/user/points-history")
def points_history(user_id: Optional[str] = Query(None, alias="userId"),
                   limit: int = Query(POINTS_HISTORY_LIMIT, ge=1), db=Depends(require_db)):
    history = PointsLedger(db).list_history(user_id, limit=limit)
    return ok([h.to_api() for h in history])


@app.get("/api/user/points-audit")
def points_audit(user_id: Optional[str] = Query(None, alias="userId"), db=Depends(require_db)):
    return ok(PointsLedger(db).audit(user_id).to_api())


# Seed demo catalog and users if empty
@app.post("/seed")
def seed(db=Depends(require_db)):
    seeded = seed_demo_data(db)
    if not any(seeded.values()):
        return {"message": "Data already exists"}
    return {"message": "Seeded", **seeded}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)

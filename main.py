import logging
import os
from datetime import datetime
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pymongo import ReturnDocument
from pymongo.database import Database

import database
from database import create_document, get_db, get_documents, serialize_doc, to_object_id
from errors import AuthError, NotFoundError, ValidationError, register_error_handlers
from identity import (customer_order_history, customer_profile, find_customer_by_id, find_customer_by_phone,
                      find_login_customer, lookup_contact)
from notifier import notify_new_order
from orders import (create_order as store_order, expand_orders, get_order as load_order, list_orders as load_orders,
                    update_order as apply_order_update)
from out_of_stock import query_searches, record_search, top_search_terms
from schemas import (ORDER_STATUSES, PRODUCT_NULLABLE_TEXT_FIELDS, Customer, LoginRequest, OrderIn, OrderUpdate,
                     OutOfStockSearchIn, Product, ProductUpdate, RegisterRequest, RestockRequest)
from security import create_token, get_current_customer_id, get_optional_customer_id, hash_password, verify_password

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# App setup
app = FastAPI(title="Storefront API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


# Utilities
def product_oid(product_id: str):
    oid = to_object_id(product_id)
    if oid is None:
        raise ValidationError("Invalid product id")
    return oid


# Health and helpers
@app.get("/")
def root():
    return {"message": "Storefront API running"}


@app.get("/api/health")
def health():
    return {"status": "ok", "message": "Backend is live"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": database.DATABASE_NAME,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if database.db is not None:
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
            response["collections"] = database.db.list_collection_names()[:10]
    except Exception as e:
        response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
    return response


# Customers & auth
@app.post("/api/customers")
def register(payload: RegisterRequest, db: Database = Depends(get_db)):
    if find_customer_by_phone(db, payload.phone):
        raise ValidationError("Phone already registered")
    customer = Customer(
        name=payload.name,
        phone=payload.phone,
        password=hash_password(payload.password),
        address=payload.address,
    )
    customer_id = create_document(db, "customer", customer)
    logger.info("Customer %s registered", customer_id)
    return {"id": customer_id, "name": customer.name, "phone": customer.phone}


@app.post("/api/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    customer = find_login_customer(db, payload.identifier)
    valid, new_hash = verify_password(payload.password, customer.get("password", "")) if customer else (False, None)
    if not valid:
        raise AuthError("Invalid credentials")
    if new_hash:
        db["customer"].update_one({"_id": customer["_id"]},
                                  {"$set": {"password": new_hash, "updatedAt": datetime.utcnow()}})
    token = create_token(customer)
    return {"token": token, "user": {"id": str(customer["_id"]), "name": customer.get("name"),
                                     "phone": customer.get("phone")}}


@app.get("/api/me")
def me(customer_id: str = Depends(get_current_customer_id), db: Database = Depends(get_db)):
    customer = find_customer_by_id(db, customer_id)
    if not customer:
        raise NotFoundError("User not found")
    return customer_profile(customer)


@app.get("/api/customers/lookup")
def lookup_customer(phone: Optional[str] = None, name: Optional[str] = None, db: Database = Depends(get_db)):
    if not phone and not name:
        raise ValidationError("phone or name query parameter required")
    return lookup_contact(db, phone=phone, name=name)


@app.get("/api/customers/{customer_id}/orders")
def customer_orders(customer_id: str, db: Database = Depends(get_db)):
    return expand_orders(db, customer_order_history(db, customer_id))


# Products
@app.get("/api/products")
def list_products(db: Database = Depends(get_db)):
    return [serialize_doc(p) for p in get_documents(db, "product")]


@app.post("/api/products")
def create_product(payload: Product, db: Database = Depends(get_db)):
    new_id = create_document(db, "product", payload)
    return serialize_doc(db["product"].find_one({"_id": product_oid(new_id)}))


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    p = db["product"].find_one({"_id": product_oid(product_id)})
    if not p:
        raise NotFoundError("Product not found")
    return serialize_doc(p)


@app.api_route("/api/products/{product_id}", methods=["PUT", "PATCH"])
def update_product(product_id: str, payload: ProductUpdate, db: Database = Depends(get_db)):
    updates = payload.model_dump(exclude_unset=True)
    for field in PRODUCT_NULLABLE_TEXT_FIELDS:
        if updates.get(field) == "":
            updates[field] = None
    updates["updatedAt"] = datetime.utcnow()
    p = db["product"].find_one_and_update({"_id": product_oid(product_id)}, {"$set": updates},
                                          return_document=ReturnDocument.AFTER)
    if not p:
        raise NotFoundError("Product not found")
    return serialize_doc(p)


@app.post("/api/products/{product_id}/restock")
def restock_product(product_id: str, payload: RestockRequest, db: Database = Depends(get_db)):
    p = db["product"].find_one_and_update(
        {"_id": product_oid(product_id)},
        {"$inc": {"stock": payload.quantity},
         "$set": {"available": True, "availability": True, "updatedAt": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not p:
        raise NotFoundError("Product not found")
    return serialize_doc(p)


@app.post("/api/products/{product_id}/discontinue")
def discontinue_product(product_id: str, db: Database = Depends(get_db)):
    p = db["product"].find_one_and_update(
        {"_id": product_oid(product_id)},
        {"$set": {"available": False, "availability": False, "updatedAt": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not p:
        raise NotFoundError("Product not found")
    return serialize_doc(p)


@app.delete("/api/products/{product_id}")
def delete_product(product_id: str, db: Database = Depends(get_db)):
    result = db["product"].delete_one({"_id": product_oid(product_id)})
    if result.deleted_count == 0:
        raise NotFoundError("Product not found")
    return {"success": True}


# Orders
@app.post("/api/orders")
def create_order(payload: OrderIn, background_tasks: BackgroundTasks,
                 customer_id: Optional[str] = Depends(get_optional_customer_id), db: Database = Depends(get_db)):
    order = store_order(db, payload, token_customer_id=customer_id)
    # runs after the response is sent
    background_tasks.add_task(notify_new_order, db, str(order["_id"]))
    return serialize_doc(order)


@app.get("/api/orders")
def list_orders(db: Database = Depends(get_db)):
    return load_orders(db)


@app.get("/api/orders/statuses")
def order_statuses():
    return ORDER_STATUSES


@app.get("/api/orders/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db)):
    return load_order(db, order_id)


@app.put("/api/orders/{order_id}")
def update_order(order_id: str, payload: OrderUpdate, db: Database = Depends(get_db)):
    return serialize_doc(apply_order_update(db, order_id, payload))


# Out-of-stock searches
@app.post("/api/out-of-stock")
def track_out_of_stock(payload: OutOfStockSearchIn, request: Request,
                       customer_id: Optional[str] = Depends(get_optional_customer_id),
                       db: Database = Depends(get_db)):
    record_search(
        db,
        payload.searchTerm,
        customer_id=customer_id,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
        session_id=request.headers.get("x-session-id"),
    )
    return {"success": True, "message": "Search term tracked"}


@app.get("/api/out-of-stock")
def list_out_of_stock(limit: int = Query(100, ge=1, le=1000), page: int = Query(1, ge=1),
                      searchTerm: Optional[str] = None, db: Database = Depends(get_db)):
    return query_searches(db, search_term=searchTerm, page=page, limit=limit)


@app.get("/api/out-of-stock/analytics")
def out_of_stock_analytics(days: int = Query(30, ge=1, le=3650), db: Database = Depends(get_db)):
    return top_search_terms(db, days=days)


# Optional: seed sample products for demo
@app.post("/api/admin/seed")
def seed_products(db: Database = Depends(get_db)):
    if db["product"].count_documents({}) > 0:
        return {"seeded": False, "message": "Products already exist"}
    samples = [
        Product(name="Milk", category="Dairy", details="1L full cream", price=40, stock=50),
        Product(name="Bread", category="Bakery", details="Whole wheat", price=30, stock=40),
        Product(name="Eggs", category="Poultry", details="Pack of 12", price=120, stock=30),
    ]
    ids = [create_document(db, "product", s) for s in samples]
    return {"seeded": True, "count": len(ids)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)

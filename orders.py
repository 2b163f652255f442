"""
Order service

Orders keep the client's product/quantity list and total as sent; nothing is
re-priced or checked against stock. `customer` on new orders is either a
customer id or None, with the display name always in `customer_name`.
"""
import logging
import math
import numbers
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.database import Database

from database import serialize_doc, to_object_id
from errors import NotFoundError, ValidationError
from identity import find_customer_by_id
from schemas import ORDER_UPDATABLE_FIELDS, OrderIn, OrderUpdate

logger = logging.getLogger(__name__)

MAPS_URL = "https://www.google.com/maps?q={lat},{lng}"


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool) and math.isfinite(value)


def maps_link(location: Optional[Dict[str, Any]]) -> Optional[str]:
    if not location:
        return None
    lat, lng = location.get("latitude"), location.get("longitude")
    if _is_number(lat) and _is_number(lng):
        return MAPS_URL.format(lat=lat, lng=lng)
    return None


def build_order_document(db: Database, payload: OrderIn, token_customer_id: Optional[str] = None) -> Dict[str, Any]:
    """Turn a create-order payload into the document to insert.

    A customer id taken from a verified token replaces whatever the client
    sent in `customer`.
    """
    customer_doc = None
    if token_customer_id:
        customer_doc = find_customer_by_id(db, token_customer_id)
        customer_id = token_customer_id
    else:
        customer_doc = find_customer_by_id(db, payload.customer) if payload.customer else None
        customer_id = str(customer_doc["_id"]) if customer_doc else None

    # older clients send the typed name in `customer`
    fallback_name = payload.customer if payload.customer and to_object_id(payload.customer) is None else None
    customer_name = payload.customer_name or (customer_doc or {}).get("name") or fallback_name
    if not customer_name:
        raise ValidationError("customer_name is required")

    products = []
    for line in payload.products:
        product_oid = to_object_id(line.productId)
        if product_oid is None:
            raise ValidationError(f"Invalid product id: {line.productId}")
        products.append({"productId": product_oid, "quantity": line.quantity})

    location = dict(payload.location) if payload.location else None
    link = maps_link(location)
    if link:
        location["mapsLink"] = link

    return {
        "customer": customer_id,
        "customer_name": customer_name,
        "products": products,
        "total": payload.total,
        "address": payload.address,
        "status": payload.status,
        "phone": payload.phone,
        "paymentMethod": payload.paymentMethod,
        "location": location,
        "createdAt": datetime.utcnow(),
    }


def create_order(db: Database, payload: OrderIn, token_customer_id: Optional[str] = None) -> Dict[str, Any]:
    doc = build_order_document(db, payload, token_customer_id)
    doc["_id"] = db["order"].insert_one(doc).inserted_id
    logger.info("Order %s created for %s (%d lines)", doc["_id"], doc["customer_name"], len(doc["products"]))
    return doc


def expand_orders(db: Database, orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Serialize orders, attaching the current product document to every line.

    Lines whose product has been deleted get `product: None`.
    """
    product_ids = {
        to_object_id(line.get("productId"))
        for order in orders
        for line in order.get("products") or []
    }
    product_ids.discard(None)
    products = {}
    if product_ids:
        for prod in db["product"].find({"_id": {"$in": list(product_ids)}}):
            products[prod["_id"]] = serialize_doc(prod)

    expanded = []
    for order in orders:
        out = serialize_doc(order)
        out["products"] = [
            {
                "productId": str(line.get("productId")) if line.get("productId") is not None else None,
                "quantity": line.get("quantity"),
                "product": products.get(to_object_id(line.get("productId"))),
            }
            for line in order.get("products") or []
        ]
        expanded.append(out)
    return expanded


def list_orders(db: Database) -> List[Dict[str, Any]]:
    return expand_orders(db, list(db["order"].find().sort("createdAt", DESCENDING)))


def find_order(db: Database, order_id: str) -> Dict[str, Any]:
    oid = to_object_id(order_id)
    order = db["order"].find_one({"_id": oid}) if oid is not None else None
    if not order:
        raise NotFoundError("Order not found")
    return order


def get_order(db: Database, order_id: str) -> Dict[str, Any]:
    return expand_orders(db, [find_order(db, order_id)])[0]


def update_order(db: Database, order_id: str, payload: OrderUpdate) -> Dict[str, Any]:
    """Apply a partial update. Any status string is accepted; `mapsLink` is not recomputed."""
    updates = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if k in ORDER_UPDATABLE_FIELDS}
    if not updates:
        raise ValidationError("No updatable fields provided")
    oid = to_object_id(order_id)
    if oid is None:
        raise NotFoundError("Order not found")
    result = db["order"].update_one({"_id": oid}, {"$set": updates})
    if result.matched_count == 0:
        raise NotFoundError("Order not found")
    logger.info("Order %s updated: %s", order_id, ", ".join(sorted(updates)))
    return db["order"].find_one({"_id": oid})

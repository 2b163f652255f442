"""
Identity resolution

Locates customers by phone or name and finds their orders. Orders written
by older releases stored `customer` as a raw id, as the customer's name, or
as an embedded object; `customer_order_history` understands all of them.
"""
import re
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING
from pymongo.database import Database

from database import to_object_id
from errors import NotFoundError

HISTORY_LIMIT = 5


def find_customer_by_id(db: Database, customer_id: str) -> Optional[Dict[str, Any]]:
    oid = to_object_id(customer_id)
    if oid is None:
        return None
    return db["customer"].find_one({"_id": oid})


def find_customer_by_phone(db: Database, phone: str) -> Optional[Dict[str, Any]]:
    return db["customer"].find_one({"phone": str(phone)})


def find_login_customer(db: Database, identifier: str) -> Optional[Dict[str, Any]]:
    """Phone first, then a case-insensitive match on the whole name."""
    customer = find_customer_by_phone(db, identifier)
    if customer:
        return customer
    pattern = f"^{re.escape(identifier)}$"
    return db["customer"].find_one({"name": {"$regex": pattern, "$options": "i"}})


def lookup_contact(db: Database, phone: Optional[str] = None, name: Optional[str] = None) -> Dict[str, Any]:
    """Best-effort autofill details for a phone number or name.

    A registered customer wins; otherwise the most recent order with the same
    phone or a name containing `name` is used. Several customers may share a
    name, so the result is a suggestion, not an identity.
    """
    if phone:
        customer = find_customer_by_phone(db, phone)
        if customer:
            return {
                "source": "customer",
                "name": customer.get("name"),
                "phone": customer.get("phone"),
                "address": customer.get("address"),
            }

    conditions: List[Dict[str, Any]] = []
    if phone:
        conditions.append({"phone": str(phone)})
    if name:
        conditions.append({"customer_name": {"$regex": re.escape(name), "$options": "i"}})
    if not conditions:
        raise NotFoundError("No customer/order found")

    matches = list(db["order"].find({"$or": conditions}).sort("createdAt", DESCENDING).limit(1))
    if not matches:
        raise NotFoundError("No customer/order found")
    recent = matches[0]
    legacy_name = recent.get("customer") if isinstance(recent.get("customer"), str) else None
    return {
        "source": "order",
        "name": recent.get("customer_name") or legacy_name,
        "phone": recent.get("phone"),
        "address": recent.get("address"),
        "location": recent.get("location"),
    }


def history_filter(customer_id: str, customer_name: Optional[str] = None) -> Dict[str, Any]:
    conditions: List[Dict[str, Any]] = [{"customer": customer_id}]
    oid = to_object_id(customer_id)
    if oid is not None:
        conditions.append({"customer": oid})
    if customer_name:
        conditions.append({"customer": customer_name})
    conditions.append({"customer._id": customer_id})
    conditions.append({"customer.id": customer_id})
    if oid is not None:
        conditions.append({"customer._id": oid})
    return {"$or": conditions}


def customer_order_history(db: Database, customer_id: str, limit: int = HISTORY_LIMIT) -> List[Dict[str, Any]]:
    customer = find_customer_by_id(db, customer_id)
    name = customer.get("name") if customer else None
    cursor = db["order"].find(history_filter(customer_id, name)).sort("createdAt", DESCENDING).limit(limit)
    return list(cursor)


def customer_profile(customer: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(customer["_id"]),
        "name": customer.get("name"),
        "phone": customer.get("phone"),
        "address": customer.get("address", ""),
    }

"""
Out-of-stock search tracking

Shoppers' searches that returned nothing are appended to "out_of_stock";
admins page through them and look at the most requested terms.
"""
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pymongo import DESCENDING
from pymongo.database import Database

from database import serialize_doc
from errors import ValidationError
from schemas import OutOfStockSearch

logger = logging.getLogger(__name__)

ANALYTICS_LIMIT = 50


def record_search(db: Database, search_term: Optional[str], customer_id: Optional[str] = None,
                  user_agent: Optional[str] = None, ip_address: Optional[str] = None,
                  session_id: Optional[str] = None) -> str:
    term = (search_term or "").strip()
    if not term:
        raise ValidationError("Search term is required")
    record = OutOfStockSearch(
        searchTerm=term,
        customer=customer_id,
        userAgent=user_agent,
        ipAddress=ip_address,
        sessionId=session_id,
    )
    doc = record.model_dump()
    doc["searchedAt"] = datetime.utcnow()
    inserted_id = db["out_of_stock"].insert_one(doc).inserted_id
    logger.info('Out-of-stock search tracked: "%s" by %s', term, customer_id or "anonymous")
    return str(inserted_id)


def query_searches(db: Database, search_term: Optional[str] = None, page: int = 1, limit: int = 100) -> Dict[str, Any]:
    filt: Dict[str, Any] = {}
    if search_term:
        filt["searchTerm"] = {"$regex": re.escape(search_term), "$options": "i"}
    skip = (page - 1) * limit
    cursor = db["out_of_stock"].find(filt).sort("searchedAt", DESCENDING).skip(skip).limit(limit)
    total = db["out_of_stock"].count_documents(filt)
    return {
        "searches": [serialize_doc(d) for d in cursor],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def top_search_terms(db: Database, days: int = 30) -> Dict[str, Any]:
    """Most searched terms over the last `days` days.

    Terms are grouped by exact string, so "iphone" and "Iphone" are counted
    separately. Anonymous searches count as a single identity.
    """
    since = datetime.utcnow() - timedelta(days=days)
    pipeline = [
        {"$match": {"searchedAt": {"$gte": since}}},
        {"$group": {
            "_id": "$searchTerm",
            "count": {"$sum": 1},
            "lastSearched": {"$max": "$searchedAt"},
            "uniqueUsers": {"$addToSet": "$customer"},
        }},
        {"$project": {
            "_id": 0,
            "searchTerm": "$_id",
            "count": 1,
            "lastSearched": 1,
            "uniqueUserCount": {"$size": "$uniqueUsers"},
        }},
        {"$sort": {"count": -1, "lastSearched": -1}},
        {"$limit": ANALYTICS_LIMIT},
    ]
    analytics = [serialize_doc(row) for row in db["out_of_stock"].aggregate(pipeline)]
    return {"period": f"{days} days", "analytics": analytics}

from datetime import datetime, timedelta


def test_blank_terms_are_rejected(client):
    for term in ("", "   "):
        r = client.post("/api/out-of-stock", json={"searchTerm": term})
        assert r.status_code == 400
        assert r.json() == {"error": "Search term is required"}


def test_record_stores_trimmed_term_and_request_context(client, mongo_db):
    r = client.post("/api/out-of-stock", json={"searchTerm": "  paneer "},
                    headers={"User-Agent": "test-agent", "X-Session-Id": "s-1"})
    assert r.status_code == 200
    assert r.json()["success"] is True

    stored = mongo_db["out_of_stock"].find_one()
    assert stored["searchTerm"] == "paneer"
    assert stored["userAgent"] == "test-agent"
    assert stored["sessionId"] == "s-1"
    assert stored["customer"] is None
    assert isinstance(stored["searchedAt"], datetime)


def test_record_attaches_customer_from_token(client, mongo_db, register_and_login):
    customer_id, token = register_and_login()
    client.post("/api/out-of-stock", json={"searchTerm": "ghee"}, headers={"Authorization": f"Bearer {token}"})
    assert mongo_db["out_of_stock"].find_one()["customer"] == customer_id


def test_same_term_twice_is_two_records_one_bucket(client, mongo_db):
    for _ in range(2):
        assert client.post("/api/out-of-stock", json={"searchTerm": "iphone"}).status_code == 200
    assert mongo_db["out_of_stock"].count_documents({}) == 2

    r = client.get("/api/out-of-stock/analytics")
    assert r.status_code == 200
    body = r.json()
    assert body["period"] == "30 days"
    assert len(body["analytics"]) == 1
    bucket = body["analytics"][0]
    assert bucket["searchTerm"] == "iphone"
    assert bucket["count"] == 2
    assert bucket["uniqueUserCount"] == 1
    assert bucket["lastSearched"]


def test_aggregate_groups_by_exact_term_and_sorts_by_count(client):
    for term in ("iphone", "Iphone", "iphone", "milk", "iphone"):
        client.post("/api/out-of-stock", json={"searchTerm": term})
    analytics = client.get("/api/out-of-stock/analytics").json()["analytics"]
    counts = {row["searchTerm"]: row["count"] for row in analytics}
    assert counts == {"iphone": 3, "Iphone": 1, "milk": 1}
    assert analytics[0]["searchTerm"] == "iphone"


def test_aggregate_ignores_searches_outside_window(client, mongo_db):
    mongo_db["out_of_stock"].insert_one({"searchTerm": "old", "customer": None,
                                         "searchedAt": datetime.utcnow() - timedelta(days=10)})
    client.post("/api/out-of-stock", json={"searchTerm": "new"})
    terms = [row["searchTerm"] for row in client.get("/api/out-of-stock/analytics?days=7").json()["analytics"]]
    assert terms == ["new"]
    terms = [row["searchTerm"] for row in client.get("/api/out-of-stock/analytics?days=30").json()["analytics"]]
    assert sorted(terms) == ["new", "old"]


def test_query_filters_and_paginates(client, mongo_db):
    now = datetime.utcnow()
    for i, term in enumerate(["Red Apple", "apple juice", "banana", "green APPLE"]):
        mongo_db["out_of_stock"].insert_one({"searchTerm": term, "customer": None,
                                             "searchedAt": now - timedelta(minutes=i)})

    r = client.get("/api/out-of-stock", params={"searchTerm": "apple", "limit": 2, "page": 1})
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 3
    assert body["totalPages"] == 2
    assert body["page"] == 1
    assert body["limit"] == 2
    assert [s["searchTerm"] for s in body["searches"]] == ["Red Apple", "apple juice"]

    body = client.get("/api/out-of-stock", params={"searchTerm": "apple", "limit": 2, "page": 2}).json()
    assert [s["searchTerm"] for s in body["searches"]] == ["green APPLE"]


def test_query_escapes_regex_characters(client):
    client.post("/api/out-of-stock", json={"searchTerm": "c++ book"})
    client.post("/api/out-of-stock", json={"searchTerm": "cbook"})
    body = client.get("/api/out-of-stock", params={"searchTerm": "c++"}).json()
    assert [s["searchTerm"] for s in body["searches"]] == ["c++ book"]


def test_query_rejects_bad_paging(client):
    assert client.get("/api/out-of-stock", params={"page": 0}).status_code == 400


def test_aggregate_window_is_bounded(client):
    assert client.get("/api/out-of-stock/analytics", params={"days": 1000000}).status_code == 400
    assert client.get("/api/out-of-stock/analytics", params={"days": 0}).status_code == 400
    r = client.get("/api/out-of-stock/analytics", params={"days": 3650})
    assert r.status_code == 200
    assert r.json()["period"] == "3650 days"

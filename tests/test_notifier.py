import notifier


ORDER = {
    "id": "665f1c2b9a1e4b0012345678",
    "customer_name": "Meena",
    "phone": "444",
    "total": 200,
    "paymentMethod": "qr",
    "address": "5 Lake Road",
    "location": {"city": "Pune", "mapsLink": "https://www.google.com/maps?q=1,2"},
    "products": [
        {"productId": "a", "quantity": 2, "product": {"name": "Milk", "price": 40}},
        {"productId": "b", "quantity": 1, "product": None},
    ],
}


def test_message_lists_order_details():
    text = notifier.format_order_message(ORDER)
    assert "*Order ID:* `665f1c2b9a1e4b0012345678`" in text
    assert "*Customer:* Meena" in text
    assert "*Total Amount:* ₹200.00" in text
    assert "*Payment Method:* Pay via QR Code" in text
    assert "*Location:* Pune [View on Google Maps](https://www.google.com/maps?q=1,2)" in text
    assert "- Milk (Qty: 2) - ₹80.00" in text
    assert "- Unknown Product (Qty: 1) - ₹0.00" in text


def test_message_for_sparse_order():
    text = notifier.format_order_message({"id": "x", "paymentMethod": "cod", "products": []})
    assert "*Customer:* N/A" in text
    assert "*Payment Method:* Cash on Delivery" in text
    assert "No items listed" in text


def test_send_is_skipped_without_credentials(monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("should not post")

    monkeypatch.setattr(notifier.requests, "post", fail)
    assert notifier.send_order_notification(ORDER) is False


def test_notify_swallows_missing_order(mongo_db):
    notifier.notify_new_order(mongo_db, "665f1c2b9a1e4b0012345678")

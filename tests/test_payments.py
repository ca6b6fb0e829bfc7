def test_verify_upi(client):
    ok = client.post("/api/payments/verify-upi", json={"upi": "john@okbank", "gateway": "gpay"})
    assert ok.json() == {"verified": True, "name": "John", "gateway": "gpay"}

    bad = client.post("/api/payments/verify-upi", json={"upi": "bad"})
    assert bad.status_code == 400
    assert bad.json()["message"] == "Invalid UPI ID format"

    assert client.post("/api/payments/verify-upi", json={}).status_code == 400


def test_process_payment(client):
    response = client.post("/api/payments/process-payment", json={"method": "card", "amount": 499})
    body = response.json()
    assert body["success"] is True
    assert body["tx_id"].startswith("TXN-")
    assert len(body["tx_id"]) == len("TXN-000000")

    missing = client.post("/api/payments/process-payment", json={"method": "card"})
    assert missing.status_code == 400


def test_payment_records_and_visibility(client, make_user, make_course):
    instructor = make_user("instructor")
    buyer, other = make_user(), make_user()
    course = make_course(instructor, price=250)

    payment = client.post(
        "/api/payments", json={"course_id": course["course_id"], "payment_method": "upi"}, headers=buyer["headers"]
    ).json()
    assert payment["amount"] == 250
    assert payment["currency"] == "INR"

    mine = client.get("/api/payments", headers=buyer["headers"]).json()
    assert mine[0]["course"]["title"] == course["title"]

    url = f"/api/payments/{payment['payment_id']}"
    assert client.get(url, headers=buyer["headers"]).status_code == 200
    assert client.get(url, headers=other["headers"]).status_code == 403
    assert client.put(url, json={"status": "refunded"}, headers=buyer["headers"]).status_code == 403


def test_duplicate_transaction_id(client, make_user, make_course):
    instructor = make_user("instructor")
    buyer = make_user()
    course = make_course(instructor, price=100)

    body = {"course_id": course["course_id"], "transaction_id": "TXN-FIXED"}
    assert client.post("/api/payments", json=body, headers=buyer["headers"]).status_code == 201
    again = client.post("/api/payments", json=body, headers=buyer["headers"])
    assert again.status_code == 400
    assert again.json()["message"] == "Duplicate transaction ID"


def test_instructor_revenue(client, make_user, make_course):
    instructor = make_user("instructor")
    buyer = make_user()
    first = make_course(instructor, price=100, title="First")
    second = make_course(instructor, price=300, title="Second")
    foreign = make_course(make_user("instructor"), price=999, title="Foreign")

    for course in (first, second, second, foreign):
        client.post("/api/payments", json={"course_id": course["course_id"]}, headers=buyer["headers"])

    revenue = client.get("/api/payments/instructor/revenue", headers=instructor["headers"]).json()
    assert revenue["total_revenue"] == 700
    assert revenue["payments_count"] == 3
    assert revenue["by_course"][0] == {"course_id": second["course_id"], "revenue": 600, "payments": 2}

    assert client.get("/api/payments/instructor/revenue", headers=buyer["headers"]).status_code == 403

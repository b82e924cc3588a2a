"""
Quote lifecycle API tests.

Tests:
1. test_create_draft_with_partial_fields
2. test_only_client_approvers_create_drafts
3. test_submit_reports_all_missing_fields
4. test_submit_assigns_sequential_quote_numbers
5. test_request_info_then_provide
6. test_request_info_requires_message
7. test_provide_quote_records_audit_and_breakdown
8. test_provide_quote_validation
9. test_rejected_transition_leaves_status_unchanged
10. test_approve_blocked_when_validity_passed
11. test_approve_with_future_or_no_validity
12. test_client_decline
13. test_staff_cannot_decline_admin_can
14. test_terminal_quote_rejects_messages_and_attachments
15. test_post_message_rules
16. test_attachment_delete_same_side_only
17. test_other_client_cannot_see_quote
18. test_list_filters_and_scope
19. test_summary_counts
20. test_expire_due_sweep
"""

from datetime import datetime, timedelta

from workorder_portal import models


def _status(client, quote_id, headers):
    return client.get(f"/api/quotes/{quote_id}", headers=headers).json()["data"]["status"]


def _set_valid_until(db, quote_id, value):
    quote = db.query(models.Quote).filter(models.Quote.id == quote_id).first()
    quote.quote_valid_until = value
    db.commit()


def test_create_draft_with_partial_fields(client, client_admin_headers):
    """Drafts may be saved with nothing filled in."""
    resp = client.post("/api/quotes", json={"title": "Fence"}, headers=client_admin_headers)
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["status"] == "Draft"
    assert body["data"]["quote_number"] is None
    assert body["data"]["available_actions"] == ["save_draft", "submit"]

    resp = client.patch(
        f"/api/quotes/{body['data']['id']}", json={"property_name": "Unit 9"}, headers=client_admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Fence"
    assert resp.json()["data"]["property_name"] == "Unit 9"


def test_only_client_approvers_create_drafts(client, client_headers, staff_headers):
    assert client.post("/api/quotes", json={}, headers=client_headers).status_code == 403
    assert client.post("/api/quotes", json={}, headers=staff_headers).status_code == 403


def test_submit_reports_all_missing_fields(client, client_admin_headers):
    quote = client.post(
        "/api/quotes", json={"title": "Fence", "description": "short"}, headers=client_admin_headers,
    ).json()["data"]

    resp = client.post(f"/api/quotes/{quote['id']}/submit", headers=client_admin_headers)
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["message"] == "Quote is missing required information"
    assert [e["field"] for e in body["errors"]] == [
        "property_name", "description", "contact_person", "contact_email",
    ]
    assert _status(client, quote["id"], client_admin_headers) == "Draft"


def test_submit_assigns_sequential_quote_numbers(client, make_quote, client_admin_headers):
    year = datetime.utcnow().year
    first = make_quote("Submitted")
    second = make_quote("Submitted")
    assert first["status"] == "Submitted"
    assert first["quote_number"] == f"QTE-{year}-001"
    assert second["quote_number"] == f"QTE-{year}-002"
    assert first["submitted_at"] is not None

    messages = client.get(f"/api/quotes/{first['id']}/messages", headers=client_admin_headers).json()["data"]
    assert [m["message_type"] for m in messages] == ["status_change"]
    assert messages[0]["author_name"] == "Casey Manager"

    # Submitting twice is a transition error
    resp = client.post(f"/api/quotes/{first['id']}/submit", headers=client_admin_headers)
    assert resp.status_code == 409


def test_request_info_then_provide(client, make_quote, staff_headers):
    quote = make_quote("Submitted")
    resp = client.patch(
        f"/api/quotes/{quote['id']}/request-info",
        json={"message": "Which unit is affected?"}, headers=staff_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "Information Requested"

    resp = client.patch(
        f"/api/quotes/{quote['id']}/provide-quote",
        json={"estimated_cost": 800, "estimated_hours": 4}, headers=staff_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "Quoted"

    types = [m["message_type"] for m in resp.json()["data"]["messages"]]
    assert types == ["status_change", "info_requested", "quote_provided"]


def test_request_info_requires_message(client, make_quote, staff_headers):
    quote = make_quote("Submitted")
    resp = client.patch(f"/api/quotes/{quote['id']}/request-info", json={"message": "  "}, headers=staff_headers)
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "message"


def test_provide_quote_records_audit_and_breakdown(client, make_quote, staff_headers):
    quote = make_quote("Submitted")
    valid_until = datetime.utcnow() + timedelta(days=30)
    resp = client.patch(f"/api/quotes/{quote['id']}/provide-quote", json={
        "estimated_cost": 350.5,
        "estimated_hours": 6,
        "quote_notes": "Includes materials",
        "quote_valid_until": valid_until.isoformat(),
        "itemized_breakdown": [
            {"category": "materials", "description": "Timber", "cost": 100},
            {"category": "labor", "description": "Builder", "cost": 250.5},
        ],
    }, headers=staff_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["estimated_cost"] == 350.5
    assert data["breakdown_total"] == 350.5
    assert len(data["itemized_breakdown"]) == 2
    assert data["is_expired"] is False

    audit = [m for m in data["messages"] if m["message_type"] == "quote_provided"][0]
    assert audit["previous_cost"] is None
    assert audit["new_cost"] == 350.5
    assert audit["new_hours"] == 6
    assert audit["author_role"] == "staff"


def test_provide_quote_validation(client, make_quote, staff_headers, client_admin_headers):
    quote = make_quote("Submitted")
    resp = client.patch(f"/api/quotes/{quote['id']}/provide-quote", json={
        "estimated_cost": 0,
        "estimated_hours": 2,
        "quote_valid_until": (datetime.utcnow() - timedelta(days=1)).isoformat(),
        "itemized_breakdown": [{"category": "labor", "description": "", "cost": 5}],
    }, headers=staff_headers)
    assert resp.status_code == 400
    assert [e["field"] for e in resp.json()["errors"]] == [
        "estimated_cost", "quote_valid_until", "itemized_breakdown.0.description",
    ]

    # Amounts that round to zero cents are not positive
    resp = client.patch(f"/api/quotes/{quote['id']}/provide-quote", json={
        "estimated_cost": 0.004, "estimated_hours": 0.001,
    }, headers=staff_headers)
    assert resp.status_code == 400
    assert [e["field"] for e in resp.json()["errors"]] == ["estimated_cost", "estimated_hours"]

    resp = client.patch(f"/api/quotes/{quote['id']}/provide-quote", json={
        "estimated_cost": 1e30, "estimated_hours": 1e7,
        "itemized_breakdown": [{"category": "labor", "description": "Roofer", "cost": 1e12}],
    }, headers=staff_headers)
    assert resp.status_code == 400
    assert [e["message"] for e in resp.json()["errors"]] == [
        "Estimated cost cannot exceed 99,999,999.99",
        "Estimated hours cannot exceed 999,999.99",
        "Cost cannot exceed 99,999,999.99",
    ]
    assert _status(client, quote["id"], staff_headers) == "Submitted"

    # Client side may not price a quote
    resp = client.patch(
        f"/api/quotes/{quote['id']}/provide-quote",
        json={"estimated_cost": 10, "estimated_hours": 1}, headers=client_admin_headers,
    )
    assert resp.status_code == 403
    assert _status(client, quote["id"], staff_headers) == "Submitted"


def test_rejected_transition_leaves_status_unchanged(client, make_quote, client_admin_headers, staff_headers):
    draft = make_quote("Draft")
    resp = client.patch(f"/api/quotes/{draft['id']}/approve", headers=client_admin_headers)
    assert resp.status_code == 409
    assert resp.json()["details"] == {"status": "Draft", "action": "approve"}
    assert _status(client, draft["id"], client_admin_headers) == "Draft"

    submitted = make_quote("Submitted")
    resp = client.post(f"/api/quotes/{submitted['id']}/convert", headers=staff_headers)
    assert resp.status_code == 409
    assert _status(client, submitted["id"], staff_headers) == "Submitted"


def test_approve_blocked_when_validity_passed(client, db, make_quote, client_admin_headers):
    quote = make_quote("Quoted", valid_until=datetime.utcnow() + timedelta(days=7))
    _set_valid_until(db, quote["id"], datetime.utcnow() - timedelta(hours=1))

    resp = client.patch(f"/api/quotes/{quote['id']}/approve", headers=client_admin_headers)
    assert resp.status_code == 400
    assert resp.json()["message"] == "This quote has expired and can no longer be approved"

    data = client.get(f"/api/quotes/{quote['id']}", headers=client_admin_headers).json()["data"]
    assert data["status"] == "Quoted"
    assert data["is_expired"] is True


def test_approve_with_future_or_no_validity(client, make_quote, client_admin_headers):
    dated = make_quote("Quoted", valid_until=datetime.utcnow() + timedelta(days=7))
    undated = make_quote("Quoted")

    for quote in (dated, undated):
        resp = client.patch(
            f"/api/quotes/{quote['id']}/approve", json={"message": "Go ahead"}, headers=client_admin_headers,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "Approved"
        assert data["approved_at"] is not None
        assert data["messages"][-1]["message_type"] == "approved"
        assert data["messages"][-1]["message"].endswith("Go ahead")


def test_client_decline(client, make_quote, client_admin_headers):
    quote = make_quote("Quoted")
    resp = client.patch(
        f"/api/quotes/{quote['id']}/decline-quote", json={"message": "Too expensive"}, headers=client_admin_headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "Declined"
    assert data["is_terminal"] is True
    assert data["available_actions"] == []
    last = data["messages"][-1]
    assert last["message_type"] == "declined_by_client"
    assert "Too expensive" in last["message"]


def test_staff_cannot_decline_admin_can(client, make_quote, staff_headers, admin_headers, client_headers):
    quote = make_quote("Quoted")
    assert client.patch(f"/api/quotes/{quote['id']}/decline", headers=staff_headers).status_code == 403
    assert client.patch(f"/api/quotes/{quote['id']}/decline", headers=client_headers).status_code == 403

    resp = client.patch(f"/api/quotes/{quote['id']}/decline", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "Declined"
    assert resp.json()["data"]["messages"][-1]["message_type"] == "declined_by_staff"


def test_terminal_quote_rejects_messages_and_attachments(client, make_quote, client_admin_headers, staff_headers):
    quote = make_quote("Quoted")
    attachment = client.post(f"/api/quotes/{quote['id']}/attachments", json={
        "file_name": "roof.jpg", "file_url": "https://files.example/roof.jpg", "mime_type": "image/jpeg",
    }, headers=client_admin_headers).json()["data"]
    client.patch(f"/api/quotes/{quote['id']}/decline-quote", headers=client_admin_headers)

    resp = client.post(f"/api/quotes/{quote['id']}/messages", json={"message": "Hello?"}, headers=staff_headers)
    assert resp.status_code == 409
    resp = client.post(f"/api/quotes/{quote['id']}/attachments", json={
        "file_name": "a.pdf", "file_url": "https://files.example/a.pdf",
    }, headers=client_admin_headers)
    assert resp.status_code == 409
    resp = client.delete(f"/api/quotes/attachments/{attachment['id']}", headers=client_admin_headers)
    assert resp.status_code == 409
    resp = client.patch(f"/api/quotes/{quote['id']}", json={"title": "New"}, headers=client_admin_headers)
    assert resp.status_code == 409

    # Reading is still allowed
    assert client.get(f"/api/quotes/{quote['id']}/messages", headers=staff_headers).status_code == 200


def test_post_message_rules(client, make_quote, client_admin_headers, staff_headers):
    quote = make_quote("Submitted")
    resp = client.post(
        f"/api/quotes/{quote['id']}/messages",
        json={"message": "Is the gate code still 1234?", "message_type": "question"}, headers=staff_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["author_name"] == "Sam Staff"

    resp = client.post(f"/api/quotes/{quote['id']}/messages", json={"message": ""}, headers=client_admin_headers)
    assert resp.status_code == 400
    resp = client.post(
        f"/api/quotes/{quote['id']}/messages",
        json={"message": "Approved!", "message_type": "approved"}, headers=client_admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "message_type"


def test_attachment_delete_same_side_only(client, make_quote, client_admin_headers, staff_headers, admin_headers):
    quote = make_quote("Submitted")
    first = client.post(f"/api/quotes/{quote['id']}/attachments", json={
        "file_name": "leak.jpg", "file_url": "https://files.example/leak.jpg", "mime_type": "image/jpeg",
    }, headers=client_admin_headers)
    assert first.status_code == 201
    assert first.json()["data"]["file_type"] == "photo"
    first_id = first.json()["data"]["id"]

    assert client.delete(f"/api/quotes/attachments/{first_id}", headers=staff_headers).status_code == 403
    assert client.delete(f"/api/quotes/attachments/{first_id}", headers=client_admin_headers).status_code == 200

    second = client.post(f"/api/quotes/{quote['id']}/attachments", json={
        "file_name": "scope.pdf", "file_url": "https://files.example/scope.pdf", "mime_type": "application/pdf",
    }, headers=client_admin_headers).json()["data"]
    assert second["file_type"] == "document"
    assert client.delete(f"/api/quotes/attachments/{second['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/quotes/{quote['id']}/attachments", headers=staff_headers).json()["data"] == []


def test_other_client_cannot_see_quote(client, make_quote, other_admin_headers):
    quote = make_quote("Submitted")
    assert client.get(f"/api/quotes/{quote['id']}", headers=other_admin_headers).status_code == 403
    assert client.get("/api/quotes/9999", headers=other_admin_headers).status_code == 404


def test_list_filters_and_scope(client, make_quote, client_admin_headers, staff_headers, other_admin_headers):
    submitted = make_quote("Submitted")
    make_quote("Draft", is_urgent=True, property_name="Seaside Cottage")
    make_quote("Draft", headers=other_admin_headers)

    own = client.get("/api/quotes", headers=client_admin_headers).json()
    assert own["pagination"] == {"page": 1, "limit": 10, "total": 2, "pages": 1}

    everyone = client.get("/api/quotes", headers=staff_headers).json()
    assert everyone["pagination"]["total"] == 3

    urgent = client.get("/api/quotes", params={"urgency": True}, headers=client_admin_headers).json()["data"]
    assert [q["property_name"] for q in urgent] == ["Seaside Cottage"]

    found = client.get(
        "/api/quotes", params={"search": submitted["quote_number"].lower()}, headers=staff_headers,
    ).json()["data"]
    assert [q["id"] for q in found] == [submitted["id"]]

    drafts = client.get("/api/quotes", params={"status": "Draft"}, headers=staff_headers).json()["data"]
    assert len(drafts) == 2

    paged = client.get("/api/quotes", params={"limit": 1, "page": 2}, headers=staff_headers).json()
    assert len(paged["data"]) == 1
    assert paged["pagination"]["pages"] == 3


def test_summary_counts(client, make_quote, client_admin_headers):
    make_quote("Draft")
    make_quote("Submitted", is_urgent=True)
    make_quote("Quoted")

    summary = client.get("/api/quotes/summary", headers=client_admin_headers).json()["data"]
    assert summary["Draft"] == 1
    assert summary["Submitted"] == 1
    assert summary["Quoted"] == 1
    assert summary["Converted"] == 0
    assert summary["urgent"] == 1
    assert summary["total"] == 3


def test_expire_due_sweep(client, db, make_quote, staff_headers, client_admin_headers):
    due = make_quote("Quoted", valid_until=datetime.utcnow() + timedelta(days=1))
    fresh = make_quote("Quoted", valid_until=datetime.utcnow() + timedelta(days=10))
    _set_valid_until(db, due["id"], datetime.utcnow() - timedelta(days=1))

    assert client.post("/api/quotes/expire-due", headers=client_admin_headers).status_code == 403

    resp = client.post("/api/quotes/expire-due", headers=staff_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["expired_ids"] == [due["id"]]

    data = client.get(f"/api/quotes/{due['id']}", headers=client_admin_headers).json()["data"]
    assert data["status"] == "Expired"
    assert data["expired_at"] is not None
    last = data["messages"][-1]
    assert last["message_type"] == "expired"
    assert last["author_name"] == "System"
    assert last["author_role"] == "system"
    assert _status(client, fresh["id"], client_admin_headers) == "Quoted"

    # A second sweep finds nothing
    assert client.post("/api/quotes/expire-due", headers=staff_headers).json()["data"]["expired_ids"] == []

"""
API Tests

Exercises the FastAPI app against the in-memory demo ledger:
memos, invoices (create/update/delete with recomputed totals),
eligibility, previews, customers, PDFs and error mapping.
"""


class TestHealth:
    """Health and readiness."""

    def test_health(self, client, demo_store):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["services"]["ledger_store"] == demo_store.name

    def test_request_id_is_echoed(self, client):
        response = client.get("/ready", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"
        assert client.get("/ready").headers["X-Request-ID"]


class TestMemoEndpoints:
    """Memo list, detail, delete, download."""

    def test_list_newest_first_with_invoicing_status(self, client):
        body = client.get("/memos").json()

        assert body["total"] == 7
        assert body["invoiced_count"] == 1
        assert body["items"][0]["memo"]["memo_no"] == "M-1007"
        locked = next(r for r in body["items"] if r["memo"]["memo_no"] == "M-1004")
        assert locked["status_label"] == "INV-2026-0001"
        assert not locked["can_delete"]
        assert locked["delete_disabled_reason"] == "Cannot delete a memo that is part of an invoice."

    def test_search(self, client):
        body = client.get("/memos", params={"search": "steels"}).json()

        assert [r["memo"]["memo_no"] for r in body["items"]] == ["M-1006"]

    def test_get_missing_memo(self, client):
        assert client.get("/memos/M-9999").status_code == 404

    def test_delete_invoiced_memo_conflicts(self, client):
        response = client.delete("/memos/M-1004")

        assert response.status_code == 409
        assert response.json()["invoice_no"] == "INV-2026-0001"

    def test_delete_uninvoiced_memo(self, client):
        assert client.delete("/memos/M-1007").status_code == 204
        assert client.get("/memos/M-1007").status_code == 404

    def test_memo_pdf(self, client):
        response = client.get("/memos/M-1001/document.pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")


class TestInvoiceEndpoints:
    """Invoice reads and writes."""

    def test_list(self, client):
        body = client.get("/invoices").json()

        assert body["total"] == 1
        assert body["items"][0]["invoice_no"] == "INV-2026-0001"
        assert body["outstanding_balance"] == "12000.00"

    def test_create_recomputes_totals(self, client):
        response = client.post("/invoices", json={
            "invoice_no": "INV-2026-0100",
            "invoice_date": "2026-10-01",
            "customer_name": "Acme Traders",
            "memo_nos": ["M-1001", "M-1002"],
            "amount_paid": "1000",
        })

        assert response.status_code == 201
        invoice = response.json()["invoice"]
        assert invoice["id"] == 2
        assert invoice["total_amount"] == "21250.00"
        assert invoice["balance"] == "20250.00"
        assert [m["memo_no"] for m in response.json()["memos"]] == ["M-1001", "M-1002"]

    def test_create_without_number_generates_one(self, client):
        response = client.post("/invoices", json={
            "invoice_date": "2026-10-01",
            "customer_name": "Acme Traders",
            "memo_nos": ["M-1003"],
        })

        assert response.status_code == 201
        invoice_no = response.json()["invoice"]["invoice_no"]
        assert invoice_no.startswith("INV-")
        assert invoice_no != "INV-2026-0001"

    def test_validation_failure(self, client):
        response = client.post("/invoices", json={
            "invoice_no": "INV-2026-0100",
            "invoice_date": "2026-10-01",
            "customer_name": "Acme Traders",
            "memo_nos": [],
        })

        assert response.status_code == 422
        assert response.json()["detail"] == "Please select at least one memo."
        assert response.json()["reasons"] == ["no_memos_selected"]

    def test_negative_amount_paid(self, client):
        response = client.post("/invoices", json={
            "invoice_no": "INV-2026-0100",
            "invoice_date": "2026-10-01",
            "customer_name": "Acme Traders",
            "memo_nos": ["M-1001"],
            "amount_paid": "-5",
        })

        assert response.status_code == 422

    def test_memo_of_another_customer(self, client):
        response = client.post("/invoices", json={
            "invoice_no": "INV-2026-0100",
            "invoice_date": "2026-10-01",
            "customer_name": "Acme Traders",
            "memo_nos": ["M-1006"],
        })

        assert response.status_code == 409
        assert response.json()["memo_nos"] == ["M-1006"]

    def test_memo_linked_elsewhere(self, client):
        response = client.post("/invoices", json={
            "invoice_no": "INV-2026-0100",
            "invoice_date": "2026-10-01",
            "customer_name": "Chennai Cargo Movers",
            "memo_nos": ["M-1005", "M-1004"],
        })

        assert response.status_code == 409
        assert response.json()["memo_nos"] == ["M-1004"]
        assert response.json()["invoice_no"] == "INV-2026-0001"
        assert client.get("/invoices").json()["total"] == 1

    def test_update_keeps_number_and_reports_advisory(self, client):
        response = client.put("/invoices/1", json={
            "invoice_no": "SOMETHING-ELSE",
            "invoice_date": "2026-09-20",
            "customer_name": "Chennai Cargo Movers",
            "memo_nos": ["M-1004", "M-1005"],
            "amount_paid": "10000",
            "status": "Paid",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["invoice"]["invoice_no"] == "INV-2026-0001"
        assert body["invoice"]["total_amount"] == "40400.00"
        assert body["invoice"]["balance"] == "30400.00"
        assert any("marked Paid" in note for note in body["advisories"])

    def test_customer_change_with_memos_attached(self, client):
        response = client.put("/invoices/1", json={
            "invoice_date": "2026-09-20",
            "customer_name": "Acme Traders",
            "memo_nos": ["M-1004"],
        })

        assert response.status_code == 409

    def test_update_missing_invoice(self, client):
        response = client.put("/invoices/42", json={
            "invoice_date": "2026-09-20",
            "customer_name": "Acme Traders",
            "memo_nos": ["M-1001"],
        })

        assert response.status_code == 404

    def test_delete_releases_memos(self, client):
        assert client.delete("/invoices/1").status_code == 204
        assert client.get("/invoices/1").status_code == 404
        assert client.delete("/memos/M-1004").status_code == 204

    def test_invoice_pdf(self, client):
        response = client.get("/invoices/1/document.pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "INV-2026-0001.pdf" in response.headers["content-disposition"]

    def test_next_number(self, client):
        first = client.get("/invoices/next-number").json()["invoice_no"]
        second = client.get("/invoices/next-number").json()["invoice_no"]

        assert first != second
        assert first != "INV-2026-0001"


class TestSelectionHelpers:
    """Eligible memos, totals preview, customers."""

    def test_eligible_for_new_invoice(self, client):
        body = client.get("/invoices/eligible-memos", params={"customer_name": "chennai cargo movers"}).json()

        assert [m["memo_no"] for m in body["items"]] == ["M-1005"]

    def test_eligible_when_editing(self, client):
        body = client.get("/invoices/eligible-memos", params={"invoice_id": 1}).json()

        assert body["customer_name"] == "Chennai Cargo Movers"
        assert [m["memo_no"] for m in body["items"]] == ["M-1004", "M-1005"]
        assert body["selected_memo_nos"] == ["M-1004"]

    def test_preview_totals(self, client):
        body = client.post("/invoices/preview-totals", json={
            "memo_nos": ["M-1001", "M-1002", "M-0000"],
            "amount_paid": "1000",
        }).json()

        assert body["total_amount"] == "21250.00"
        assert body["balance"] == "20250.00"
        assert body["missing_memo_nos"] == ["M-0000"]

    def test_customers_sorted(self, client):
        body = client.get("/customers").json()

        assert body["total"] == 4
        assert [c["name"] for c in body["items"]] == [
            "Acme Traders",
            "Chennai Cargo Movers",
            "Coastal Agro Exports",
            "Sri Murugan Steels",
        ]


class TestStoreFailures:
    """Ledger outages."""

    def test_store_failure_maps_to_503(self, client, demo_store):
        demo_store.fail_next("list_invoices")

        response = client.get("/invoices")

        assert response.status_code == 503
        assert response.json()["detail"] == "Ledger store unavailable, please retry."
        assert client.get("/invoices").status_code == 200

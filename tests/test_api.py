"""Tests for the Flask reconciliation API."""
import gc
import io
from types import SimpleNamespace

from flask_limiter import Limiter
from kombu.exceptions import OperationalError


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"
        assert "X-Response-Time" in response.headers
        assert response.headers["X-Content-Type-Options"] == "nosniff"

    def test_routes_survive_garbage_collection(self, client, upload_form):
        assert client.get("/api/health").status_code == 200
        gc.collect()

        assert client.get("/api/health").status_code == 200
        response = client.post("/api/reconcile", data=upload_form(), content_type="multipart/form-data")
        assert response.status_code == 200

    def test_limiter_attached_to_app(self, app):
        gc.collect()

        assert isinstance(app.limiter, Limiter)


class TestReconcile:

    def test_huge_time_window(self, client, upload_form):
        response = client.post(
            "/api/reconcile",
            data=upload_form(time_window_hours="1e15"),
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert response.get_json()["exact_match_count"] == 2

    def test_reconcile_uploads(self, client, upload_form):
        response = client.post("/api/reconcile", data=upload_form(), content_type="multipart/form-data")

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["exact_match_count"] == 1
        assert body["amount_only_match_count"] == 1
        assert [m["invoice"]["voucher_no"] for m in body["matched"]] == ["INV-001", "INV-002"]
        assert [m["match_type"] for m in body["matched"]] == ["AmountOnlyMatch", "ExactMatch"]
        assert body["unmatched_invoices"][0]["voucher_no"] == "INV-003"
        assert body["unmatched_payments"][0]["customer_vpa"] == "unknown@okbank"
        assert body["summary"]["failed_payments"] == 1

    def test_custom_time_window(self, client, upload_form):
        response = client.post(
            "/api/reconcile",
            data=upload_form(time_window_hours="240"),
            content_type="multipart/form-data",
        )

        body = response.get_json()
        assert body["exact_match_count"] == 2
        assert body["summary"]["time_window_hours"] == 240.0

    def test_malformed_rows_reported(self, client, upload_form):
        bad_payments = (
            b"Transaction_Date,Amount,Status,Payment_Mode,Customer_VPA\n"
            b"2024-01-10 12:00:00,100.00,SUCCESS,UPI,acme@okbank\n"
            b"someday,5.00,SUCCESS,UPI,x@okbank\n"
        )
        form = upload_form(payments=(io.BytesIO(bad_payments), "payments.csv"))

        response = client.post("/api/reconcile", data=form, content_type="multipart/form-data")

        body = response.get_json()
        assert response.status_code == 200
        assert body["exact_match_count"] == 1
        assert body["skipped"][0]["row_number"] == 2
        assert body["skipped"][0]["error_code"] == "MalformedDateError"

    def test_missing_upload(self, client, upload_form):
        form = upload_form()
        del form["payments"]

        response = client.post("/api/reconcile", data=form, content_type="multipart/form-data")

        assert response.status_code == 400
        body = response.get_json()
        assert body["error"] is True
        assert body["error_code"] == "ValidationError"
        assert body["details"]["field"] == "payments"

    def test_bad_time_window(self, client, upload_form):
        for value in ("soon", "-1"):
            response = client.post(
                "/api/reconcile",
                data=upload_form(time_window_hours=value),
                content_type="multipart/form-data",
            )
            assert response.status_code == 400

    def test_unsupported_file_type(self, client, upload_form, invoice_csv):
        form = upload_form(invoices=(io.BytesIO(invoice_csv), "invoices.pdf"))

        response = client.post("/api/reconcile", data=form, content_type="multipart/form-data")

        assert response.status_code == 400
        assert "Unsupported file type" in response.get_json()["message"]

    def test_missing_columns(self, client, upload_form):
        form = upload_form(invoices=(io.BytesIO(b"VOUCHER NO,AMOUNT\nINV-1,10\n"), "invoices.csv"))

        response = client.post("/api/reconcile", data=form, content_type="multipart/form-data")

        assert response.status_code == 400
        assert "TIMESTAMP" in response.get_json()["message"]

    def test_get_not_allowed(self, client):
        response = client.get("/api/reconcile")

        assert response.status_code == 405
        assert response.get_json()["error"] is True


class TestExport:

    def test_csv_section(self, client, upload_form):
        response = client.post(
            "/api/reconcile/export?format=csv&section=unmatched_payments",
            data=upload_form(),
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "unmatched_payments.csv" in response.headers["Content-Disposition"]
        lines = response.get_data(as_text=True).splitlines()
        assert lines[0] == "Transaction Date,Amount,Payment Mode,Customer VPA"
        assert lines[1] == "2024-01-12 08:00:00,999.00,NETBANKING,unknown@okbank"

    def test_csv_all_sections(self, client, upload_form):
        response = client.post(
            "/api/reconcile/export?format=csv&section=all",
            data=upload_form(),
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert "filename=reconciliation_results.csv" in response.headers["Content-Disposition"]

    def test_pdf(self, client, upload_form):
        response = client.post(
            "/api/reconcile/export?format=pdf",
            data=upload_form(),
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data.startswith(b"%PDF")

    def test_xlsx(self, client, upload_form):
        response = client.post(
            "/api/reconcile/export?format=xlsx",
            data=upload_form(),
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        assert "reconciliation_report.xlsx" in response.headers["Content-Disposition"]

    def test_unknown_format(self, client, upload_form):
        response = client.post(
            "/api/reconcile/export?format=docx",
            data=upload_form(),
            content_type="multipart/form-data",
        )

        assert response.status_code == 400
        assert "csv" in response.get_json()["details"]["valid_formats"]

    def test_unknown_section(self, client, upload_form):
        response = client.post(
            "/api/reconcile/export?section=nope",
            data=upload_form(),
            content_type="multipart/form-data",
        )

        assert response.status_code == 400


class TestAsync:

    def test_queue_task(self, client, upload_form, monkeypatch):
        calls = []

        def fake_delay(invoice_rows, payment_rows, time_window_hours):
            calls.append((invoice_rows, payment_rows, time_window_hours))
            return SimpleNamespace(id="task-123")

        monkeypatch.setattr(
            "api.reconciliation_api.process_reconciliation_task", SimpleNamespace(delay=fake_delay)
        )

        response = client.post(
            "/api/reconcile/async",
            data=upload_form(time_window_hours="12"),
            content_type="multipart/form-data",
        )

        assert response.status_code == 202
        assert response.get_json()["task_id"] == "task-123"
        invoice_rows, payment_rows, window = calls[0]
        assert len(invoice_rows) == 3
        assert len(payment_rows) == 4
        assert window == 12.0

    def test_broker_down(self, client, upload_form, monkeypatch):
        def failing_delay(*args):
            raise OperationalError("connection refused")

        monkeypatch.setattr(
            "api.reconciliation_api.process_reconciliation_task", SimpleNamespace(delay=failing_delay)
        )

        response = client.post("/api/reconcile/async", data=upload_form(), content_type="multipart/form-data")

        assert response.status_code == 503

    def test_task_status(self, client, monkeypatch):
        class FakeResult:
            def __init__(self, task_id, app=None):
                self.state = "PROCESSING"
                self.info = {"progress": 10, "message": "Matching..."}

        monkeypatch.setattr("api.reconciliation_api.AsyncResult", FakeResult)

        body = client.get("/api/tasks/task-123").get_json()

        assert body == {"task_id": "task-123", "state": "PROCESSING", "progress": 10, "message": "Matching..."}

    def test_task_result(self, client, monkeypatch):
        class FakeResult:
            def __init__(self, task_id, app=None):
                self.state = "SUCCESS"
                self.info = {"exact_match_count": 3}

        monkeypatch.setattr("api.reconciliation_api.AsyncResult", FakeResult)

        body = client.get("/api/tasks/task-123").get_json()

        assert body["result"] == {"exact_match_count": 3}

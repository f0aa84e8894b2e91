# tests/test_web.py
import io
import json

from dealerbooks.database.models import ChartOfAccount, Customer


def _upload(client, url, content, filename="export.csv", **form):
    data = {"file": (io.BytesIO(content), filename), **form}
    return client.post(url, data=data, content_type="multipart/form-data")


def _count(app, model):
    with app.extensions["dealerbooks"]["session_factory"]() as session:
        return session.query(model).count()


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok"}


def test_import_customers(client, app, fixtures_dir):
    r = _upload(client, "/api/accounting/import/customers", (fixtures_dir / "customers.csv").read_bytes())
    assert r.status_code == 200
    body = r.get_json()
    assert body["message"] == "Customers import complete"
    assert body["created"] == 2
    assert body["errors"] == []
    assert _count(app, Customer) == 2


def test_import_dry_run_flag(client, app, fixtures_dir):
    r = _upload(
        client,
        "/api/accounting/import/chart-of-accounts",
        (fixtures_dir / "chart_of_accounts.csv").read_bytes(),
        dry_run="true",
    )
    assert r.status_code == 200
    assert r.get_json()["created"] == 11
    assert _count(app, ChartOfAccount) == 0


def test_import_items_invalid_import_as(client, fixtures_dir):
    r = _upload(
        client, "/api/accounting/import/items", (fixtures_dir / "items.csv").read_bytes(), import_as="widgets"
    )
    assert r.status_code == 422
    assert "import_as" in r.get_json()["errors"]


def test_import_unknown_type(client):
    r = _upload(client, "/api/accounting/import/timesheets", b"Name\nJane\n")
    assert r.status_code == 422
    assert "import_type" in r.get_json()["errors"]


def test_import_missing_file(client):
    r = client.post("/api/accounting/import/customers", data={}, content_type="multipart/form-data")
    assert r.status_code == 422
    assert r.get_json()["errors"] == {"file": ["The file field is required."]}


def test_import_bad_extension(client):
    r = _upload(client, "/api/accounting/import/customers", b"Customer\nJane\n", filename="customers.xlsx")
    assert r.status_code == 422
    assert r.get_json()["errors"] == {"file": ["The file must be a file of type: csv, txt."]}


def test_import_too_large(app, client):
    app.config["MAX_UPLOAD_KB"] = 1
    r = _upload(client, "/api/accounting/import/customers", b"Customer\n" + b"x" * 2048)
    assert r.status_code == 422
    assert r.get_json()["errors"]["file"] == ["The file may not be greater than 1 kilobytes."]


def test_import_failure_returns_500(client):
    r = _upload(client, "/api/accounting/import/customers", b"")
    assert r.status_code == 500
    body = r.get_json()
    assert body["message"] == "Import failed"
    assert body["error"] == "The QuickBooks CSV file is missing a header row."
    assert body["errors"] == []


def test_row_errors_do_not_fail_request(client):
    csv_text = b"Account,Type,Balance Total\nChecking,Bank,not-money\nSavings,Bank,10.00\n"
    r = _upload(client, "/api/accounting/import/chart-of-accounts", csv_text)
    assert r.status_code == 200
    body = r.get_json()
    assert body["created"] == 1
    assert body["errors"] == ["Row 2: Could not parse amount 'not-money'"]


def test_json_restore(client, app):
    payload = json.dumps({"customers": [{"id": 1, "name": "Jane Doe"}]}).encode()
    r = _upload(client, "/api/import/json", payload, filename="backup.json")
    assert r.status_code == 200
    assert r.get_json()["created"] == 1
    assert _count(app, Customer) == 1


def test_json_restore_with_table(client, app):
    payload = json.dumps([{"id": 4, "name": "Acme"}]).encode()
    r = _upload(client, "/api/import/json", payload, filename="customers.json", table="customers")
    assert r.status_code == 200
    assert _count(app, Customer) == 1


def test_json_restore_unknown_table(client):
    payload = json.dumps([{"id": 1}]).encode()
    r = _upload(client, "/api/import/json", payload, filename="rows.json", table="nope")
    assert r.status_code == 422
    assert r.get_json()["errors"] == {"file": ["Unknown table 'nope'"]}


def test_json_restore_rejects_csv(client):
    r = _upload(client, "/api/import/json", b"{}", filename="backup.csv")
    assert r.status_code == 422
    assert r.get_json()["errors"] == {"file": ["The file must be a file of type: json, txt."]}

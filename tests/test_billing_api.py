import pytest
from fastapi.testclient import TestClient

from tvl_billing.api.deps import get_bill_repository
from tvl_billing.main import app


HEADERS = {"X-User-Id": "clerk"}

DRAFT_PAYLOAD = {
    "customerId": "CUST001",
    "customerName": "R. Iyer",
    "billDate": "2025-06-01",
    "baseFare": 1000,
    "serviceCharge": 50,
    "gstRate": 18,
    "gstMode": "EXCLUSIVE",
}


@pytest.fixture(autouse=True)
def _reset_repository() -> None:
    get_bill_repository().reset()
    yield
    get_bill_repository().reset()


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def _create_bill(client: TestClient, **overrides) -> dict:
    response = client.post("/api/v1/billing/bills", json={**DRAFT_PAYLOAD, **overrides}, headers=HEADERS)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client) -> None:
    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").json()["docs"] == "/docs"
    assert client.get("/health").json()["currency"] == "INR"


def test_calculate_exclusive(client) -> None:
    response = client.post(
        "/api/v1/billing/calculate",
        json={"baseFare": 1000, "serviceCharge": 50, "gstRate": 18, "gstMode": "EXCLUSIVE"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["subtotal"] == "1050.00"
    assert body["taxAmount"] == "189.00"
    assert body["grandTotal"] == "1239.00"
    assert body["currency"] == "INR"


def test_calculate_rejects_negative_charge(client) -> None:
    response = client.post("/api/v1/billing/calculate", json={"baseFare": 1000, "serviceCharge": -5})
    assert response.status_code == 400
    assert "service_charge" in response.json()["detail"]


def test_transition_endpoint(client) -> None:
    ok = client.post("/api/v1/billing/transition", json={"status": "draft", "action": "finalize"})
    assert ok.status_code == 200
    assert ok.json() == {"status": "FINAL", "allowedActions": ["CANCEL"]}

    conflict = client.post("/api/v1/billing/transition", json={"status": "FINAL", "action": "FINALIZE"})
    assert conflict.status_code == 409

    reopen = client.post("/api/v1/billing/transition", json={"status": "PAID", "action": "REOPEN"})
    assert reopen.status_code == 409


def test_mutations_require_user_header(client) -> None:
    response = client.post("/api/v1/billing/bills", json=DRAFT_PAYLOAD)
    assert response.status_code == 401


def test_create_validation_error(client) -> None:
    response = client.post("/api/v1/billing/bills", json={"baseFare": 100}, headers=HEADERS)
    assert response.status_code == 422


def test_bill_lifecycle(client) -> None:
    bill = _create_bill(client)
    number = bill["billNumber"]
    assert number.startswith("BL/25-26/")
    assert bill["status"] == "DRAFT"
    assert bill["totalAmount"] == "1239.00"
    assert bill["allowedActions"] == ["FINALIZE", "CANCEL"]

    patched = client.patch(f"/api/v1/billing/bills/{number}", json={"agentFee": 100}, headers=HEADERS)
    assert patched.status_code == 200
    assert patched.json()["totalAmount"] == "1357.00"

    final = client.post(f"/api/v1/billing/bills/{number}/finalize", headers=HEADERS)
    assert final.status_code == 200
    assert final.json()["status"] == "FINAL"

    frozen = client.patch(f"/api/v1/billing/bills/{number}", json={"agentFee": 0}, headers=HEADERS)
    assert frozen.status_code == 409

    partial = client.post(
        f"/api/v1/billing/bills/{number}/payments",
        json={"amount": 357, "mode": "upi", "reference": "UPI-881"},
        headers=HEADERS,
    )
    assert partial.status_code == 201
    assert partial.json()["status"] == "PARTIAL"
    assert partial.json()["amountDue"] == "1000.00"

    paid = client.post(f"/api/v1/billing/bills/{number}/payments", json={"amount": 1000}, headers=HEADERS)
    assert paid.json()["status"] == "PAID"

    payments = client.get(f"/api/v1/billing/bills/{number}/payments")
    assert [p["amount"] for p in payments.json()] == ["357", "1000"]

    fetched = client.get(f"/api/v1/billing/bills/{number}")
    assert fetched.json()["status"] == "PAID"
    assert fetched.json()["allowedActions"] == []

    assert client.delete(f"/api/v1/billing/bills/{number}", headers=HEADERS).status_code == 409


def test_payment_validation(client) -> None:
    number = _create_bill(client)["billNumber"]

    zero = client.post(f"/api/v1/billing/bills/{number}/payments", json={"amount": 0}, headers=HEADERS)
    assert zero.status_code == 422

    on_draft = client.post(f"/api/v1/billing/bills/{number}/payments", json={"amount": 10}, headers=HEADERS)
    assert on_draft.status_code == 409


def test_unknown_bill(client) -> None:
    assert client.get("/api/v1/billing/bills/BL/25-26/99999").status_code == 404
    assert client.post("/api/v1/billing/bills/BL/25-26/99999/finalize", headers=HEADERS).status_code == 404


def test_cancel_and_delete(client) -> None:
    number = _create_bill(client)["billNumber"]

    cancelled = client.post(f"/api/v1/billing/bills/{number}/cancel", headers=HEADERS)
    assert cancelled.json()["status"] == "CANCELLED"

    assert client.delete(f"/api/v1/billing/bills/{number}", headers=HEADERS).status_code == 204
    assert client.get(f"/api/v1/billing/bills/{number}").status_code == 404


def test_list_bills(client) -> None:
    first = _create_bill(client)["billNumber"]
    _create_bill(client, customerId="CUST002")
    client.post(f"/api/v1/billing/bills/{first}/finalize", headers=HEADERS)

    everything = client.get("/api/v1/billing/bills").json()
    assert everything["total"] == 2

    finals = client.get("/api/v1/billing/bills", params={"status": "FINAL"}).json()
    assert [b["billNumber"] for b in finals["items"]] == [first]

    customer = client.get("/api/v1/billing/bills", params={"customerId": "CUST002"}).json()
    assert customer["total"] == 1


def test_customer_ledger_and_balance(client) -> None:
    number = _create_bill(client)["billNumber"]
    client.post(f"/api/v1/billing/bills/{number}/finalize", headers=HEADERS)
    client.post(
        f"/api/v1/billing/bills/{number}/payments",
        json={"amount": 239, "paidOn": "2025-06-02"},
        headers=HEADERS,
    )

    ledger = client.get("/api/v1/billing/customers/CUST001/ledger").json()
    assert [e["entryType"] for e in ledger["entries"]] == ["BILL", "PAYMENT"]
    assert ledger["closingBalance"] == "1000.00"

    balance = client.get("/api/v1/billing/customers/CUST001/balance").json()
    assert balance["netDue"] == "1000.00"
    assert balance["netAdvance"] == "0.00"


@pytest.mark.parametrize(
    "payload",
    [
        {"baseFare": 100, "gstMode": "GROSS"},
        {"baseFare": 100, "discounts": [{"label": "Promo", "amount": 5, "kind": "BOGO"}]},
        {"baseFare": "1e30", "gstRate": 18},
    ],
)
def test_calculate_rejects_invalid_charges_with_400(client, payload) -> None:
    response = client.post("/api/v1/billing/calculate", json=payload)
    assert response.status_code == 400, response.text


def test_calculate_accepts_lowercase_mode(client) -> None:
    response = client.post(
        "/api/v1/billing/calculate",
        json={"baseFare": 1000, "serviceCharge": 50, "gstRate": 18, "gstMode": "inclusive"},
    )
    assert response.status_code == 200
    assert response.json()["gstMode"] == "INCLUSIVE"
    assert response.json()["taxAmount"] == "160.17"


def test_patch_treats_non_numeric_charge_as_zero(client) -> None:
    number = _create_bill(client)["billNumber"]

    response = client.patch(f"/api/v1/billing/bills/{number}", json={"serviceCharge": "abc"}, headers=HEADERS)

    assert response.status_code == 200, response.text
    assert response.json()["serviceCharge"] == "0"
    assert response.json()["totalAmount"] == "1180.00"


def test_search_bills(client) -> None:
    _create_bill(client, customerName="R. Iyer", billDate="2025-06-01", baseFare=500)
    second = _create_bill(client, customerId="CUST002", customerName="Meera Iyer-Nair", billDate="2025-06-10")
    third = _create_bill(client, customerId="CUST003", customerName="A. Khan", billDate="2025-07-01", baseFare=3000)

    by_name = client.get("/api/v1/billing/bills", params={"customerName": "IYER", "sortBy": "billDate"}).json()
    assert by_name["total"] == 2
    assert by_name["items"][0]["billNumber"] == second["billNumber"]

    by_range = client.get(
        "/api/v1/billing/bills",
        params={"fromDate": "2025-06-05", "toDate": "2025-07-31", "minAmount": 2000, "maxAmount": 4000},
    ).json()
    assert [b["billNumber"] for b in by_range["items"]] == [third["billNumber"]]

    paged = client.get(
        "/api/v1/billing/bills",
        params={"sortBy": "totalAmount", "sortOrder": "ASC", "page": 2, "limit": 2},
    ).json()
    assert paged["total"] == 3
    assert paged["pages"] == 2
    assert paged["page"] == 2
    assert [b["customerName"] for b in paged["items"]] == ["A. Khan"]


def test_search_bills_rejects_unknown_sort_field(client) -> None:
    response = client.get("/api/v1/billing/bills", params={"sortBy": "passengerCount"})
    assert response.status_code == 400


def test_payments_of_unknown_bill(client) -> None:
    assert client.get("/api/v1/billing/bills/BL/25-26/99999/payments").status_code == 404

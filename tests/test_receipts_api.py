"""Tests for receipt storage, listing, statistics and export endpoints."""
import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import FirebaseUser, get_current_user
from app.main import app
from app.models.enums import PlanTier
from app.models.receipt import Receipt
from app.models.user import User


@pytest.mark.asyncio
async def test_list_receipts(client: AsyncClient, test_receipts: list[Receipt]):
    response = await client.get("/api/v1/receipts")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == len(test_receipts)
    assert data["page"] == 1
    assert {r["id"] for r in data["receipts"]} == {r.id for r in test_receipts}


@pytest.mark.asyncio
async def test_list_receipts_filters(client: AsyncClient):
    response = await client.get(
        "/api/v1/receipts", params={"category": "Office Supplies", "min_amount": 50}
    )

    data = response.json()
    assert data["total"] == 1
    assert data["receipts"][0]["total"] == 120.0

    response = await client.get("/api/v1/receipts", params={"search": "whole"})
    assert [r["merchant"] for r in response.json()["receipts"]] == ["Whole Foods"]


@pytest.mark.asyncio
async def test_list_receipts_pagination(client: AsyncClient):
    response = await client.get("/api/v1/receipts", params={"page": 2, "page_size": 4})

    data = response.json()
    assert data["total"] == 6
    assert len(data["receipts"]) == 2


@pytest.mark.asyncio
async def test_get_receipt_not_found(client: AsyncClient):
    response = await client.get("/api/v1/receipts/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


@pytest.mark.asyncio
async def test_create_receipt_counts_usage(client: AsyncClient):
    payload = {
        "file_name": "lunch.jpg",
        "merchant": "Deli",
        "receipt_date": "2024-01-12",
        "total": 18.4,
        "category": "Meals & Entertainment",
    }

    response = await client.post("/api/v1/receipts", json=payload)

    assert response.status_code == 201
    data = response.json()
    assert data["merchant"] == "Deli"
    assert data["status"] == "completed"

    usage = (await client.get("/api/v1/usage")).json()
    assert usage["receipts_used"] == 1
    assert usage["receipts_remaining"] == 9

    detail = await client.get(f"/api/v1/receipts/{data['id']}")
    assert detail.status_code == 200
    assert detail.json()["total"] == 18.4


@pytest.mark.asyncio
async def test_create_receipt_without_extraction(client: AsyncClient):
    response = await client.post("/api/v1/receipts", json={"file_name": "blank.jpg"})

    assert response.status_code == 201
    data = response.json()
    assert data["merchant"] is None
    assert data["total"] is None


@pytest.mark.asyncio
async def test_update_receipt(client: AsyncClient, test_receipts: list[Receipt]):
    target = test_receipts[4]

    response = await client.patch(
        f"/api/v1/receipts/{target.id}",
        json={"merchant": "Corner Shop", "receipt_date": "2024-01-03", "category": "Groceries"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["merchant"] == "Corner Shop"
    assert data["receipt_date"] == "2024-01-03"
    assert data["effective_date"] == "2024-01-03"
    # Untouched fields keep their values
    assert data["total"] == 50.0

    analytics = (
        await client.get(
            "/api/v1/analytics", params={"date_from": "2024-01-03", "date_to": "2024-01-03"}
        )
    ).json()
    assert analytics["total_spending"] == 50.0
    assert analytics["top_merchants"][0]["merchant"] == "Corner Shop"


@pytest.mark.asyncio
async def test_delete_receipt(client: AsyncClient, test_receipts: list[Receipt]):
    target = test_receipts[0]

    response = await client.delete(f"/api/v1/receipts/{target.id}")

    assert response.status_code == 200
    assert response.json()["deleted_receipt_id"] == target.id

    assert (await client.get(f"/api/v1/receipts/{target.id}")).status_code == 404


@pytest.mark.asyncio
async def test_cannot_access_other_users_receipt(
    client: AsyncClient, test_session: AsyncSession
):
    other = User(firebase_uid="someone_else", email="other@example.com")
    test_session.add(other)
    await test_session.flush()
    receipt = Receipt(user_id=other.id, merchant="Secret", total=9.0)
    test_session.add(receipt)
    await test_session.commit()

    response = await client.get(f"/api/v1/receipts/{receipt.id}")
    assert response.status_code == 404

    response = await client.delete(f"/api/v1/receipts/{receipt.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_receipt_statistics(client: AsyncClient):
    response = await client.get("/api/v1/receipts/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["total_receipts"] == 5
    assert data["total_amount"] == 300.0
    assert data["by_category"]["Office Supplies"] == {"count": 2, "total": 150.0}
    assert data["by_category"]["Uncategorized"] == {"count": 1, "total": 50.0}


@pytest.mark.asyncio
async def test_export_csv(client: AsyncClient, test_receipts: list[Receipt]):
    response = await client.get("/api/v1/receipts/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]

    lines = response.text.strip().splitlines()
    assert lines[0].startswith("Date,Merchant,Amount")
    assert len(lines) == len(test_receipts) + 1


@pytest.mark.asyncio
async def test_disabled_user_is_forbidden(
    anonymous_client: AsyncClient, test_session: AsyncSession, test_user: User
):
    test_user.is_active = False
    await test_session.commit()

    async def override_get_current_user():
        return FirebaseUser(uid=test_user.firebase_uid, email=test_user.email)

    app.dependency_overrides[get_current_user] = override_get_current_user

    response = await anonymous_client.get("/api/v1/receipts")

    assert response.status_code == 403
    assert response.json()["error"] == "permission_denied"


@pytest.mark.asyncio
async def test_list_receipts_date_range_uses_effective_date(client: AsyncClient):
    response = await client.get(
        "/api/v1/receipts", params={"date_from": "2024-01-05", "date_to": "2024-01-10"}
    )

    merchants = {r["merchant"] for r in response.json()["receipts"]}
    assert merchants == {"Office Depot", "Blue Bottle", "Uber", "Whole Foods"}

    # Unparseable date falls back to the upload day (2024-01-15)
    response = await client.get("/api/v1/receipts", params={"date_from": "2024-01-12"})
    data = response.json()
    assert data["total"] == 1
    assert data["receipts"][0]["effective_date"] == "2024-01-15"


@pytest.mark.asyncio
async def test_list_receipts_sorting(client: AsyncClient):
    response = await client.get(
        "/api/v1/receipts", params={"sort_by": "total", "sort_order": "asc"}
    )
    totals = [r["total"] for r in response.json()["receipts"]]
    assert totals == [12.5, 25.0, 30.0, 50.0, 87.5, 120.0]

    response = await client.get(
        "/api/v1/receipts", params={"sort_by": "receipt_date", "sort_order": "asc"}
    )
    receipts = response.json()["receipts"]
    assert receipts[0]["receipt_date"] == "2024-01-02"
    assert receipts[-1]["effective_date"] == "2024-01-15"


@pytest.mark.asyncio
async def test_list_receipts_rejects_unknown_sort(client: AsyncClient):
    response = await client.get("/api/v1/receipts", params={"sort_by": "file_size"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_receipt_with_line_items_and_tags(client: AsyncClient):
    payload = {
        "merchant": "Deli",
        "receipt_date": "2024-01-12",
        "total": 9.0,
        "payment_method": "Visa",
        "tags": ["lunch", "work"],
        "line_items": [
            {"description": "Sandwich", "quantity": 2, "unit_price": 4.5, "total": 9.0}
        ],
    }

    response = await client.post("/api/v1/receipts", json=payload)

    assert response.status_code == 201
    data = response.json()
    assert data["payment_method"] == "Visa"
    assert data["tags"] == ["lunch", "work"]
    assert data["line_items"] == [
        {"description": "Sandwich", "quantity": 2.0, "unit_price": 4.5, "total": 9.0}
    ]
    assert data["effective_date"] == "2024-01-12"

    export = (await client.get("/api/v1/receipts/export")).text
    assert "Payment Method" in export.splitlines()[0]
    assert "Visa" in export


@pytest.mark.asyncio
async def test_update_receipt_rejects_null_status(
    client: AsyncClient, test_receipts: list[Receipt]
):
    target = test_receipts[0]

    response = await client.patch(f"/api/v1/receipts/{target.id}", json={"status": None})

    assert response.status_code == 422

    detail = (await client.get(f"/api/v1/receipts/{target.id}")).json()
    assert detail["status"] == "completed"


@pytest.mark.asyncio
async def test_update_receipt_status(client: AsyncClient, test_receipts: list[Receipt]):
    target = test_receipts[5]

    response = await client.patch(f"/api/v1/receipts/{target.id}", json={"status": "completed"})

    assert response.status_code == 200
    assert response.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_pdf_export_not_on_free_plan(client: AsyncClient):
    response = await client.get("/api/v1/receipts/export", params={"format": "pdf"})

    assert response.status_code == 403
    data = response.json()
    assert data["error"] == "export_format_not_allowed"
    assert data["details"]["allowed_formats"] == ["csv"]


@pytest.mark.asyncio
async def test_pdf_export_on_basic_plan(
    client: AsyncClient, test_session: AsyncSession, test_user: User
):
    test_user.plan_tier = PlanTier.BASIC
    await test_session.commit()

    response = await client.get("/api/v1/receipts/export", params={"format": "pdf"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert ".pdf" in response.headers["content-disposition"]
    assert response.content.startswith(b"%PDF")

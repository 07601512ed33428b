"""
Kasa (cash register) tests: expense products and the daily balance sheet upsert.
"""

import pytest

from onestop.errors import NotFoundError, ValidationError
from onestop.services import kasa_service


class TestExpenseProducts:
    def test_create_and_filter_by_category(self, user_a):
        kasa_service.create_expense_product(user_a.id, {"name": "Kira", "category": "kasa"})
        kasa_service.create_expense_product(user_a.id, {"name": "POS komisyonu", "category": "kart"})

        kart = kasa_service.list_expense_products(user_a.id, "kart")
        assert [row.name for row in kart] == ["POS komisyonu"]
        assert len(kasa_service.list_expense_products(user_a.id)) == 2

    @pytest.mark.parametrize("payload, message", [
        ({"category": "kasa"}, "Expense product name is required"),
        ({"name": "Kira", "category": "banka"}, "Category must be one of: kasa, kart, devir"),
    ])
    def test_invalid_expense_products(self, user_a, payload, message):
        with pytest.raises(ValidationError) as exc:
            kasa_service.create_expense_product(user_a.id, payload)
        assert exc.value.message == message

    def test_delete_hides_from_list(self, user_a):
        row = kasa_service.create_expense_product(user_a.id, {"name": "Elektrik", "category": "kasa"})
        kasa_service.delete_expense_product(user_a.id, row.id)
        assert kasa_service.list_expense_products(user_a.id) == []

    def test_other_owner_cannot_update(self, user_a, user_b):
        row = kasa_service.create_expense_product(user_a.id, {"name": "Su", "category": "kasa"})
        with pytest.raises(NotFoundError):
            kasa_service.update_expense_product(user_b.id, row.id, {"name": "Gaz"})


class TestBalanceSheets:
    def test_upsert_creates_then_updates_keeping_omitted_fields(self, user_a):
        sheet, created = kasa_service.upsert_balance_sheet(user_a.id, {
            "date": "2026-10-17",
            "opening_balance": "500",
            "total_sales": "1250.40",
            "total_expenses": "200",
            "items": [{"name": "Kira", "amount": 200}],
        })
        assert created is True
        sheet_id = sheet.id

        sheet, created = kasa_service.upsert_balance_sheet(user_a.id, {
            "date": "2026-10-17",
            "closing_balance": "1550.40",
        })
        assert created is False
        assert sheet.id == sheet_id

        data = sheet.to_dict()
        assert data["opening_balance"] == "500.00"
        assert data["total_sales"] == "1250.40"
        assert data["closing_balance"] == "1550.40"
        assert data["items"] == [{"name": "Kira", "amount": 200}]

    def test_sheets_are_per_owner(self, user_a, user_b):
        kasa_service.upsert_balance_sheet(user_a.id, {"date": "2026-10-17", "total_sales": 10})
        _, created = kasa_service.upsert_balance_sheet(user_b.id, {"date": "2026-10-17", "total_sales": 20})
        assert created is True

        with pytest.raises(NotFoundError):
            kasa_service.get_balance_sheet(user_b.id, "2026-10-16")
        assert kasa_service.get_balance_sheet(user_b.id, "2026-10-17").to_dict()["total_sales"] == "20.00"

    @pytest.mark.parametrize("payload", [{}, {"date": "17.10.2026"}])
    def test_date_is_required_and_iso(self, user_a, payload):
        with pytest.raises(ValidationError):
            kasa_service.upsert_balance_sheet(user_a.id, payload)

    def test_delete(self, user_a):
        kasa_service.upsert_balance_sheet(user_a.id, {"date": "2026-10-17"})
        kasa_service.delete_balance_sheet(user_a.id, "2026-10-17")
        with pytest.raises(NotFoundError) as exc:
            kasa_service.get_balance_sheet(user_a.id, "2026-10-17")
        assert exc.value.message == "Balance sheet not found for this date"


class TestKasaApi:
    def test_upsert_status_codes(self, client, headers_a):
        first = client.post("/api/kasa/balance-sheets", json={"date": "2026-10-18", "total_sales": 100},
                            headers=headers_a)
        assert first.status_code == 201

        second = client.post("/api/kasa/balance-sheets", json={"date": "2026-10-18", "total_expenses": 40},
                             headers=headers_a)
        assert second.status_code == 200
        assert second.get_json()["total_sales"] == "100.00"
        assert second.get_json()["total_expenses"] == "40.00"

        fetched = client.get("/api/kasa/balance-sheets/2026-10-18", headers=headers_a)
        assert fetched.status_code == 200
        assert fetched.get_json()["id"] == first.get_json()["id"]

    def test_daily_profit_report(self, client, headers_a):
        client.post("/api/kasa/balance-sheets",
                    json={"date": "2026-10-16", "total_sales": 300, "total_expenses": 120}, headers=headers_a)
        client.post("/api/kasa/balance-sheets",
                    json={"date": "2026-10-17", "total_sales": 200, "total_expenses": 50}, headers=headers_a)

        body = client.get(
            "/api/kasa/reports/daily-profit?start_date=2026-10-16&end_date=2026-10-17", headers=headers_a
        ).get_json()

        assert body["summary"]["days_count"] == 2
        assert body["summary"]["total_gross_profit"] == "330.00"
        assert [d["date"] for d in body["daily_data"]] == ["2026-10-17", "2026-10-16"]
        assert body["daily_data"][0]["gross_profit"] == "150.00"

    def test_invalid_category_is_400(self, client, headers_a):
        response = client.post("/api/kasa/expense-products", json={"name": "Kira", "category": "x"},
                               headers=headers_a)
        assert response.status_code == 400

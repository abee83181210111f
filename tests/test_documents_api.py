"""Tests for the expense, savings and category routes backed by the document store."""

LUNCH = {"amount": "12.50", "category_id": 1, "description": "Lunch"}
FUND = {"name": "Rainy day", "type": "emergency", "bank_name": "BPI", "goal_amount": "1000"}


class TestExpensesApi:
    def test_requires_session(self, client):
        response = client.get("/api/expenses")
        assert response.status_code == 401
        assert response.get_json()["error"] == "Unauthorized"

    def test_create_filter_and_total(self, auth_client):
        created = auth_client.post("/api/expenses", json=LUNCH)
        assert created.status_code == 201
        assert created.get_json()["category_name"] == "Food"
        auth_client.post("/api/expenses", json={"amount": "30", "category_id": 2, "description": "Taxi"})

        everything = auth_client.get("/api/expenses").get_json()
        assert everything["total"] == "42.50"
        assert everything["stats"]["top_category"]["category_name"] == "Transportation"

        filtered = auth_client.get("/api/expenses?category_id=1").get_json()
        assert [item["description"] for item in filtered["items"]] == ["Lunch"]
        assert filtered["total"] == "12.50"
        searched = auth_client.get("/api/expenses?search=tax").get_json()
        assert [item["description"] for item in searched["items"]] == ["Taxi"]

    def test_validation_error_shape(self, auth_client):
        response = auth_client.post("/api/expenses", json={**LUNCH, "amount": "-1", "description": ""})
        assert response.status_code == 400
        body = response.get_json()
        assert body["error"] == "Validation error"
        assert body["message"] == "Amount must be greater than 0"
        assert {"path": "description", "message": "Description is required"} in body["issues"]
        assert auth_client.get("/api/expenses").get_json()["items"] == []

    def test_requires_json_body(self, auth_client):
        response = auth_client.post("/api/expenses", data="amount=5")
        assert response.status_code == 400
        assert response.get_json()["message"] == "Request content must be application/json"

    def test_get_update_delete(self, auth_client):
        expense_id = auth_client.post("/api/expenses", json=LUNCH).get_json()["id"]
        other_id = auth_client.post("/api/expenses", json={**LUNCH, "description": "Dinner"}).get_json()["id"]

        assert auth_client.get(f"/api/expenses/{expense_id}").get_json()["description"] == "Lunch"
        updated = auth_client.put(f"/api/expenses/{expense_id}", json={"category_id": 3})
        assert updated.get_json()["category_name"] == "Entertainment"

        assert auth_client.delete(f"/api/expenses/{expense_id}").status_code == 204
        assert [item["id"] for item in auth_client.get("/api/expenses").get_json()["items"]] == [other_id]
        missing = auth_client.get(f"/api/expenses/{expense_id}")
        assert missing.status_code == 404
        assert missing.get_json()["error"] == "Record not found"

    def test_breakdown(self, auth_client):
        auth_client.post("/api/categories", json={"category_id": 1, "category_name": "Groceries"})
        auth_client.post("/api/expenses", json={**LUNCH, "amount": "75"})
        auth_client.post("/api/expenses", json={**LUNCH, "amount": "25", "category_id": 4})

        body = auth_client.get("/api/expenses/breakdown").get_json()

        assert body["total"] == "100.00"
        assert body["active_categories"] == 2
        assert body["user_categories"] == 1
        assert [(item["category_name"], item["percentage"]) for item in body["items"][:2]] == [
            ("Food", "75.0"),
            ("Bills", "25.0"),
        ]

    def test_expenses_are_per_user(self, login):
        alice = login("alice@example.com")
        bob = login("bob@example.com")
        expense_id = alice.post("/api/expenses", json=LUNCH).get_json()["id"]

        assert bob.get("/api/expenses").get_json()["items"] == []
        assert bob.delete(f"/api/expenses/{expense_id}").status_code == 404

    def test_my_expenses_action(self, auth_client):
        empty = auth_client.get("/api/me/expenses").get_json()
        assert empty == {"error": None, "message": "No expenses found", "data": []}
        auth_client.post("/api/expenses", json=LUNCH)
        body = auth_client.get("/api/me/expenses").get_json()
        assert body["message"] == "Expenses fetched successfully"
        assert len(body["data"]) == 1


class TestSavingsApi:
    def test_create_and_progress(self, auth_client):
        created = auth_client.post("/api/savings", json={**FUND, "current_amount": "250"})
        assert created.status_code == 201
        savings_id = created.get_json()["id"]

        body = auth_client.get("/api/savings").get_json()
        assert body["items"][0]["progress"] == "25.0"
        assert body["totals"]["total_remaining"] == "750.00"

        updated = auth_client.put(f"/api/savings/{savings_id}", json={"current_amount": "1500"})
        assert updated.get_json()["current_amount"] == "1500.00"
        assert auth_client.get("/api/savings").get_json()["items"][0]["progress"] == "100.0"

    def test_delete(self, auth_client):
        savings_id = auth_client.post("/api/savings", json=FUND).get_json()["id"]
        assert auth_client.delete(f"/api/savings/{savings_id}").status_code == 204
        assert auth_client.get(f"/api/savings/{savings_id}").status_code == 404

    def test_validation(self, auth_client):
        response = auth_client.post("/api/savings", json={**FUND, "goal_amount": "0"})
        assert response.status_code == 400
        assert response.get_json()["message"] == "Goal amount must be greater than 0"


class TestCategoriesApi:
    def test_catalog_is_public(self, client):
        body = client.get("/api/categories/catalog").get_json()
        assert [category["name"] for category in body["categories"]] == [
            "Food",
            "Transportation",
            "Entertainment",
            "Bills",
            "Savings",
            "Other",
        ]
        assert body["frequencies"]["per-week"] == "Weekly"
        assert body["income_sources"]["investment"] == "Investments"
        assert body["savings_colors"]["retirement"] == {"color": "#9b59b6", "background_color": "#f4ecf7"}

    def test_user_categories_crud(self, auth_client):
        created = auth_client.post("/api/categories", json={"category_id": 1, "category_name": "Groceries"})
        assert created.status_code == 201
        category_id = created.get_json()["id"]

        duplicate = auth_client.post("/api/categories", json={"category_id": 2, "category_name": "GROCERIES"})
        assert duplicate.status_code == 400
        assert duplicate.get_json()["message"] == "Category name must be unique"

        renamed = auth_client.put(f"/api/categories/{category_id}", json={"category_name": "Market"})
        assert renamed.get_json()["category_name"] == "Market"
        assert auth_client.delete(f"/api/categories/{category_id}").status_code == 204
        assert auth_client.get("/api/categories").get_json()["items"] == []

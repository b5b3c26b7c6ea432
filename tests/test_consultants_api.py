"""
Tests for the consultant endpoints.
"""

from bson import ObjectId


def add_consultant(client, name, **extra):
    response = client.post("/api/consultants", json={"name": name, **extra})
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateConsultant:
    def test_create(self, client):
        body = add_consultant(client, "  Dr. Mehta  ", specialization="Orthodontics")

        assert ObjectId.is_valid(body["_id"])
        assert body["name"] == "Dr. Mehta"
        assert body["specialization"] == "Orthodontics"
        assert body["active"] is True

    def test_missing_name(self, client):
        assert client.post("/api/consultants", json={"specialization": "Endo"}).status_code == 400

    def test_short_name(self, client):
        response = client.post("/api/consultants", json={"name": " X "})

        assert response.status_code == 400
        assert "at least 2 characters" in response.json()["errors"][0]["message"]

    def test_duplicate_name_after_trim(self, client):
        add_consultant(client, "Dr. Mehta")

        response = client.post("/api/consultants", json={"name": "  Dr. Mehta "})

        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]
        assert len(client.get("/api/consultants").json()) == 1


class TestListConsultants:
    def test_sorted_by_name(self, client):
        for name in ["Dr. Singh", "Dr. Anand", "Dr. Mehta"]:
            add_consultant(client, name)

        names = [item["name"] for item in client.get("/api/consultants").json()]

        assert names == ["Dr. Anand", "Dr. Mehta", "Dr. Singh"]

    def test_filter_active(self, client):
        add_consultant(client, "Dr. Anand")
        inactive = add_consultant(client, "Dr. Mehta")
        client.put(f"/api/consultants/{inactive['_id']}", json={"active": False})

        names = [item["name"] for item in client.get("/api/consultants", params={"active": "true"}).json()]

        assert names == ["Dr. Anand"]


class TestUpdateConsultant:
    def test_rename(self, client):
        consultant = add_consultant(client, "Dr. Mehta")

        response = client.put(f"/api/consultants/{consultant['_id']}", json={"name": "Dr. R. Mehta"})

        assert response.status_code == 200
        assert response.json()["name"] == "Dr. R. Mehta"

    def test_rename_to_own_name_allowed(self, client):
        consultant = add_consultant(client, "Dr. Mehta")

        response = client.put(f"/api/consultants/{consultant['_id']}", json={"name": "Dr. Mehta", "specialization": "Endo"})

        assert response.status_code == 200
        assert response.json()["specialization"] == "Endo"

    def test_rename_to_taken_name(self, client):
        add_consultant(client, "Dr. Anand")
        consultant = add_consultant(client, "Dr. Mehta")

        response = client.put(f"/api/consultants/{consultant['_id']}", json={"name": "Dr. Anand"})

        assert response.status_code == 400

    def test_rename_carries_over_to_expenses(self, client):
        consultant = add_consultant(client, "Dr. Mehta")
        client.post(
            "/api/expenses",
            json={"date": "2024-01-10", "category": "Consultants", "amount": 1500, "consultantName": "Dr. Mehta"},
        )
        client.post(
            "/api/expenses",
            json={"date": "2024-01-11", "category": "Rent", "amount": 100, "consultantName": "Dr. Mehta"},
        )

        response = client.put(f"/api/consultants/{consultant['_id']}", json={"name": "Dr. R. Mehta"})

        assert response.status_code == 200
        names = {item["category"]: item.get("consultantName") for item in client.get("/api/expenses").json()}
        assert names == {"Consultants": "Dr. R. Mehta", "Rent": None}
        deleted = client.delete(f"/api/consultants/{consultant['_id']}")
        assert deleted.json()["deactivated"] is True

    def test_failed_rename_leaves_expenses_alone(self, client):
        add_consultant(client, "Dr. Anand")
        consultant = add_consultant(client, "Dr. Mehta")
        client.post(
            "/api/expenses",
            json={"date": "2024-01-10", "category": "Consultants", "amount": 1500, "consultantName": "Dr. Mehta"},
        )

        response = client.put(f"/api/consultants/{consultant['_id']}", json={"name": "Dr. Anand"})

        assert response.status_code == 400
        assert client.get("/api/expenses").json()[0]["consultantName"] == "Dr. Mehta"

    def test_invalid_id(self, client):
        assert client.put("/api/consultants/xyz", json={"name": "Dr. Anand"}).status_code == 400

    def test_unknown_id(self, client):
        assert client.put(f"/api/consultants/{ObjectId()}", json={"name": "Dr. Anand"}).status_code == 404


class TestDeleteConsultant:
    def test_unreferenced_consultant_is_removed(self, client):
        consultant = add_consultant(client, "Dr. Mehta")

        response = client.delete(f"/api/consultants/{consultant['_id']}")

        assert response.status_code == 200
        assert response.json()["deactivated"] is False
        assert client.get("/api/consultants").json() == []

    def test_referenced_consultant_is_deactivated(self, client):
        consultant = add_consultant(client, "Dr. Mehta")
        client.post(
            "/api/expenses",
            json={"date": "2024-01-10", "category": "Consultants", "amount": 1500, "consultantName": "Dr. Mehta"},
        )

        response = client.delete(f"/api/consultants/{consultant['_id']}")

        assert response.status_code == 200
        assert response.json()["deactivated"] is True
        assert response.json()["consultant"]["active"] is False
        remaining = client.get("/api/consultants").json()
        assert len(remaining) == 1
        assert remaining[0]["active"] is False

    def test_same_name_in_other_category_does_not_count(self, client):
        consultant = add_consultant(client, "Dr. Mehta")
        client.post(
            "/api/expenses",
            json={"date": "2024-01-10", "category": "Rent", "amount": 100, "consultantName": "Dr. Mehta"},
        )

        response = client.delete(f"/api/consultants/{consultant['_id']}")

        assert response.json()["deactivated"] is False

    def test_unknown_id(self, client):
        assert client.delete(f"/api/consultants/{ObjectId()}").status_code == 404

    def test_invalid_id(self, client):
        assert client.delete("/api/consultants/abc").status_code == 400

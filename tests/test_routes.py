"""Tests for the HTTP routes."""

import pytest
from fastapi.testclient import TestClient

from familybudget.core.database import get_db
from familybudget.web.app import app


@pytest.fixture
def client(db_session):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def _headers(team):
    return {"X-Team-Id": str(team.team_id), "X-User-Id": str(team.user_id)}


def _create(client, team, **overrides):
    payload = {"amount": 120.5, "description": "Super", "date": "2024-05-03"}
    payload.update(overrides)
    return client.post("/transactions/", json=payload, headers=_headers(team))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_register_founds_team_and_joins_by_invite(client):
    response = client.post(
        "/team/register",
        json={"name": "Luis", "email": "luis@example.com", "password": "secret123", "team_name": "Casa"},
    )
    assert response.status_code == 201
    founder = response.json()
    assert founder["user"]["role"] == "admin"

    response = client.post(
        "/team/register",
        json={
            "name": "Eva",
            "email": "eva@example.com",
            "password": "secret123",
            "invite_code": founder["team"]["invite_code"],
        },
    )
    assert response.status_code == 201
    assert response.json()["user"]["role"] == "member"
    assert response.json()["team"]["id"] == founder["team"]["id"]


def test_register_duplicate_email_is_conflict(client, team):
    response = client.post(
        "/team/register",
        json={"name": "X", "email": "admin@lopez.mx", "password": "secret123", "team_name": "Otra"},
    )
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


def test_missing_context_headers_are_rejected(client, team):
    response = client.get("/transactions/", headers={"X-Team-Id": str(team.team_id)})
    assert response.status_code == 422


def test_user_of_other_team_is_not_found(client, team, other_team):
    response = client.get(
        "/transactions/",
        headers={"X-Team-Id": str(team.team_id), "X-User-Id": str(other_team.user_id)},
    )
    assert response.status_code == 404


def test_transaction_lifecycle(client, team):
    response = _create(client, team, category_id=team.categories["Food"])
    assert response.status_code == 201
    tx = response.json()
    assert tx["amount"] == 120.5
    assert tx["bank"] == "BBVA"
    assert tx["category_name"] == "Food"

    response = client.patch(
        f"/transactions/{tx['id']}",
        json={"description": "Supermercado", "expected_version": tx["version"]},
        headers=_headers(team),
    )
    assert response.status_code == 200
    assert response.json()["version"] == tx["version"] + 1

    response = client.patch(
        f"/transactions/{tx['id']}",
        json={"description": "Tarde", "expected_version": tx["version"]},
        headers=_headers(team),
    )
    assert response.status_code == 409

    assert client.delete(f"/transactions/{tx['id']}", headers=_headers(team)).status_code == 200
    listing = client.get("/transactions/", headers=_headers(team)).json()
    assert listing["total"] == 0

    history = client.get(f"/transactions/{tx['id']}/history", headers=_headers(team)).json()
    assert [entry["change_type"] for entry in history] == ["created", "updated", "deleted"]


def test_unconfigured_bank_returns_details(client, team):
    response = _create(client, team, bank="HSBC")

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["field"] == "bank"
    assert body["details"]["allowed"] == ["BBVA", "Banregio"]


def test_transaction_of_other_team_is_not_found(client, team, other_team):
    tx = _create(client, team).json()

    response = client.get(f"/transactions/{tx['id']}", headers=_headers(other_team))
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"

    response = client.delete(f"/transactions/{tx['id']}", headers=_headers(other_team))
    assert response.status_code == 404


def test_batch_reports_per_item_errors(client, team):
    response = client.post(
        "/transactions/batch",
        json={
            "transactions": [
                {"amount": 10, "description": "Uno", "date": "2024-05-03"},
                {"amount": 10, "description": "Dos", "date": "no-date"},
            ]
        },
        headers=_headers(team),
    )
    assert response.status_code == 200
    body = response.json()
    assert len(body["created"]) == 1
    assert body["errors"][0]["index"] == 1


def test_list_filters_by_search(client, team):
    _create(client, team, description="Gasolina")
    _create(client, team, description="Farmacia")

    response = client.get("/transactions/", params={"q": "gaso"}, headers=_headers(team))
    assert [tx["description"] for tx in response.json()["transactions"]] == ["Gasolina"]


def test_budget_analytics_endpoint(client, team):
    response = client.post(
        "/budgets/",
        json={
            "category_id": team.categories["Food"],
            "amount": 500,
            "period": "monthly",
            "start_date": "2024-05-01",
        },
        headers=_headers(team),
    )
    assert response.status_code == 201
    _create(client, team, amount=450, category_id=team.categories["Food"])

    response = client.get(
        "/budgets/analytics", params={"month": 5, "year": 2024}, headers=_headers(team)
    )
    assert response.status_code == 200
    row = response.json()["budgets"][0]
    assert row["percentage"] == 90.0
    assert row["status"] == "warning"
    assert row["remaining"] == 50.0


def test_budget_analytics_rejects_bad_month(client, team):
    response = client.get(
        "/budgets/analytics", params={"month": 13, "year": 2024}, headers=_headers(team)
    )
    assert response.status_code == 422


def test_clear_category_through_patch(client, team):
    tx = _create(client, team, category_id=team.categories["Food"]).json()

    response = client.patch(
        f"/transactions/{tx['id']}", json={"clear_category": True}, headers=_headers(team)
    )
    assert response.status_code == 200
    assert response.json()["category_id"] is None

    response = client.patch(f"/transactions/{tx['id']}", json={"bank": ""}, headers=_headers(team))
    assert response.status_code == 422
    assert response.json()["field"] == "bank"


def test_account_profile_and_password(client, team):
    response = client.put(
        "/team/me", json={"name": "Maria", "email": "maria@lopez.mx"}, headers=_headers(team)
    )
    assert response.status_code == 200
    assert response.json()["email"] == "maria@lopez.mx"
    assert client.get("/team/me", headers=_headers(team)).json()["user"]["name"] == "Maria"

    response = client.put(
        "/team/me/password",
        json={"current_password": "nope", "new_password": "newsecret"},
        headers=_headers(team),
    )
    assert response.status_code == 422
    assert response.json()["field"] == "current_password"

    response = client.put(
        "/team/me/password",
        json={"current_password": "secret123", "new_password": "newsecret"},
        headers=_headers(team),
    )
    assert response.json() == {"message": "Password updated"}


def test_profile_email_taken_is_conflict(client, team, other_team):
    response = client.put("/team/me", json={"email": "admin@perez.mx"}, headers=_headers(team))
    assert response.status_code == 409


def test_deactivate_account(client, team):
    response = client.request(
        "DELETE", "/team/me", json={"password": "wrong"}, headers=_headers(team)
    )
    assert response.status_code == 422

    response = client.request(
        "DELETE", "/team/me", json={"password": "secret123"}, headers=_headers(team)
    )
    assert response.status_code == 200
    assert response.json() == {"message": "Account deactivated"}
    assert client.get("/team/me", headers=_headers(team)).status_code == 422

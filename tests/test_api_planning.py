from __future__ import annotations

import datetime as dt

import httpx
import pytest

from budget_pay.config import AssistantConfig


def _set_income(client, headers, income=30000, goal=6000):
    client.patch("/api/v1/users/me", headers=headers, json={"monthly_income": income, "savings_goal_amount": goal})


def test_recurring_expense_pay_advances_due_date(client, auth_headers):
    resp = client.post("/api/v1/expenses/", headers=auth_headers,
                       json={"name": "Gym", "amount": 500, "frequency_type": "weekly", "next_due_date": "2024-05-10"})
    assert resp.status_code == 201
    expense = resp.get_json()

    paid = client.post(f"/api/v1/expenses/{expense['id']}/pay", headers=auth_headers)
    assert paid.status_code == 201
    assert paid.get_json()["description"] == "Gym"
    assert paid.get_json()["source"] == "recurring"

    listed = client.get("/api/v1/expenses/", headers=auth_headers).get_json()
    assert listed[0]["next_due_date"] == "2024-05-17"


def test_one_time_expense_deactivates_after_payment(client, auth_headers):
    expense = client.post("/api/v1/expenses/", headers=auth_headers,
                          json={"name": "Visa fee", "amount": 80, "frequency_type": "one_time"}).get_json()
    client.post(f"/api/v1/expenses/{expense['id']}/pay", headers=auth_headers)
    assert client.get("/api/v1/expenses/", headers=auth_headers).get_json()[0]["is_active"] is False
    assert client.post(f"/api/v1/expenses/{expense['id']}/pay", headers=auth_headers).status_code == 422


def test_expense_validation(client, auth_headers):
    resp = client.post("/api/v1/expenses/", headers=auth_headers,
                       json={"name": "Water", "amount": 40, "frequency_type": "custom"})
    assert resp.status_code == 422
    assert resp.get_json()["detail"][0]["msg"] == "Custom frequency requires an interval in days."
    bad = client.post("/api/v1/expenses/", headers=auth_headers,
                      json={"name": "Water", "amount": 40, "frequency_type": "hourly"})
    assert bad.status_code == 422


def test_goals_crud_and_progress(client, auth_headers):
    deadline = (dt.date.today() + dt.timedelta(days=10)).isoformat()
    goal = client.post("/api/v1/goals/", headers=auth_headers,
                       json={"name": "Laptop", "target_amount": 800, "deadline": deadline, "saved_amount": 200})
    assert goal.status_code == 201
    body = goal.get_json()
    assert body["progress_percentage"] == 25
    assert body["days_left"] == 10

    updated = client.patch(f"/api/v1/goals/{body['id']}", headers=auth_headers, json={"saved_amount": 800}).get_json()
    assert updated["progress_percentage"] == 100
    assert client.post("/api/v1/goals/", headers=auth_headers, json={"target_amount": -5}).status_code == 422
    assert client.delete(f"/api/v1/goals/{body['id']}", headers=auth_headers).status_code == 204


def test_goal_progress_periods(client, auth_headers):
    _set_income(client, auth_headers)
    yearly = client.get("/api/v1/goals/progress?period=year", headers=auth_headers).get_json()
    assert yearly["period"] == "yearly"
    assert yearly["target_amount"] == 72000
    assert yearly["yearly_plan"]["months_remaining"] == 12

    daily = client.get("/api/v1/goals/progress?period=daily", headers=auth_headers).get_json()
    assert daily["days_until_period_end"] == 0
    assert daily["target_amount"] == pytest.approx(200)


def test_dashboard_summary(client, auth_headers):
    _set_income(client, auth_headers)
    client.post("/api/v1/transactions/", headers=auth_headers, json={"description": "Snacks", "amount": 150})

    monthly = client.get("/api/v1/dashboard/summary", headers=auth_headers).get_json()
    assert monthly["period"] == "monthly"
    assert monthly["summary"]["available_budget"] == 24000
    assert monthly["summary"]["total_spent"] == 150
    assert len(monthly["charts"]["daily_spending"]) == 8
    assert monthly["charts"]["daily_spending"][-1]["amount"] == 150
    assert len(monthly["charts"]["trends"]) == 4
    housing = next(row for row in monthly["charts"]["allocation"] if row["name"] == "Housing")
    assert housing["amount"] == 7200
    assert monthly["expense_overview"]["categories"][-1]["name"] == "Uncategorized"

    weekly = client.get("/api/v1/dashboard/summary?period=week", headers=auth_headers).get_json()
    assert weekly["period_label"] == "Weekly"
    assert weekly["summary"]["daily_budget"] == pytest.approx(800)


def test_notifications_state(client, auth_headers):
    feed = client.get("/api/v1/notifications/", headers=auth_headers).get_json()
    ids = [n["id"] for n in feed["notifications"]]
    assert len(ids) >= 2
    assert feed["unread_count"] == len(ids)
    first, second = ids[0], ids[1]

    assert client.post(f"/api/v1/notifications/{first}/read", headers=auth_headers).status_code == 204
    assert client.delete(f"/api/v1/notifications/{second}", headers=auth_headers).status_code == 204
    feed = client.get("/api/v1/notifications/", headers=auth_headers).get_json()
    ids = [n["id"] for n in feed["notifications"]]
    assert second not in ids
    assert next(n for n in feed["notifications"] if n["id"] == first)["is_read"] is True

    client.post("/api/v1/notifications/read-all", headers=auth_headers)
    assert client.get("/api/v1/notifications/?unread_only=1", headers=auth_headers).get_json()["unread_count"] == 0


def test_report_export(client, auth_headers):
    _set_income(client, auth_headers)
    csv_resp = client.get("/api/v1/reports/export?format=csv", headers=auth_headers)
    assert csv_resp.status_code == 200
    assert csv_resp.mimetype == "text/csv"
    assert csv_resp.get_data(as_text=True).splitlines()[0] == "Section,Item,Metric,Value"

    json_resp = client.get("/api/v1/reports/export?format=json&period=weekly", headers=auth_headers).get_json()
    assert json_resp["period"] == "weekly"
    assert client.get("/api/v1/reports/export?format=pdf", headers=auth_headers).status_code == 422


def test_chatbot(app, client, auth_headers):
    unavailable = client.post("/api/v1/chatbot/ask", headers=auth_headers, json={"query": "How am I doing?"})
    assert unavailable.status_code == 503

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": [{"message": {"content": "You have $500 left."}}]})

    app.config["ASSISTANT"] = AssistantConfig(api_key="key")
    app.config["ASSISTANT_TRANSPORT"] = httpx.MockTransport(handler)
    resp = client.post("/api/v1/chatbot/ask", headers=auth_headers, json={"query": "How am I doing?"})
    assert resp.status_code == 200
    assert resp.get_json() == {"response": "You have ₹500 left."}
    assert client.post("/api/v1/chatbot/ask", headers=auth_headers, json={"query": " "}).status_code == 422

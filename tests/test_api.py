"""
API tests for the HTTP boundary: routing, auth, role checks and error mapping.
"""

from datetime import datetime

import pytest

from boxxpilot.auth import session_key_for
from boxxpilot.models import Notification, Role

SIGNATURE = "data:image/png;base64,iVBORw0KGgo="


def create_quotation(client, headers, customer_id, **fields):
    payload = {"customerId": customer_id, "movingDate": "2025-06-01", "startTime": "09:00"}
    payload.update(fields)
    response = client.post("/quotations", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def sent(api_client, owner_headers, customer):
    quotation = create_quotation(api_client, owner_headers, customer.id, estimatedHours=4)
    response = api_client.patch(
        f"/quotations/{quotation['id']}", json={"validityDays": 30}, headers=owner_headers
    )
    assert response.status_code == 200
    response = api_client.post(f"/quotations/{quotation['id']}/send", headers=owner_headers)
    assert response.status_code == 200, response.text
    return response.json()


@pytest.fixture
def confirmed(api_client, sent, dispatcher_headers):
    response = api_client.post(f"/jobs/{sent['jobId']}/confirm", headers=dispatcher_headers)
    assert response.status_code == 200
    return response.json()


@pytest.mark.api
class TestAuth:
    def test_health_is_public(self, api_client):
        assert api_client.get("/health").json() == {"status": "healthy"}

    def test_missing_token(self, api_client):
        assert api_client.get("/jobs").status_code in (401, 403)

    def test_unknown_token(self, api_client):
        response = api_client.get("/jobs", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_employee_cannot_confirm(self, api_client, sent, operative_headers):
        response = api_client.post(f"/jobs/{sent['jobId']}/confirm", headers=operative_headers)
        assert response.status_code == 403


@pytest.mark.api
class TestQuotationEndpoints:
    def test_create_list_get(self, api_client, owner_headers, customer):
        created = create_quotation(api_client, owner_headers, customer.id, estimatedHours=4)

        assert created["status"] == "DRAFT"
        assert created["startAt"] == "2025-06-01T09:00:00"
        assert created["endAt"] == "2025-06-01T13:00:00"
        assert created["customer"]["fullName"] == "Jane Tremblay"

        listed = api_client.get("/quotations", headers=owner_headers).json()
        assert [q["id"] for q in listed] == [created["id"]]

        fetched = api_client.get(f"/quotations/{created['id']}", headers=owner_headers).json()
        assert fetched["quoteNumber"] == 1001

    def test_create_without_customer(self, api_client, owner_headers):
        response = api_client.post("/quotations", json={}, headers=owner_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    def test_bad_start_time(self, api_client, owner_headers, customer):
        response = api_client.post(
            "/quotations",
            json={"customerId": customer.id, "startTime": "9h00"},
            headers=owner_headers,
        )
        assert response.status_code == 422

    def test_oversized_schedule_inputs(self, api_client, owner_headers, customer):
        quotation = create_quotation(api_client, owner_headers, customer.id, estimatedHours=4)

        too_long = api_client.patch(
            f"/quotations/{quotation['id']}", json={"estimatedHours": 1e8}, headers=owner_headers
        )
        too_valid = api_client.patch(
            f"/quotations/{quotation['id']}",
            json={"validityDays": 10_000_000},
            headers=owner_headers,
        )

        assert too_long.status_code == 422
        assert too_valid.status_code == 422
        fetched = api_client.get(f"/quotations/{quotation['id']}", headers=owner_headers).json()
        assert fetched["endAt"] == "2025-06-01T13:00:00"
        assert fetched["validityDays"] is None

    def test_send_without_schedule(self, api_client, owner_headers, customer):
        quotation = create_quotation(api_client, owner_headers, customer.id)
        api_client.patch(
            f"/quotations/{quotation['id']}", json={"validityDays": 14}, headers=owner_headers
        )

        response = api_client.post(f"/quotations/{quotation['id']}/send", headers=owner_headers)

        assert response.status_code == 412
        assert response.json() == {
            "detail": "missing schedule",
            "error": "MissingScheduleError",
            "quotationId": quotation["id"],
        }

    def test_send_response(self, sent):
        assert sent["success"] is True
        assert sent["quoteNumber"] == 1001
        assert sent["expiresAt"] == "2025-06-19T12:00:00"
        assert "/public/quotation/" in sent["link"]

    def test_edit_after_send(self, api_client, owner_headers, sent):
        quotation_id = api_client.get("/quotations", headers=owner_headers).json()[0]["id"]

        response = api_client.patch(
            f"/quotations/{quotation_id}", json={"workers": 3}, headers=owner_headers
        )

        assert response.status_code == 409
        assert response.json()["error"] == "InvalidStateError"

    def test_delete_draft(self, api_client, owner_headers, customer):
        quotation = create_quotation(api_client, owner_headers, customer.id)

        assert api_client.delete(f"/quotations/{quotation['id']}", headers=owner_headers).status_code == 200
        assert api_client.get(f"/quotations/{quotation['id']}", headers=owner_headers).status_code == 404


@pytest.mark.api
class TestPublicQuotation:
    def test_view_sign_and_resign(self, api_client, sent):
        token = sent["link"].rsplit("/", 1)[-1]

        view = api_client.get(f"/public/quotation/{token}")
        assert view.status_code == 200
        assert view.json()["customerName"] == "Jane Tremblay"

        signed = api_client.post(f"/public/quotation/{token}/sign", json={"signature": SIGNATURE})
        assert signed.json()["status"] == "SIGNED"

        again = api_client.post(f"/public/quotation/{token}/sign", json={"signature": SIGNATURE})
        assert again.status_code == 200

        rejected = api_client.post(f"/public/quotation/{token}/reject", json={})
        assert rejected.status_code == 409
        assert rejected.json()["error"] == "AlreadyResolvedError"

    def test_sign_expired(self, api_client, sent, clock):
        token = sent["link"].rsplit("/", 1)[-1]
        clock.set(datetime(2025, 6, 19, 12, 0))

        response = api_client.post(f"/public/quotation/{token}/sign", json={"signature": SIGNATURE})

        assert response.status_code == 410
        assert response.json()["error"] == "ExpiredError"

    def test_unknown_token(self, api_client):
        assert api_client.get("/public/quotation/does-not-exist").status_code == 404


@pytest.mark.api
class TestJobLifecycle:
    def test_full_day(self, api_client, confirmed, clock, operative_headers, owner_headers):
        job_id = confirmed["id"]
        assert confirmed["status"] == "CONFIRMED"
        assert confirmed["scheduledStart"] == "2025-06-01T09:00:00"
        assert confirmed["customerName"] == "Jane Tremblay"

        clock.set(datetime(2025, 6, 1, 8, 44))
        too_early = api_client.post(f"/jobs/{job_id}/start", headers=operative_headers)
        assert too_early.status_code == 412
        body = too_early.json()
        assert body["error"] == "NotYetStartable"
        assert body["opensAt"] == "2025-06-01T08:45:00"
        assert body["closesAt"] == "2025-06-01T10:00:00"

        window = api_client.get(f"/jobs/{job_id}/start-window", headers=operative_headers).json()
        assert window["verdict"] == "TOO_EARLY"
        assert window["secondsUntilOpen"] == 60

        clock.set(datetime(2025, 6, 1, 9, 0))
        started = api_client.post(f"/jobs/{job_id}/start", headers=operative_headers)
        assert started.status_code == 200
        assert started.json()["actualStart"] == "2025-06-01T09:00:00"

        clock.set(datetime(2025, 6, 1, 12, 0))
        timer = api_client.get(f"/jobs/{job_id}/timer", headers=operative_headers).json()
        assert timer["elapsedSeconds"] == 10800
        assert timer["remainingSeconds"] == 3600

        clock.set(datetime(2025, 6, 1, 13, 30))
        timer = api_client.get(f"/jobs/{job_id}/timer", headers=operative_headers).json()
        assert timer["overrun"] is True
        assert timer["overrunSeconds"] == 1800
        assert timer["display"] == "-00:30:00"

        ended = api_client.post(f"/jobs/{job_id}/end", headers=operative_headers)
        assert ended.json()["status"] == "COMPLETED"
        again = api_client.post(f"/jobs/{job_id}/end", headers=operative_headers)
        assert again.status_code == 200
        assert again.json()["actualEnd"] == ended.json()["actualEnd"]

        gone = api_client.get(f"/jobs/{job_id}/timer", headers=operative_headers)
        assert gone.status_code == 409

    def test_timers_are_per_session(self, api_client, confirmed, clock, operative_headers, owner_headers):
        job_id = confirmed["id"]
        clock.set(datetime(2025, 6, 1, 9, 0))
        api_client.post(f"/jobs/{job_id}/start", headers=operative_headers)

        sessions = api_client.app.state.timer_sessions
        assert job_id in sessions.registry_for(session_key_for("employee-token"))
        assert job_id not in sessions.registry_for(session_key_for("owner-token"))

        api_client.get(f"/jobs/{job_id}/timer", headers=owner_headers)
        assert job_id in sessions.registry_for(session_key_for("owner-token"))

        assert api_client.delete("/jobs/timers", headers=operative_headers).status_code == 200
        assert job_id not in sessions.registry_for(session_key_for("employee-token"))

    def test_session_key_does_not_expose_token(self):
        key = session_key_for("employee-token")

        assert "employee" not in key
        assert key == session_key_for("employee-token")
        assert key != session_key_for("owner-token")

    def test_status_patch(self, api_client, sent, dispatcher_headers):
        response = api_client.patch(
            f"/jobs/{sent['jobId']}/status", json={"status": "CANCELLED"}, headers=dispatcher_headers
        )
        assert response.json()["status"] == "CANCELLED"

        response = api_client.patch(
            f"/jobs/{sent['jobId']}/status", json={"status": "CONFIRMED"}, headers=dispatcher_headers
        )
        assert response.status_code == 409

    def test_list_filter_and_calendar(self, api_client, confirmed, owner_headers):
        jobs = api_client.get("/jobs?status=CONFIRMED", headers=owner_headers).json()
        assert [job["id"] for job in jobs] == [confirmed["id"]]
        assert api_client.get("/jobs?status=PENDING", headers=owner_headers).json() == []
        assert api_client.get("/jobs?status=BOGUS", headers=owner_headers).status_code == 400

        day = api_client.get("/calendar?date=2025-06-01", headers=owner_headers).json()
        assert day["date"] == "2025-06-01"
        assert [job["id"] for job in day["jobs"]] == [confirmed["id"]]
        assert api_client.get("/calendar?date=2025-06-02", headers=owner_headers).json()["jobs"] == []

    def test_crew(self, api_client, sent, employees, owner_headers):
        job_id = sent["jobId"]

        available = api_client.get(f"/jobs/{job_id}/available-employees", headers=owner_headers).json()
        assert {e["fullName"] for e in available} == {"Alex Roy", "Sam Gagnon", "Chris Côté"}

        response = api_client.post(
            f"/jobs/{job_id}/employees",
            json={"employeeId": employees[0].id, "role": "DRIVER"},
            headers=owner_headers,
        )
        assert response.json()["crew"] == [
            {"employeeId": employees[0].id, "fullName": "Alex Roy", "role": "DRIVER"}
        ]

        response = api_client.delete(f"/jobs/{job_id}/employees/{employees[0].id}", headers=owner_headers)
        assert response.json()["crew"] == []


@pytest.mark.api
class TestSweepAndFeed:
    def test_manual_sweep_and_notifications(
        self, api_client, confirmed, clock, owner_headers, db_session, company
    ):
        clock.set(datetime(2025, 6, 1, 13, 5))

        result = api_client.post("/status/automation/run", headers=owner_headers).json()
        assert result["missed"] == 1
        assert result["total_updated"] == 1

        again = api_client.post("/status/automation/run", headers=owner_headers).json()
        assert again["missed"] == 0

        job = api_client.get(f"/jobs/{confirmed['id']}", headers=owner_headers).json()
        assert job["status"] == "MISSED"
        assert job["resolution"] == "SWEEP"

        analytics = api_client.get("/status/analytics", headers=owner_headers).json()
        assert analytics["missed"] == 1
        assert analytics["confirmed"] == 0

    def test_notification_feed(self, api_client, db_session, company, owner_headers, operative_headers):
        db_session.add_all(
            [
                Notification(company_id=company.id, type="JOB_MISSED", recipient_role=Role.OWNER),
                Notification(company_id=company.id, type="JOB_CONFIRMED", recipient_role=Role.EMPLOYEE),
            ]
        )
        db_session.commit()

        feed = api_client.get("/notifications", headers=owner_headers).json()
        assert [n["type"] for n in feed] == ["JOB_MISSED"]
        assert api_client.get("/notifications/unread-count", headers=owner_headers).json() == {
            "unread_count": 1
        }

        response = api_client.patch(f"/notifications/{feed[0]['id']}/read", headers=owner_headers)
        assert response.status_code == 200
        assert api_client.get("/notifications/unread-count", headers=owner_headers).json() == {
            "unread_count": 0
        }

        crew_feed = api_client.get("/notifications", headers=operative_headers).json()
        assert [n["type"] for n in crew_feed] == ["JOB_CONFIRMED"]

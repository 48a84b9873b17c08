from __future__ import annotations

import datetime as dt
from urllib.parse import parse_qs

import pytest

from hubcards.models.button import Button, QueryParam
from hubcards.models.card import Card
from hubspot_fakes import API_BASE, TOKEN_URL, json_body, make_account

CONTACT_URL = f"{API_BASE}/crm/v3/objects/contacts/501"
HOOK_URL = "https://hooks.example.org/contacts/501"

CONTACT = {
    "id": "501",
    "properties": {"email": "ada@example.com", "firstname": "Ada", "lastname": "Lovelace"},
}


def make_button(button_id: str = "btn-1", **fields) -> Button:
    defaults = dict(
        button_text="Sync contact",
        api_url="https://hooks.example.org/contacts/{{objectId}}",
        api_method="POST",
        api_body_template='{"email": "{{object.email}}", "hub": "{{tenantId}}"}',
    )
    defaults.update(fields)
    return Button(id=button_id, **defaults)


def execute(client, **overrides):
    payload = {
        "action_id": "btn-1",
        "tenant_id": "4242",
        "target_object_id": 501,
        "target_object_type": "0-1",
    }
    payload.update(overrides)
    return client.post("/api/actions/execute", json=payload)


@pytest.fixture
def connected(seed):
    seed(make_account())


class TestExecuteAction:
    """Tests for POST /api/actions/execute."""

    def test_external_target_gets_rendered_body_without_token(self, client, seed, connected, fake_hubspot):
        seed(make_button())
        fake_hubspot.add("GET", CONTACT_URL, json_body=CONTACT)
        fake_hubspot.add("POST", HOOK_URL, json_body={"ok": True})

        response = execute(client)

        assert response.status_code == 200
        assert response.json() == {"message": "Button action executed successfully", "response": {"ok": True}}

        (fetch,) = fake_hubspot.calls("GET", CONTACT_URL)
        assert fetch.headers["authorization"] == "Bearer current-access"

        (dispatched,) = fake_hubspot.calls("POST", HOOK_URL)
        assert "authorization" not in dispatched.headers
        assert dispatched.headers["content-type"] == "application/json"
        assert json_body(dispatched) == {"email": "ada@example.com", "hub": "4242"}

    def test_hubspot_target_gets_bearer_token(self, client, seed, connected, fake_hubspot):
        seed(make_button(
            api_url=f"{API_BASE}/crm/v3/objects/contacts/{{{{objectId}}}}",
            api_method="PATCH",
            api_body_template='{"properties": {"lifecyclestage": "customer"}}',
        ))
        fake_hubspot.add("GET", CONTACT_URL, json_body=CONTACT)
        fake_hubspot.add("PATCH", CONTACT_URL, json_body={"id": "501"})

        response = execute(client)

        assert response.status_code == 200
        (dispatched,) = fake_hubspot.calls("PATCH", CONTACT_URL)
        assert dispatched.headers["authorization"] == "Bearer current-access"
        assert json_body(dispatched) == {"properties": {"lifecyclestage": "customer"}}

    def test_unsupported_object_type_renders_empty_object_values(self, client, seed, connected, fake_hubspot):
        seed(make_button(api_body_template='{"email": "{{object.email}}", "id": "{{objectId}}"}'))
        fake_hubspot.add("POST", HOOK_URL, json_body={"ok": True})

        response = execute(client, target_object_type="0-99")

        assert response.status_code == 200
        assert [r.url.host for r in fake_hubspot.requests] == ["hooks.example.org"]
        assert json_body(fake_hubspot.requests[0]) == {"email": "", "id": "501"}

    def test_get_action_sends_query_string_and_no_body(self, client, seed, connected, fake_hubspot):
        seed(make_button(
            api_url="https://hooks.example.org/lookup",
            api_method="GET",
            api_body_template='{"never": "sent"}',
            query_params=[
                QueryParam(key="email", value="{{object.email}}", position=0),
                QueryParam(key="hub", value="{{tenantId}}", position=1),
            ],
        ))
        fake_hubspot.add("GET", CONTACT_URL, json_body=CONTACT)
        fake_hubspot.add("GET", "https://hooks.example.org/lookup", json_body=[])

        response = execute(client)

        assert response.status_code == 200
        (dispatched,) = fake_hubspot.calls("GET", "https://hooks.example.org/lookup")
        assert dispatched.content == b""
        query = parse_qs(dispatched.url.query.decode())
        assert query == {"email": ["ada@example.com"], "hub": ["4242"]}

    def test_action_without_target_object(self, client, seed, connected, fake_hubspot):
        seed(make_button(api_url="https://hooks.example.org/ping", api_body_template='{"hub": "{{tenantId}}"}'))
        fake_hubspot.add("POST", "https://hooks.example.org/ping", status=204)

        response = client.post("/api/actions/execute", json={"action_id": "btn-1", "tenant_id": "4242"})

        assert response.status_code == 200
        assert response.json()["response"] is None
        assert json_body(fake_hubspot.requests[0]) == {"hub": "4242"}

    def test_plain_text_response_is_returned_as_text(self, client, seed, connected, fake_hubspot):
        seed(make_button())
        fake_hubspot.add("GET", CONTACT_URL, json_body=CONTACT)
        fake_hubspot.add("POST", HOOK_URL, text="queued")

        assert execute(client).json()["response"] == "queued"

    def test_expired_token_is_refreshed_before_dispatch(self, client, seed, fake_hubspot, fetch_accounts):
        seed(
            make_account(expires_at=dt.datetime.now(dt.timezone.utc) - dt.timedelta(minutes=1)),
            make_button(),
        )
        fake_hubspot.add_token_response(access_token="new-access")
        fake_hubspot.add("GET", CONTACT_URL, json_body=CONTACT)
        fake_hubspot.add("POST", HOOK_URL, json_body={"ok": True})

        response = execute(client)

        assert response.status_code == 200
        assert len(fake_hubspot.calls("POST", TOKEN_URL)) == 1
        (fetch,) = fake_hubspot.calls("GET", CONTACT_URL)
        assert fetch.headers["authorization"] == "Bearer new-access"
        assert fetch_accounts()[0].access_token == "new-access"

    def test_failed_object_fetch_skips_dispatch(self, client, seed, connected, fake_hubspot):
        seed(make_button())
        fake_hubspot.add("GET", CONTACT_URL, status=404, json_body={"message": "resource not found"})

        response = execute(client)

        assert response.status_code == 502
        assert "resource not found" in response.json()["error"]
        assert fake_hubspot.calls("POST", HOOK_URL) == []

    def test_downstream_failure(self, client, seed, connected, fake_hubspot):
        seed(make_button())
        fake_hubspot.add("GET", CONTACT_URL, json_body=CONTACT)
        fake_hubspot.add("POST", HOOK_URL, status=500, text="boom")

        response = execute(client)

        assert response.status_code == 502
        assert response.json() == {"error": "External API call failed: 500 - boom"}

    def test_delete_action_sends_no_body(self, client, seed, connected, fake_hubspot):
        seed(make_button(
            api_url="https://hooks.example.org/contacts/{{objectId}}",
            api_method="DELETE",
            api_body_template='{"email": "{{object.email}}"}',
        ))
        fake_hubspot.add("GET", CONTACT_URL, json_body=CONTACT)
        fake_hubspot.add("DELETE", HOOK_URL, status=204)

        response = execute(client)

        assert response.status_code == 200
        (dispatched,) = fake_hubspot.calls("DELETE", HOOK_URL)
        assert dispatched.content == b""

    def test_unreachable_target(self, client, seed, connected, fake_hubspot):
        seed(make_button())
        fake_hubspot.add("GET", CONTACT_URL, json_body=CONTACT)
        fake_hubspot.add_connect_error("POST", HOOK_URL)

        response = execute(client)

        assert response.status_code == 502
        assert response.json() == {"error": "External API call failed: connection refused"}
        assert response.headers["access-control-allow-origin"] == "*"

    def test_unknown_tenant(self, client, seed, fake_hubspot):
        seed(make_button())

        response = execute(client, tenant_id="999")

        assert response.status_code == 404
        assert response.json() == {"error": "HubSpot integration not found for hub_id: 999"}
        assert fake_hubspot.requests == []

    def test_unknown_action(self, client, connected):
        response = execute(client, action_id="missing")

        assert response.status_code == 404
        assert "missing" in response.json()["error"]

    def test_button_without_api_action(self, client, seed, connected):
        seed(make_button(api_url=None, api_method=None))

        assert execute(client).status_code == 400

    def test_missing_action_id(self, client, fake_hubspot):
        response = client.post("/api/actions/execute", json={"tenant_id": "4242"})

        assert response.status_code == 400
        assert "action_id" in response.json()["error"]
        assert fake_hubspot.requests == []

    def test_preflight(self, client):
        response = client.options("/api/actions/execute")

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "content-type" in response.headers["access-control-allow-headers"]
        assert "POST" in response.headers["access-control-allow-methods"]

    def test_cors_headers_on_errors(self, client):
        response = client.post("/api/actions/execute", json={})

        assert response.status_code == 400
        assert response.headers["access-control-allow-origin"] == "*"


class TestListButtons:
    """Tests for GET /api/buttons."""

    def test_lists_buttons_newest_first_with_card_title(self, client, seed):
        now = dt.datetime.now(dt.timezone.utc)
        seed(
            Card(id="card-1", title="Sales"),
            make_button("btn-old", card_id="card-1", created_at=now - dt.timedelta(days=1)),
            make_button(
                "btn-new",
                api_method="GET",
                created_at=now,
                query_params=[QueryParam(key="id", value="{{objectId}}", position=0)],
            ),
        )

        response = client.get("/api/buttons")

        assert response.status_code == 200
        data = response.json()["data"]
        assert [button["id"] for button in data] == ["btn-new", "btn-old"]
        assert data[0]["card_title"] is None
        assert data[0]["query_params"] == [{"key": "id", "value": "{{objectId}}"}]
        assert data[1]["card_title"] == "Sales"
        assert data[1]["api_method"] == "POST"

    def test_empty(self, client):
        assert client.get("/api/buttons").json() == {"data": []}

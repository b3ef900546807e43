"""Tests for the rules HTTP endpoints"""

import uuid

import pytest
from fastapi.testclient import TestClient

from rules_engine.api.app import create_app
from rules_engine.engine import Engine

from conftest import TENANT_ID, DEVICE_A


@pytest.fixture
def engine(config):
    engine = Engine(config)
    yield engine
    engine.close()


@pytest.fixture
def client(engine):
    # Not used as a context manager: the evaluation thread stays off
    return TestClient(create_app(engine))


def rule_body(**overrides):
    body = {
        "tenantId": TENANT_ID,
        "deviceId": DEVICE_A,
        "type": "temperature",
        "op": ">",
        "threshold": 28.0,
        "cooldownSeconds": 300,
    }
    body.update(overrides)
    return body


class TestCreateRule:
    """Test POST /rules"""

    def test_create(self, client):
        response = client.post("/rules", json=rule_body(message="Too hot"))

        assert response.status_code == 201
        data = response.json()
        assert response.headers["location"] == f"/rules/{data['id']}"
        assert data["tenantId"] == TENANT_ID
        assert data["deviceId"] == DEVICE_A
        assert data["op"] == ">"
        assert data["threshold"] == 28.0
        assert data["enabled"] is True
        assert data["message"] == "Too hot"
        assert data["updatedAt"] is None

    def test_defaults(self, client):
        """Test omitted device, cooldown and enabled"""
        body = rule_body()
        del body["deviceId"], body["cooldownSeconds"]

        data = client.post("/rules", json=body).json()

        assert data["deviceId"] is None
        assert data["cooldownSeconds"] == 300
        assert data["enabled"] is True

    def test_invalid_operator(self, client):
        """Test unknown comparator is rejected with 400"""
        response = client.post("/rules", json=rule_body(op="=>"))

        assert response.status_code == 400
        assert "Invalid operator" in response.json()["detail"]
        assert client.get("/rules").json() == []

    def test_malformed_tenant(self, client):
        response = client.post("/rules", json=rule_body(tenantId="innovia"))
        assert response.status_code == 422

    @pytest.mark.parametrize("cooldown", [10 ** 11, 10 ** 20])
    def test_cooldown_out_of_range(self, client, cooldown):
        """Test oversized cooldowns are a client error, not a server error"""
        response = client.post("/rules", json=rule_body(cooldownSeconds=cooldown))

        assert response.status_code == 422
        assert client.get("/rules").json() == []


class TestReadRules:
    """Test GET /rules and GET /rules/{id}"""

    def test_list_newest_first(self, client):
        first = client.post("/rules", json=rule_body(threshold=1)).json()
        second = client.post("/rules", json=rule_body(threshold=2)).json()

        ids = [r["id"] for r in client.get("/rules").json()]
        assert ids == [second["id"], first["id"]]

    def test_get(self, client):
        created = client.post("/rules", json=rule_body()).json()

        response = client.get(f"/rules/{created['id']}")
        assert response.status_code == 200
        assert response.json() == created

    def test_get_missing(self, client):
        assert client.get(f"/rules/{uuid.uuid4()}").status_code == 404


class TestUpdateRule:
    """Test PUT /rules/{id} and toggle"""

    def test_update(self, client):
        created = client.post("/rules", json=rule_body(message="old", cooldownSeconds=60)).json()

        response = client.put(f"/rules/{created['id']}", json={
            "type": "humidity",
            "op": "<=",
            "threshold": 30.0,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "humidity"
        assert data["op"] == "<="
        assert data["threshold"] == 30.0
        # Omitted cooldown and enabled are kept, omitted message is cleared
        assert data["cooldownSeconds"] == 60
        assert data["enabled"] is True
        assert data["message"] is None
        assert data["deviceId"] == DEVICE_A
        assert data["tenantId"] == TENANT_ID
        assert data["updatedAt"] is not None

    def test_update_device_scope(self, client):
        created = client.post("/rules", json=rule_body()).json()

        data = client.put(f"/rules/{created['id']}", json={
            "deviceId": None, "type": "temperature", "op": ">", "threshold": 28.0,
        }).json()

        assert data["deviceId"] is None

    def test_update_invalid_operator(self, client):
        created = client.post("/rules", json=rule_body()).json()

        response = client.put(f"/rules/{created['id']}", json={"type": "t", "op": "<>", "threshold": 1})
        assert response.status_code == 400

    def test_update_cooldown_out_of_range(self, client):
        created = client.post("/rules", json=rule_body()).json()

        response = client.put(f"/rules/{created['id']}", json={
            "type": "temperature", "op": ">", "threshold": 28.0, "cooldownSeconds": 10 ** 20,
        })

        assert response.status_code == 422
        assert client.get(f"/rules/{created['id']}").json()["cooldownSeconds"] == 300

    def test_update_missing(self, client):
        response = client.put(f"/rules/{uuid.uuid4()}", json={"type": "t", "op": ">", "threshold": 1})
        assert response.status_code == 404

    def test_toggle(self, client):
        created = client.post("/rules", json=rule_body()).json()

        response = client.put(f"/rules/{created['id']}/toggle", json={"isActive": False})
        assert response.status_code == 200
        assert response.json()["enabled"] is False

        response = client.put(f"/rules/{created['id']}/toggle", json={"isActive": True})
        assert response.json()["enabled"] is True

    def test_toggle_missing(self, client):
        response = client.put(f"/rules/{uuid.uuid4()}/toggle", json={"isActive": True})
        assert response.status_code == 404


class TestDeleteRule:
    """Test DELETE /rules/{id}"""

    def test_delete(self, client):
        created = client.post("/rules", json=rule_body()).json()

        assert client.delete(f"/rules/{created['id']}").status_code == 204
        assert client.get(f"/rules/{created['id']}").status_code == 404
        assert client.delete(f"/rules/{created['id']}").status_code == 404

"""Unit tests for qrmfg.integrations (JsonHttpClient, HTTP CQS provider,
HTTP workflow gateway, config-driven factories).

Test strategy
-------------
All outbound HTTP goes through a MagicMock ``session`` handed to
JsonHttpClient, with ``backoff_seconds=[0, 0]`` so retries do not sleep.

Coverage
--------
    1. 2xx parsed, 4xx final, 5xx retried then failed, timeout retried
    2. HttpCqsProvider: flat and wrapped bodies, 404 → None, 5xx → CqsIntegrationError
    3. HttpWorkflowGateway: lookups, list shapes, transition payload
    4. get_cqs_provider / get_workflow_gateway follow app config
"""

from unittest.mock import MagicMock

import pytest
import requests

from qrmfg.integrations.cqs_gateway import (
    CqsIntegrationError,
    DatabaseCqsProvider,
    HttpCqsProvider,
    get_cqs_provider,
)
from qrmfg.integrations.http_client import JsonHttpClient
from qrmfg.integrations.workflow_gateway import (
    HttpWorkflowGateway,
    SqlWorkflowGateway,
    WorkflowGatewayError,
    get_workflow_gateway,
)
from qrmfg.models.workflow import COMPLETED, PLANT_PENDING


def _response(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.content = b"x" if body is not None else b""
    resp.json.return_value = body
    resp.text = str(body)
    return resp


def _client(*responses):
    session = MagicMock()
    session.request.side_effect = list(responses)
    return JsonHttpClient("https://cqs.example", session=session, backoff_seconds=[0, 0]), session


class TestJsonHttpClient:
    def test_success(self):
        client, session = _client(_response(200, {"a": 1}))
        result = client.request("GET", "/materials/X")
        assert result.ok
        assert result.data == {"a": 1}
        method, url = session.request.call_args.args
        assert (method, url) == ("GET", "https://cqs.example/materials/X")

    def test_client_error_not_retried(self):
        client, session = _client(_response(404, {"error": "nope"}))
        result = client.request("GET", "materials/X")
        assert result.ok is False
        assert result.status_code == 404
        assert session.request.call_count == 1

    def test_server_error_retried_then_fails(self):
        client, session = _client(_response(503), _response(503), _response(503))
        result = client.request("GET", "materials/X")
        assert result.ok is False
        assert result.status_code == 503
        assert session.request.call_count == 3

    def test_timeout_then_success(self):
        client, session = _client(requests.Timeout(), _response(200, {"ok": True}))
        result = client.request("GET", "materials/X")
        assert result.ok
        assert session.request.call_count == 2

    def test_connection_errors_exhaust_retries(self):
        err = requests.ConnectionError("refused")
        client, _ = _client(err, err, err)
        result = client.request("GET", "materials/X")
        assert result.ok is False
        assert result.status_code is None
        assert "refused" in result.error


class TestHttpCqsProvider:
    def test_flat_body(self):
        client, session = _client(_response(200, {"flash_point_21": "yes", "unknown": "x", "is_corrosive": " "}))
        attrs = HttpCqsProvider(client).get_attributes("R 1/2")
        assert attrs["flash_point_21"] == "yes"
        assert attrs["is_corrosive"] is None
        assert "unknown" not in attrs
        assert session.request.call_args.args[1].endswith("materials/R%201%2F2")

    def test_wrapped_body(self):
        client, _ = _client(_response(200, {"attributes": {"is_explosive": "no"}}))
        assert HttpCqsProvider(client).get_attributes("R1")["is_explosive"] == "no"

    def test_not_found_is_no_data(self):
        client, _ = _client(_response(404, {}))
        assert HttpCqsProvider(client).get_attributes("R1") is None

    def test_server_error_raises_integration_error(self):
        client, _ = _client(_response(500), _response(500), _response(500))
        with pytest.raises(CqsIntegrationError):
            HttpCqsProvider(client).get_attributes("R1")


class TestHttpWorkflowGateway:
    def test_find_by_id_and_state(self):
        body = {"id": 5, "plantCode": "1102", "materialCode": "R1", "state": PLANT_PENDING}
        client, _ = _client(_response(200, body), _response(200, body))
        gateway = HttpWorkflowGateway(client)
        ref = gateway.find_by_id(5)
        assert (ref.id, ref.plant_code, ref.material_code, ref.state) == (5, "1102", "R1", PLANT_PENDING)
        assert gateway.can_transition_to(5, COMPLETED) is True

    def test_find_by_plant_accepts_items_wrapper(self):
        items = [{"id": 1, "plant_code": "1102", "material_code": "R1", "state": PLANT_PENDING}]
        client, session = _client(_response(200, {"items": items}))
        refs = HttpWorkflowGateway(client).find_by_plant("1102")
        assert [r.id for r in refs] == [1]
        assert session.request.call_args.kwargs["params"] == {"plantCode": "1102"}

    def test_transition_posts_target_state(self):
        body = {"id": 5, "plantCode": "1102", "materialCode": "R1", "state": COMPLETED}
        client, session = _client(_response(200, body))
        ref = HttpWorkflowGateway(client).transition_to(5, COMPLETED, "alice")
        assert ref.state == COMPLETED
        assert session.request.call_args.kwargs["json"] == {"targetState": COMPLETED, "actor": "alice"}

    def test_search_failure_raises_gateway_error(self):
        client, _ = _client(_response(400, {"error": "bad"}))
        with pytest.raises(WorkflowGatewayError):
            HttpWorkflowGateway(client).find_by_material("R1")

    def test_empty_transition_body_reads_workflow_back(self):
        body = {"id": 5, "plantCode": "1102", "materialCode": "R1", "state": COMPLETED}
        client, session = _client(_response(204), _response(200, body))
        ref = HttpWorkflowGateway(client).transition_to(5, COMPLETED, "alice")
        assert ref.state == COMPLETED
        assert session.request.call_args.args == ("GET", "https://cqs.example/workflows/5")

    @pytest.mark.parametrize("body", [
        {"plantCode": "1102", "state": COMPLETED},
        {"id": "abc", "state": COMPLETED},
        {"id": None},
        ["not", "an", "object"],
    ])
    def test_malformed_transition_body_raises_gateway_error(self, body):
        client, _ = _client(_response(200, body))
        with pytest.raises(WorkflowGatewayError):
            HttpWorkflowGateway(client).transition_to(5, COMPLETED, "alice")

    def test_malformed_search_body_raises_gateway_error(self):
        client, _ = _client(_response(200, "plain text"))
        with pytest.raises(WorkflowGatewayError):
            HttpWorkflowGateway(client).find_by_plant("1102")


class TestFactories:
    def test_defaults_follow_testing_config(self):
        assert isinstance(get_cqs_provider(), DatabaseCqsProvider)
        assert isinstance(get_workflow_gateway(), SqlWorkflowGateway)

    def test_http_selection(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "CQS_PROVIDER", "http")
        monkeypatch.setitem(app.config, "CQS_API_URL", "https://cqs.example/api")
        monkeypatch.setitem(app.config, "CQS_API_KEY", "secret")
        monkeypatch.setitem(app.config, "WORKFLOW_GATEWAY", "http")

        provider = get_cqs_provider()
        assert isinstance(provider, HttpCqsProvider)
        assert provider.client.base_url == "https://cqs.example/api"
        assert provider.client.headers["X-API-Key"] == "secret"
        assert isinstance(get_workflow_gateway(), HttpWorkflowGateway)

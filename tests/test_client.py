import pytest
import requests

from outreach.adapters.backend.client import BackendClient, BackendError, api_base_url, unwrap


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None) -> None:
        self.headers = {}
        self.calls = []
        self.response = response
        self.error = error

    def request(self, method, url, params=None, timeout=None):
        self.calls.append({"method": method, "url": url, "params": params, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response


def test_api_base_url() -> None:
    assert api_base_url("http://localhost:5000/") == "http://localhost:5000/api"
    assert api_base_url("https://crm.example.com/api") == "https://crm.example.com/api"


def test_unwrap_requires_success() -> None:
    assert unwrap({"success": True, "data": [1]}) == [1]
    assert unwrap({"success": False, "data": [1]}) is None
    assert unwrap({"data": [1]}) is None
    assert unwrap(None) is None


def test_activities_request_shape_and_token() -> None:
    session = FakeSession(FakeResponse(payload={"success": True, "data": [{"type": "call"}]}))
    client = BackendClient("http://localhost:5000", token="secret", timeout=5, session=session)

    data = client.list_project_activities("p1", limit=10000)

    assert data == [{"type": "call"}]
    assert session.headers["Authorization"] == "Bearer secret"
    call = session.calls[0]
    assert call["url"] == "http://localhost:5000/api/activities/project/p1"
    assert call["params"] == {"limit": 10000}
    assert call["timeout"] == 5


def test_unsuccessful_envelope_is_no_data() -> None:
    session = FakeSession(FakeResponse(payload={"success": False, "message": "nope"}))
    client = BackendClient("http://localhost:5000", session=session)
    assert client.get_project("p1") is None


def test_http_error_raises_backend_error() -> None:
    session = FakeSession(FakeResponse(status_code=500, text="boom"))
    client = BackendClient("http://localhost:5000", session=session)
    with pytest.raises(BackendError) as excinfo:
        client.master_dashboard()
    assert excinfo.value.status_code == 500


def test_network_error_raises_backend_error() -> None:
    session = FakeSession(error=requests.ConnectionError("refused"))
    client = BackendClient("http://localhost:5000", session=session)
    with pytest.raises(BackendError):
        client.list_project_contacts("p1")


def test_non_json_body_raises_backend_error() -> None:
    session = FakeSession(FakeResponse(status_code=200, payload=None))
    client = BackendClient("http://localhost:5000", session=session)
    with pytest.raises(BackendError):
        client.employee_performance("today")

# tests/test_location.py

from unittest import mock

import pytest
import requests

from panchangam import location


def _response(payload, ok=True):
    resp = mock.Mock()
    resp.ok = ok
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


def test_autolocate_primary():
    with mock.patch.object(location.requests, "get", return_value=_response({"loc": "17.38,78.48"})) as get:
        assert location.autolocate() == (17.38, 78.48)
    assert get.call_count == 1


def test_autolocate_falls_back():
    responses = [requests.ConnectionError("down"),
                 _response({"latitude": 12.97, "longitude": 77.59})]
    with mock.patch.object(location.requests, "get", side_effect=responses) as get:
        assert location.autolocate() == (12.97, 77.59)
    assert get.call_count == 2


def test_autolocate_fallback_errors_propagate():
    responses = [_response({}, ok=False), requests.ConnectionError("down")]
    with mock.patch.object(location.requests, "get", side_effect=responses):
        with pytest.raises(requests.ConnectionError):
            location.autolocate()


def test_timezone_for_coordinates():
    assert location.iana_timezone_for(17.385, 78.4867).zone == "Asia/Kolkata"

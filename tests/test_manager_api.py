"""Tests for the metadata-service client."""

from unittest.mock import MagicMock

import pytest
import requests

from ledger_manager_mcp.config import Settings
from ledger_manager_mcp.errors import MetadataError
from ledger_manager_mcp.manager_api import ManagerAPI

SETTINGS = Settings(
    api_url="https://api.example/api",
    api_v2_url="https://api.example/api/v2",
    provider=4,
    live_common_version="34.0.0",
    http_timeout=5.0,
)

APP_ENTRY = {
    "versionName": "Bitcoin Test",
    "perso": "perso_11",
    "deleteKey": "del",
    "firmware": "fw",
    "firmwareKey": "fwkey",
    "hash": "h",
    "version": "2.1.0",
}


def _api(*payloads):
    session = MagicMock()
    session.headers = {}
    responses = []
    for payload in payloads:
        resp = MagicMock()
        resp.json.return_value = payload
        responses.append(resp)
    session.request.side_effect = responses
    return ManagerAPI(SETTINGS, session=session), session


def test_get_device_version_request():
    api, session = _api({"id": 17})
    assert api.get_device_version(0x33000004) == 17
    session.request.assert_called_once_with(
        "POST",
        "https://api.example/api/get_device_version",
        params={"livecommonversion": "34.0.0"},
        timeout=5.0,
        json={"provider": 4, "target_id": 0x33000004},
    )


def test_firmware_for_target_chains_requests():
    api, session = _api({"id": 17}, {"perso": "perso_11", "name": "2.2.3"})
    info = api.firmware_for_target(0x33000004, "2.2.3")
    assert info.perso == "perso_11"
    second = session.request.call_args_list[1]
    assert second.args == ("POST", "https://api.example/api/get_firmware_version")
    assert second.kwargs["json"] == {
        "provider": 4,
        "device_version": 17,
        "version_name": "2.2.3",
    }


def test_firmware_missing_perso():
    api, _ = _api({"name": "2.2.3"})
    with pytest.raises(MetadataError):
        api.get_firmware_info(17, "2.2.3")


def test_apps_by_target_request():
    api, session = _api([APP_ENTRY])
    apps = api.apps_by_target(0x33000004, "2.2.3")
    assert apps[0].delete_key == "del"
    call = session.request.call_args
    assert call.args == ("GET", "https://api.example/api/v2/apps/by-target")
    assert call.kwargs["params"] == {
        "livecommonversion": "34.0.0",
        "provider": "4",
        "target_id": str(0x33000004),
        "firmware_version_name": "2.2.3",
    }


def test_find_app_case_insensitive():
    other = dict(APP_ENTRY, versionName="Ethereum")
    api, _ = _api([other, APP_ENTRY])
    assert api.find_app(1, "2.2.3", "bitcoin test").perso == "perso_11"


def test_find_app_missing():
    api, _ = _api([dict(APP_ENTRY, versionName="Ethereum")])
    with pytest.raises(MetadataError):
        api.find_app(1, "2.2.3", "bitcoin")


def test_incomplete_descriptor():
    entry = dict(APP_ENTRY)
    del entry["firmwareKey"]
    api, _ = _api([entry])
    with pytest.raises(MetadataError):
        api.apps_by_target(1, "2.2.3")


def test_http_error_wrapped():
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = requests.ConnectionError("offline")
    api = ManagerAPI(SETTINGS, session=session)
    with pytest.raises(MetadataError):
        api.get_device_version(1)


def test_bad_status_wrapped():
    api, session = _api({"id": 1})
    session.request.side_effect = None
    resp = MagicMock()
    resp.raise_for_status.side_effect = requests.HTTPError("500")
    session.request.return_value = resp
    with pytest.raises(MetadataError):
        api.get_device_version(1)

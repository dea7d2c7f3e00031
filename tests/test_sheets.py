import asyncio
import json

import httpx
import pytest

from catering.errors import (
    MissingApiKeyError,
    SheetsAccessDeniedError,
    SheetsError,
    SheetsNetworkError,
    SheetsRequestError,
    SpreadsheetNotFoundError,
)
from catering.importer.sheets import SpreadsheetFetcher, classify_error

SPREADSHEET_ID = "1AbCdEfGh"


def sheets_api(tabs, failing=()):
    """Google Sheets API serving ``tabs`` ({title: rows}); tabs in ``failing`` return 500"""
    requests = []

    def handler(request):
        requests.append(request)
        path = request.url.path
        if path.endswith(f"/{SPREADSHEET_ID}"):
            return httpx.Response(200, json={"sheets": [{"properties": {"title": t}} for t in tabs]})
        for title, rows in tabs.items():
            if path.endswith("/values/" + title):
                if title in failing:
                    return httpx.Response(500, json={"error": {"message": "backend error"}})
                return httpx.Response(200, json={"range": title, "values": rows})
        return httpx.Response(404)

    return handler, requests


def run(coro):
    return asyncio.run(coro)


def test_fetch_all_sheets():
    handler, requests = sheets_api({
        "Test Bistro": [["Item Name", "Price"], ["Salmon", "25"]],
        "Grill": [["Burger", "", 20]],
    })
    fetcher = SpreadsheetFetcher(api_key="key", transport=httpx.MockTransport(handler))

    sheets = run(fetcher.fetch_all_sheets(SPREADSHEET_ID))

    assert [s.sheet_name for s in sheets] == ["Test Bistro", "Grill"]
    assert sheets[0].rows[1] == ["Salmon", "25"]
    assert sheets[1].rows[0] == ["Burger", "", "20"]
    assert requests[0].url.params["key"] == "key"
    assert requests[1].url.params["valueRenderOption"] == "FORMATTED_VALUE"


def test_failing_tab_is_skipped():
    handler, _ = sheets_api({"Bistro": [["Soup", "", "10"]], "Broken": []}, failing={"Broken"})
    fetcher = SpreadsheetFetcher(api_key="key", transport=httpx.MockTransport(handler))

    sheets = run(fetcher.fetch_all_sheets(SPREADSHEET_ID))

    assert [s.sheet_name for s in sheets] == ["Bistro"]


def test_api_key_argument_overrides():
    handler, requests = sheets_api({"Bistro": []})
    fetcher = SpreadsheetFetcher(api_key="default", transport=httpx.MockTransport(handler))
    run(fetcher.fetch_all_sheets(SPREADSHEET_ID, api_key="override"))
    assert requests[0].url.params["key"] == "override"


def test_missing_api_key():
    with pytest.raises(MissingApiKeyError):
        run(SpreadsheetFetcher().fetch_all_sheets(SPREADSHEET_ID))


def test_network_error():
    def handler(request):
        raise httpx.ConnectError("no route to host")

    fetcher = SpreadsheetFetcher(api_key="key", transport=httpx.MockTransport(handler))
    with pytest.raises(SheetsNetworkError):
        run(fetcher.fetch_all_sheets(SPREADSHEET_ID))


def error_response(status, message, reason=None):
    body = {"error": {"code": status, "message": message}}
    if reason:
        body["error"]["details"] = [{"reason": reason}]
    return httpx.Response(status, content=json.dumps(body).encode())


def test_classify_not_found():
    assert isinstance(classify_error(error_response(404, "Requested entity was not found.")), SpreadsheetNotFoundError)


def test_classify_service_disabled():
    error = classify_error(error_response(
        403, "Google Sheets API has not been used in project 123 before or it is disabled.", "SERVICE_DISABLED",
    ))
    assert isinstance(error, SheetsAccessDeniedError)
    assert error.service_disabled
    assert "Enable it" in str(error)


def test_classify_permission_denied():
    error = classify_error(error_response(403, "The caller does not have permission"))
    assert isinstance(error, SheetsAccessDeniedError)
    assert not error.service_disabled


def test_classify_bad_key():
    error = classify_error(error_response(400, "API key not valid. Please pass a valid API key."))
    assert isinstance(error, SheetsRequestError)
    assert "GOOGLE_API_KEY" in str(error)


def test_classify_other():
    error = classify_error(httpx.Response(503, text="unavailable"))
    assert type(error) is SheetsError


def test_metadata_error_is_raised():
    transport = httpx.MockTransport(lambda request: error_response(404, "Requested entity was not found."))
    fetcher = SpreadsheetFetcher(api_key="key", transport=transport)
    with pytest.raises(SpreadsheetNotFoundError):
        run(fetcher.fetch_all_sheets(SPREADSHEET_ID))

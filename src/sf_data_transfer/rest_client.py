"""REST API client for a single org."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Final

import requests

from .exceptions import ApiError
from .models import ApiFailure, QueryResult, SaveResult

if TYPE_CHECKING:
    from .models import Connection, Record

logger: logging.Logger = logging.getLogger(__name__)

API_VERSION: Final[str] = "59.0"
DEFAULT_TIMEOUT: Final[float] = 120.0


def parse_failures(payload: Any) -> list[ApiFailure]:  # noqa: ANN401 - arbitrary JSON
    """Normalize an error payload into ApiFailure values.

    The API reports errors as a list of ``{"message", "errorCode"|"statusCode", "fields"}``
    objects, but some endpoints return a single object or plain text.
    """
    if payload is None or payload == "":
        return []
    if isinstance(payload, str):
        return [ApiFailure(message=payload)]
    if isinstance(payload, list):
        failures: list[ApiFailure] = []
        for item in payload:
            failures.extend(parse_failures(item))
        return failures
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error_description") or payload.get("error") or ""
        status_code = payload.get("statusCode") or payload.get("errorCode")
        fields = payload.get("fields") or []
        return [ApiFailure(message=str(message), status_code=status_code, fields=tuple(fields))]
    return [ApiFailure(message=str(payload))]


def _save_result(data: dict[str, Any]) -> SaveResult:
    return SaveResult(
        id=data.get("id"),
        success=bool(data.get("success", False)),
        errors=parse_failures(data.get("errors")),
    )


class SalesforceRestClient:
    """Thin client over the REST API of one org.

    Implements the OrgClient protocol. All requests share one requests.Session
    carrying the bearer token.
    """

    connection: Connection
    api_version: str
    timeout: float
    _session: requests.Session

    def __init__(
        self,
        connection: Connection,
        *,
        api_version: str = API_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.connection = connection
        self.api_version = api_version
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers["Authorization"] = f"Bearer {connection.access_token}"
        self._session.headers["Content-Type"] = "application/json"

    @property
    def base_url(self) -> str:
        return f"{self.connection.instance_url}/services/data/v{self.api_version}"

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:  # noqa: ANN401 - JSON response
        url = f"{self.base_url}{endpoint}"
        try:
            response = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            msg = f"Salesforce API request failed: {method} {endpoint}: {e}"
            raise ApiError(msg) from e

        if not response.ok:
            raise self._error_from_response(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            msg = f"Salesforce API error: invalid JSON response from {method} {endpoint} ({response.status_code})"
            raise ApiError(msg, status=response.status_code) from e

    @staticmethod
    def _error_from_response(response: requests.Response) -> ApiError:
        try:
            payload: Any = response.json()
        except ValueError:
            payload = response.text
        failures = parse_failures(payload)

        msg = f"Salesforce API error: {response.status_code} {response.reason}"
        if response.status_code == 401:
            msg += " - Access token is invalid or expired. Please re-authenticate your org using Salesforce CLI."
        elif failures:
            msg += " - " + "; ".join(f.message for f in failures if f.message)
        elif response.text:
            msg += f" - {response.text}"
        return ApiError(msg, status=response.status_code, failures=failures)

    def identity(self) -> dict[str, Any]:
        return self._request("GET", "/")

    def describe_global(self) -> list[dict[str, Any]]:
        response = self._request("GET", "/sobjects/")
        return response.get("sobjects", [])

    def describe(self, entity_type: str) -> dict[str, Any]:
        return self._request("GET", f"/sobjects/{entity_type}/describe/")

    def query(self, soql: str) -> QueryResult:
        logger.debug(f"Query: {soql}")
        response = self._request("GET", "/query/", params={"q": soql})
        records: list[Record] = response.get("records", [])
        return QueryResult(
            records=records,
            total_available=int(response.get("totalSize", len(records))),
            is_complete=bool(response.get("done", True)),
            next_records_url=response.get("nextRecordsUrl"),
        )

    def create(self, entity_type: str, records: list[Record]) -> list[SaveResult]:
        if not records:
            return []

        if len(records) == 1:
            try:
                response = self._request("POST", f"/sobjects/{entity_type}/", json=records[0])
            except ApiError as e:
                # Validation failures on the direct endpoint come back as HTTP 400
                if e.status == 400:
                    return [SaveResult(id=None, success=False, errors=e.failures or [ApiFailure(str(e))])]
                raise
            return [_save_result(response)]

        composite_request = {
            "allOrNone": False,
            "records": [{"attributes": {"type": entity_type}, **record} for record in records],
        }
        response = self._request("POST", "/composite/sobjects/", json=composite_request)
        return [_save_result(item) for item in response]


def create_client(connection: Connection) -> SalesforceRestClient:
    """Get a REST client for the connection."""
    return SalesforceRestClient(connection)

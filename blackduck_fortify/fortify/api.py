import logging
import threading
from typing import Any
from typing import Sequence
from urllib.parse import quote
from urllib.parse import urlencode

import requests

from blackduck_fortify.exceptions import ApplicationCreateError
from blackduck_fortify.exceptions import ApplicationLookupError
from blackduck_fortify.exceptions import AttributeCatalogError
from blackduck_fortify.exceptions import FortifyApiError
from blackduck_fortify.models.fortify import AttributeValuePayload
from blackduck_fortify.models.fortify import CreateApplicationRequest

logger = logging.getLogger(__name__)
# Connect and read timeouts of 60 seconds each; see https://requests.readthedocs.io/en/master/user/advanced/#timeouts
_TIMEOUT = (60, 60)

HTTP_OK = 200
HTTP_CREATED = 201

PROJECT_VERSIONS_ENDPOINT = "api/v1/projectVersions"
ATTRIBUTE_DEFINITIONS_ENDPOINT = "api/v1/attributeDefinitions"


def _encode_query(params: dict[str, str | None]) -> str:
    # Fortify's query language uses ':' and a literal '+and+' connector, so
    # those characters must reach the server unescaped. Search terms arrive
    # percent-encoded already, so '%' is kept as well.
    return urlencode(
        {k: v for k, v in params.items() if v is not None},
        safe=":+,%",
        quote_via=quote,
    )


class FortifyClient:
    """
    Thin wrapper around the Fortify SSC REST API (v1) calls needed to resolve
    and provision application versions. Every call is a single synchronous
    request; transport failures and unexpected status codes are raised as
    FortifyApiError subclasses and never retried here.

    requests.Session is not thread-safe, so each thread calling the client
    gets its own session. A session passed in explicitly is used by every
    thread as it is.
    """

    def __init__(
        self,
        server_url: str,
        username: str,
        password: str,
        timeout: float | tuple[float, float] = _TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = server_url.rstrip("/") + "/"
        self._timeout = timeout
        self._auth = (username, password)
        self._local = threading.local()
        self._shared_session = self._configure(session) if session is not None else None

    def _configure(self, session: requests.Session) -> requests.Session:
        session.auth = self._auth
        session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )
        return session

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._configure(requests.Session())
            self._local.session = session
        return session

    def _request(
        self,
        operation: str,
        error_class: type[FortifyApiError],
        method: str,
        endpoint: str,
        params: str | None = None,
        json: Any = None,
    ) -> requests.Response:
        url = f"{self.base_url}{endpoint.lstrip('/')}"
        try:
            return self.session.request(
                method=method,
                url=url,
                params=params,
                json=json,
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("Unable to call %s: %s", operation, e)
            raise error_class(operation, str(e)) from e

    @staticmethod
    def _verify_status(
        operation: str,
        error_class: type[FortifyApiError],
        response: requests.Response,
        expected_status: int,
    ) -> None:
        if response.status_code != expected_status:
            raise error_class(operation, response.text[:500], response.status_code)

    @staticmethod
    def _json(
        operation: str,
        error_class: type[FortifyApiError],
        response: requests.Response,
    ) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise error_class(operation, f"invalid JSON response: {e}") from e
        if not isinstance(body, dict):
            raise error_class(operation, "expected a JSON object in the response")
        return body

    def _get_data_list(
        self,
        operation: str,
        error_class: type[FortifyApiError],
        endpoint: str,
        fields: str | None,
        q: str | None,
    ) -> list[dict[str, Any]]:
        response = self._request(
            operation,
            error_class,
            "GET",
            endpoint,
            params=_encode_query({"fields": fields, "q": q}),
        )
        self._verify_status(operation, error_class, response, HTTP_OK)
        body = self._json(operation, error_class, response)
        response_code = body.get("responseCode", HTTP_OK)
        if response_code != HTTP_OK:
            raise error_class(operation, "unexpected responseCode in body", response_code)
        data = body.get("data")
        if not isinstance(data, list):
            raise error_class(operation, "response has no 'data' list")
        return data

    def get_application_versions(self, fields: str, q: str) -> list[dict[str, Any]]:
        """
        Query application versions with Fortify's search syntax,
        e.g. `name:1.0+and+project.name:My%20App`. Search terms must already be
        percent-encoded; see fortify.application.build_version_query().
        :return: the matching version records, possibly empty
        """
        return self._get_data_list(
            "Fortify Get Application Version Api",
            ApplicationLookupError,
            PROJECT_VERSIONS_ENDPOINT,
            fields,
            q,
        )

    def create_application_version(self, request: CreateApplicationRequest) -> int:
        """
        :return: the id of the new application version
        """
        operation = "Fortify Create Application Version Api"
        response = self._request(
            operation,
            ApplicationCreateError,
            "POST",
            PROJECT_VERSIONS_ENDPOINT,
            json=request.to_dict(),
        )
        self._verify_status(operation, ApplicationCreateError, response, HTTP_CREATED)
        body = self._json(operation, ApplicationCreateError, response)
        try:
            return int(body["data"]["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise ApplicationCreateError(operation, f"response carries no version id: {e!r}") from e

    def update_application_attributes(
        self,
        application_id: int,
        payload: Sequence[AttributeValuePayload],
    ) -> int:
        operation = "Fortify Update Application Version Api"
        response = self._request(
            operation,
            FortifyApiError,
            "PUT",
            f"{PROJECT_VERSIONS_ENDPOINT}/{application_id}/attributes",
            json=[attribute.to_dict() for attribute in payload],
        )
        self._verify_status(operation, FortifyApiError, response, HTTP_CREATED)
        return response.status_code

    def commit_application_version(self, application_id: int) -> int:
        operation = "Fortify Commit Application Version Api"
        response = self._request(
            operation,
            FortifyApiError,
            "PUT",
            f"{PROJECT_VERSIONS_ENDPOINT}/{application_id}",
            json={"committed": True},
        )
        self._verify_status(operation, FortifyApiError, response, HTTP_CREATED)
        return response.status_code

    def delete_application_version(self, application_id: int) -> int:
        operation = "Fortify Delete Application Version Api"
        response = self._request(
            operation,
            FortifyApiError,
            "DELETE",
            f"{PROJECT_VERSIONS_ENDPOINT}/{application_id}",
        )
        self._verify_status(operation, FortifyApiError, response, HTTP_OK)
        return response.status_code

    def get_attribute_definitions(
        self,
        fields: str | None = None,
        q: str | None = None,
    ) -> list[dict[str, Any]]:
        return self._get_data_list(
            "Fortify Get Attribute Definitions Api",
            AttributeCatalogError,
            ATTRIBUTE_DEFINITIONS_ENDPOINT,
            fields,
            q,
        )

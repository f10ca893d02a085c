from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from winadmin_reports.config import GraphConfig
from winadmin_reports.errors import EntityFetchError, EntityNotFound, SourceUnavailable
from winadmin_reports.retry_utils import (
    RETRYABLE_STATUS,
    RetryableHttpStatus,
    RetryConfig,
    parse_retry_after,
    retry_call,
)
from winadmin_reports.sources.base import DirectorySource, EntityDetail, EntitySummary

logger = logging.getLogger(__name__)

USER_SELECT = "id,userPrincipalName,displayName,accountEnabled"


class GraphSource(DirectorySource):
    """Microsoft Graph v1.0 backend.

    Endpoints:
      - GET /users                              (enumeration, @odata.nextLink paging)
      - GET /users/{upn}                        (existence + display name)
      - GET /users/{upn}/authentication/methods (registered methods)

    The session must already carry an Authorization header; see `from_token`.
    Required permissions: User.Read.All, UserAuthenticationMethod.Read.All.
    """

    name = "graph"
    supports_enabled_filter = True

    def __init__(
        self,
        session: requests.Session,
        *,
        base_url: str = "https://graph.microsoft.com/v1.0",
        timeout_s: float = 30.0,
        max_attempts: int = 3,
        page_size: int = 999,
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.page_size = page_size
        self.retry_cfg = RetryConfig(max_attempts=max_attempts)

    @classmethod
    def from_token(cls, access_token: str, cfg: Optional[GraphConfig] = None) -> "GraphSource":
        cfg = cfg or GraphConfig()
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
                "ConsistencyLevel": "eventual",
            }
        )
        return cls(
            session,
            base_url=cfg.base_url,
            timeout_s=cfg.timeout_s,
            max_attempts=cfg.max_attempts,
            page_size=cfg.page_size,
        )

    # -- HTTP --------------------------------------------------------------

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """GET with retry on throttling, 5xx and transient network errors.

        Connection-level failures that survive all attempts become
        SourceUnavailable; HTTP error statuses are returned to the caller.
        """

        def _do_request() -> requests.Response:
            timeout = (min(5.0, float(self.timeout_s)), float(self.timeout_s))
            resp = self.session.get(url, params=params, timeout=timeout)
            if resp.status_code in RETRYABLE_STATUS:
                raise RetryableHttpStatus(resp.status_code, parse_retry_after(resp.headers.get("Retry-After")))
            return resp

        def _on_retry(attempt: int, exc: Exception, delay_s: float) -> None:
            logger.warning(
                "Retry attempt %d/%d for %s after error: %s. Waiting %.1fs.",
                attempt,
                self.retry_cfg.max_attempts,
                url,
                exc,
                delay_s,
            )

        try:
            return retry_call(_do_request, cfg=self.retry_cfg, on_retry=_on_retry)
        except (requests.Timeout, requests.ConnectionError) as exc:
            raise SourceUnavailable(f"Microsoft Graph unreachable: {type(exc).__name__}: {exc}") from exc

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # -- DirectorySource ---------------------------------------------------

    def list_entities(self, *, enabled_only: bool = False) -> List[EntitySummary]:
        params: Optional[Dict[str, Any]] = {"$select": USER_SELECT, "$top": self.page_size}
        if enabled_only:
            params["$filter"] = "accountEnabled eq true"

        url = self._url("users")
        out: List[EntitySummary] = []

        while url:
            try:
                resp = self._get(url, params=params)
            except RetryableHttpStatus as exc:
                raise SourceUnavailable(f"Graph user enumeration throttled/failing: {exc}") from exc

            if resp.status_code in (401, 403):
                raise SourceUnavailable(f"Graph rejected credentials ({resp.status_code}): {_error_message(resp)}")
            if resp.status_code != 200:
                raise SourceUnavailable(f"Graph user enumeration failed ({resp.status_code}): {_error_message(resp)}")

            payload = _json(resp)
            for item in payload.get("value") or []:
                if not isinstance(item, dict):
                    continue
                upn = item.get("userPrincipalName") or item.get("id")
                if not upn:
                    continue
                out.append(
                    EntitySummary(
                        id=upn,
                        display_name=item.get("displayName"),
                        enabled=bool(item.get("accountEnabled", False)),
                    )
                )

            # nextLink already carries the query string
            url = payload.get("@odata.nextLink")
            params = None

        return out

    def get_entity_detail(self, identifier: str) -> EntityDetail:
        user_path = f"users/{quote(identifier, safe='@')}"

        user = self._get_entity_json(identifier, self._url(user_path), params={"$select": USER_SELECT})
        methods_payload = self._get_entity_json(identifier, self._url(f"{user_path}/authentication/methods"))

        methods: List[str] = []
        for m in methods_payload.get("value") or []:
            if isinstance(m, dict) and m.get("@odata.type"):
                methods.append(str(m["@odata.type"]))

        return EntityDetail(
            id=user.get("userPrincipalName") or identifier,
            display_name=user.get("displayName"),
            enabled=user.get("accountEnabled"),
            methods=methods,
            # Graph v1.0 exposes no default method on /authentication/methods
            default_method=None,
        )

    def _get_entity_json(self, identifier: str, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            resp = self._get(url, params=params)
        except RetryableHttpStatus as exc:
            raise EntityFetchError(identifier, str(exc)) from exc

        if resp.status_code == 404:
            raise EntityNotFound(identifier, "user not found in Microsoft Graph")
        if resp.status_code == 401:
            raise SourceUnavailable(f"Graph rejected credentials (401): {_error_message(resp)}")
        if resp.status_code != 200:
            raise EntityFetchError(identifier, f"HTTP {resp.status_code}: {_error_message(resp)}")

        try:
            return _json(resp)
        except SourceUnavailable as exc:
            raise EntityFetchError(identifier, str(exc)) from exc


def _json(resp: requests.Response) -> Dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError as exc:
        raise SourceUnavailable(f"Graph returned invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise SourceUnavailable("Graph response is not a JSON object")
    return payload


def _error_message(resp: requests.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return (resp.text or "").strip()[:200]
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return str(payload["error"].get("message", ""))
    return ""

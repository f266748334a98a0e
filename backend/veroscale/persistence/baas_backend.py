"""Hosted backend: executes query descriptors over a PostgREST-style REST API."""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

import requests

from ..domain_errors import PersistenceError
from .query import QueryDescriptor, Row
from .schema_map import BAAS_MAPPING, SchemaMapping

logger = logging.getLogger(__name__)

_METHODS = {"select": "GET", "insert": "POST", "update": "PATCH", "delete": "DELETE"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Mapping):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{_jsonable(value)}"


class BaasBackend:
    """One HTTP round trip per descriptor; no retries."""

    name = "baas"

    def __init__(
        self,
        *,
        base_url: str,
        service_key: str,
        schema: str,
        timeout: float = 10,
        mapping: SchemaMapping = BAAS_MAPPING,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.schema = schema
        self.timeout = timeout
        self.mapping = mapping
        self.session = session or requests.Session()

    def _headers(self, query: QueryDescriptor) -> dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Accept-Profile": self.schema,
            "Content-Profile": self.schema,
        }
        if query.action != "select":
            headers["Prefer"] = "return=representation"
            headers["Content-Type"] = "application/json"
        return headers

    def _params(self, query: QueryDescriptor, remote: dict[str, Any]) -> dict[str, str]:
        params = {key: _filter_value(value) for key, value in remote["filters"].items()}
        if query.action == "select":
            params["select"] = ",".join(remote["columns"]) if remote["columns"] else "*"
            if remote["order_by"]:
                params["order"] = f"{remote['order_by']}.{'desc' if query.descending else 'asc'}"
            if query.single:
                params["limit"] = "1"
            else:
                if query.limit is not None:
                    params["limit"] = str(query.limit)
                if query.offset:
                    params["offset"] = str(query.offset)
        return params

    def execute(self, query: QueryDescriptor) -> list[Row] | Row | None:
        remote = self.mapping.translate(query)
        url = f"{self.base_url}/rest/v1/{remote['table']}"
        body = _jsonable(remote["data"]) if remote["data"] is not None else None
        try:
            response = self.session.request(
                _METHODS[query.action],
                url,
                params=self._params(query, remote),
                json=body,
                headers=self._headers(query),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.exception("BaaS %s on %s failed", query.action, query.table)
            raise PersistenceError(str(exc), table=query.table, action=query.action) from exc

        if response.status_code >= 400:
            message = f"HTTP_{response.status_code}: {response.text[:200]}"
            logger.error("BaaS %s on %s rejected: %s", query.action, query.table, message)
            raise PersistenceError(message, table=query.table, action=query.action)

        payload = response.json() if response.content else []
        if isinstance(payload, dict):
            payload = [payload]
        rows = [self.mapping.to_canonical(query.table, row) for row in payload]
        if query.action == "select" and query.single:
            return rows[0] if rows else None
        if query.action == "insert" and isinstance(query.data, Mapping):
            return rows[0] if rows else None
        return rows

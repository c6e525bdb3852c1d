#!/usr/bin/env python3
"""Walkthrough of the asset grid update protocol against a running server."""

from __future__ import annotations

import json
import os
import sys
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen


def _env(name: str, default: str | None = None) -> str | None:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value


class RequestFailed(RuntimeError):
    def __init__(self, method: str, url: str, status: int, body: Any) -> None:
        super().__init__(f"{method} {url} failed: {status}: {body}")
        self.status = status
        self.body = body


class HttpClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        tenant_id: str | None = None,
        user_id: str | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = {"Content-Type": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"
        if tenant_id:
            self.headers["X-Tenant-ID"] = tenant_id
        if user_id:
            self.headers["X-User-ID"] = user_id

    def request_json(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        timeout: float = 10.0,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        if query:
            query = {k: v for k, v in query.items() if v is not None}
            if query:
                url = f"{url}?{urlencode(query)}"

        data = None
        if payload is not None:
            data = json.dumps(payload, default=str).encode("utf-8")

        req = Request(url, data=data, method=method)
        for key, value in self.headers.items():
            req.add_header(key, value)

        try:
            with urlopen(req, timeout=timeout) as response:
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            try:
                body: Any = json.loads(detail)
            except ValueError:
                body = detail
            raise RequestFailed(method, url, exc.code, body) from None

        if not raw:
            return {}
        return json.loads(raw.decode("utf-8"))


def _next_status(current: str) -> str:
    return "in_progress" if current != "in_progress" else "needs_review"


def main() -> int:
    base_url = _env("ASSETGRID_URL", "http://localhost:8080")
    api_key = _env("ASSETGRID_API_KEY")
    tenant_id = _env("ASSETGRID_TENANT_ID")
    user_id = _env("ASSETGRID_USER_ID", "walkthrough-user")
    site_id = _env("ASSETGRID_SITE_ID")

    client = HttpClient(base_url, api_key=api_key, tenant_id=tenant_id, user_id=user_id)

    print("Checking health...")
    health = client.request_json("GET", "/v1/health")
    if health.get("status") != "healthy":
        raise RuntimeError(f"Unexpected health response: {health}")

    if not site_id:
        sites = client.request_json("GET", "/v1/sites").get("sites", [])
        if not sites:
            raise RuntimeError("No sites found; set ASSETGRID_SITE_ID or seed a site first.")
        site_id = str(sites[0]["site_id"])
    print(f"Using site {site_id}")

    assets = client.request_json(
        "GET", f"/v1/sites/{site_id}/assets", query={"limit": 50}
    ).get("assets", [])
    if not assets:
        raise RuntimeError("Site has no assets.")

    asset = assets[0]
    asset_id = asset["asset_id"]
    stale_version = asset["version"]
    print(f"Asset {asset['asset_key']} at v{stale_version} ({asset['status']})")

    print("Updating status...")
    updated = client.request_json(
        "PATCH",
        f"/v1/assets/{asset_id}",
        payload={
            "expected_version": stale_version,
            "status": _next_status(asset["status"]),
            "message": "Walkthrough update",
        },
    )
    if updated["version"] != stale_version + 1:
        raise RuntimeError(f"Version did not advance by one: {updated}")
    print(f"Accepted: v{updated['version']} ({updated['status']})")

    print("Retrying with the stale version...")
    try:
        client.request_json(
            "PATCH",
            f"/v1/assets/{asset_id}",
            payload={"expected_version": stale_version, "status": "blocked"},
        )
    except RequestFailed as exc:
        if exc.status != 409:
            raise
        current = exc.body["detail"]["current"]
        if current["version"] != updated["version"]:
            raise RuntimeError(f"Conflict carried an unexpected record: {current}")
        print(f"Rejected with 409; server is at v{current['version']}")
    else:
        raise RuntimeError("Stale update was accepted")

    events = client.request_json("GET", f"/v1/assets/{asset_id}/events").get("events", [])
    print(f"History has {len(events)} events; latest is {events[-1]['event_type']}")

    print("Walkthrough complete: one write accepted, stale retry rejected.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        raise

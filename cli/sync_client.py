"""CLI client for a ContentSync server."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any
from urllib.parse import urlparse

import httpx

DEFAULT_SERVER = "http://localhost:8000"
SERVER_ENV_VAR = "CONTENTSYNC_SERVER"
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


class SyncClient:
    """Client for the ContentSync HTTP API."""

    def __init__(
        self,
        server_url: str,
        *,
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.client = httpx.Client(base_url=self.server_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> SyncClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    def info(self) -> dict[str, Any]:
        """Available modes and backend state."""
        return self._json(self.client.get("/api/sync"))

    def run(self, mode: str) -> dict[str, Any]:
        """Run ``scan`` or ``pull`` on the server."""
        return self._json(self.client.post("/api/sync", json={"mode": mode}))

    def compare(self, table: str) -> dict[str, Any]:
        """Compare a table with its content folder on the server."""
        return self._json(self.client.post("/api/sync/compare", json={"table": table}))

    def tables(self) -> dict[str, Any]:
        """Row counts per table."""
        return self._json(self.client.get("/api/admin/tables"))


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def print_sync_result(result: dict[str, Any]) -> None:
    """Print a scan or pull summary."""
    print(f"Sync {result.get('mode', '?')}:")
    print(f"  Files scanned:  {result.get('files_scanned', 0)}")
    print(f"  New:            {result.get('new_files', 0)}")
    print(f"  Modified:       {result.get('modified_files', 0)}")
    print(f"  Deleted:        {result.get('deleted_files', 0)}")

    markers = {"new": "+", "modified": "~", "deleted": "-"}
    for change in result.get("changes", []):
        marker = markers.get(change["status"], "?")
        print(f"    {marker} {change['path']} ({change['table']})")
    for path in result.get("unreadable", []):
        print(f"    ! {path} (unreadable)")

    if result.get("applied") is not None:
        failures = result.get("failures", [])
        print(f"Applied {result['applied']} change(s), {len(failures)} failure(s).")
        for failure in failures:
            print(f"    ! {failure['path']}: {failure['error']}")


def print_comparison(result: dict[str, Any]) -> None:
    """Print a table comparison summary."""
    summary = result.get("summary", {})
    print(f"Compare {result.get('table', '?')}:")
    print(f"  Declared:  {summary.get('total_declared', 0)}")
    print(f"  In table:  {summary.get('total_in_table', 0)}")
    print(f"  Similar:   {summary.get('similar_count', 0)}")
    print(f"  Different: {summary.get('different_count', 0)}")
    print(f"  Missing:   {summary.get('missing_count', 0)}")
    for item in result.get("different", []):
        print(f"    ~ {item['path'] or item['filename']}")
    for item in result.get("missing", []):
        print(f"    - {item['path'] or item['filename']}")


def print_status(info: dict[str, Any], tables: dict[str, Any]) -> None:
    print(f"Backend: {info.get('backend', '?')} ({tables.get('backend', '?')})")
    print(f"Sync running: {'yes' if info.get('syncing') else 'no'}")
    print("Tables:")
    for name, count in sorted(tables.get("tables", {}).items()):
        print(f"  {name:<18} {count}")


def _error_detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    return str(detail) if detail else response.reason_phrase


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="contentsync",
        description="Synchronize a content tree into the database through a ContentSync server",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get(SERVER_ENV_VAR, DEFAULT_SERVER),
        help=f"Server URL (default: ${SERVER_ENV_VAR} or {DEFAULT_SERVER})",
    )
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// server URLs for non-localhost hosts",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("scan", help="Show what would change")
    subparsers.add_parser("pull", help="Apply changes to the database")
    compare_parser = subparsers.add_parser("compare", help="Compare a table with its folder")
    compare_parser.add_argument("table", help="Destination table name")
    subparsers.add_parser("status", help="Show backend state and table row counts")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return

    try:
        server_url = validate_server_url(args.server, args.allow_insecure_http)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    with SyncClient(server_url) as client:
        try:
            if args.command in ("scan", "pull"):
                print_sync_result(client.run(args.command))
            elif args.command == "compare":
                print_comparison(client.compare(args.table))
            elif args.command == "status":
                print_status(client.info(), client.tables())
        except httpx.HTTPStatusError as exc:
            print(f"Error: {exc.response.status_code} {_error_detail(exc.response)}")
            sys.exit(1)
        except httpx.TransportError as exc:
            print(f"Error: cannot reach {server_url}: {exc}")
            sys.exit(1)


if __name__ == "__main__":
    main()

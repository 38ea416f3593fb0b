# resolvers/api_client.py
from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request
from typing import List, Optional
from urllib.parse import urlencode, urljoin

from ..errors import ExternalResolutionError
from ..ui.console import get_console


class APITriggerResolver:
    """HTTP client for the trigger service of the surrounding orchestrator."""

    def __init__(self, base_url: str, timeout: float = 10.0, token: Optional[str] = None):
        """
        Initialize API resolver.

        Args:
            base_url: Base URL of the trigger API (e.g., "https://api.example.com")
            timeout: Seconds to wait for each lookup
            token: Optional bearer token
        """
        # Ensure base_url doesn't end with /
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token = token

    def _request(self, path: str, params: dict) -> object:
        """
        Make a GET request to the API.

        Returns:
            Parsed JSON response

        Raises:
            ExternalResolutionError: If the request fails
        """
        url = urljoin(self.base_url + "/", path.lstrip("/")) + "?" + urlencode(params)

        req_headers = {"Accept": "application/json"}
        if self.token:
            req_headers["Authorization"] = f"Bearer {self.token}"

        req = urllib.request.Request(url, headers=req_headers, method="GET")

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                response_data = response.read().decode("utf-8")
                if response_data:
                    return json.loads(response_data)
                return []
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise ExternalResolutionError(
                f"Trigger lookup failed: {e.code} {e.reason}", url=url, body=error_body
            ) from e
        except urllib.error.URLError as e:
            raise ExternalResolutionError(f"Network error: {e.reason}", url=url) from e
        except json.JSONDecodeError as e:
            raise ExternalResolutionError(f"Invalid JSON response: {e}", url=url) from e

    def lookup(self, src: str) -> List[str]:
        """
        Blocking lookup of the jobs `src` triggers.

        Accepts either a bare JSON list or {"dest": [...]}.
        """
        data = self._request("/triggers", {"src": src})
        if isinstance(data, dict):
            data = data.get("dest", [])
        if not isinstance(data, list) or not all(isinstance(d, str) for d in data):
            raise ExternalResolutionError("Trigger lookup returned an unexpected payload", src=src)
        get_console().print_debug(f"api lookup {src} -> {data}")
        return data

    async def get_dest_from_src(self, src: str) -> List[str]:
        return await asyncio.to_thread(self.lookup, src)

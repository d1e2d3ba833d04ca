"""
nautobot_client.py
- Queries Nautobot for the site and rack of the device backing a node.
- One GET per lookup; the result is never cached.
"""

from dataclasses import dataclass
from typing import Optional

import requests
from loguru import logger

from node_labeler.core.constants import DEFAULT_HTTP_TIMEOUT, NAUTOBOT_DEVICES_PATH
from node_labeler.core.errors import (
    DecodeError,
    DeviceNotFoundError,
    TransportError,
    UpstreamStatusError,
)
from node_labeler.lib import metrics


@dataclass(frozen=True)
class DeviceRecord:
    site_name: str = ""
    rack_name: str = ""


def lookup_key(node_name: str) -> str:
    """
    Reduce a node name to the short host token Nautobot devices are named by.

    "node1.cluster.local" -> "node1". A name without a dot, or whose first
    character is the dot, is used verbatim.
    """
    dot = node_name.find(".")
    if dot > 0:
        return node_name[:dot]
    return node_name


def _pick_name(obj) -> str:
    # Rack is nullable on Nautobot devices
    if not isinstance(obj, dict):
        return ""
    for field in ("name", "display"):
        value = obj.get(field)
        if value is not None and not isinstance(value, str):
            raise DecodeError(f"expected string '{field}', got {type(value).__name__}")
    return obj.get("name") or obj.get("display") or ""


def parse_device_response(payload, key: str) -> DeviceRecord:
    """
    Extract site/rack from a /api/dcim/devices/ envelope.

    Args:
        payload: Decoded JSON body.
        key (str): Lookup key, used for the not-found error.

    Returns:
        DeviceRecord: Possibly with empty fields; emptiness is not an error here.

    Raises:
        DecodeError: The body is not an object with a "results" list.
        DeviceNotFoundError: The "results" list is empty.
    """
    if not isinstance(payload, dict):
        raise DecodeError(f"expected a JSON object, got {type(payload).__name__}")
    results = payload.get("results")
    if not isinstance(results, list):
        raise DecodeError("missing 'results' list")
    if not results:
        raise DeviceNotFoundError(key)

    first = results[0]
    if not isinstance(first, dict):
        raise DecodeError(f"expected device object, got {type(first).__name__}")
    return DeviceRecord(
        site_name=_pick_name(first.get("site")),
        rack_name=_pick_name(first.get("rack")),
    )


class NautobotClient:
    """Minimal read-only client for Nautobot device lookups."""

    def __init__(self, base_url, auth_token, timeout=DEFAULT_HTTP_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        # requests module and Session share the get() signature
        self.http = session or requests

    def _headers(self):
        return {
            "Authorization": f"Token {self.auth_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def get_device_data(self, node_name: str, timeout: Optional[float] = None) -> DeviceRecord:
        """
        Look up the device for a node and return its site and rack names.

        Args:
            node_name (str): Kubernetes node name (may be an FQDN).
            timeout (float, optional): Tighter bound than the client default,
                e.g. what is left of the reconcile deadline.

        Raises:
            InventoryLookupError: One of TransportError, UpstreamStatusError,
                DecodeError or DeviceNotFoundError.
        """
        key = lookup_key(node_name)
        url = f"{self.base_url}{NAUTOBOT_DEVICES_PATH}"
        effective_timeout = self.timeout if timeout is None else min(self.timeout, timeout)
        if effective_timeout <= 0:
            metrics.inventory_lookups_total.labels(outcome="transport_error").inc()
            raise TransportError(f"deadline exceeded before requesting {key}")

        logger.debug(f"[nautobot] GET {url}?name={key} (node={node_name}, timeout={effective_timeout:.1f}s)")
        try:
            response = self.http.get(
                url,
                params={"name": key},
                headers=self._headers(),
                timeout=effective_timeout,
            )
        # urllib3 raises ValueError for timeouts it refuses to apply
        except (requests.RequestException, ValueError) as e:
            metrics.inventory_lookups_total.labels(outcome="transport_error").inc()
            raise TransportError(e) from e

        if not 200 <= response.status_code < 300:
            metrics.inventory_lookups_total.labels(outcome="status_error").inc()
            raise UpstreamStatusError(response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            metrics.inventory_lookups_total.labels(outcome="decode_error").inc()
            raise DecodeError(e) from e

        try:
            record = parse_device_response(payload, key)
        except DeviceNotFoundError:
            metrics.inventory_lookups_total.labels(outcome="not_found").inc()
            raise
        except DecodeError:
            metrics.inventory_lookups_total.labels(outcome="decode_error").inc()
            raise

        metrics.inventory_lookups_total.labels(outcome="found").inc()
        logger.debug(f"[nautobot] {key}: site='{record.site_name}' rack='{record.rack_name}'")
        return record

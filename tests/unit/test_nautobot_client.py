"""Unit tests for the Nautobot inventory client."""

from unittest.mock import Mock

import pytest
import requests

from node_labeler.core.errors import (
    DecodeError,
    DeviceNotFoundError,
    InventoryLookupError,
    TransportError,
    UpstreamStatusError,
)
from node_labeler.lib.inventory.nautobot_client import (
    DeviceRecord,
    NautobotClient,
    lookup_key,
    parse_device_response,
)


def make_response(status=200, payload=None, json_error=None):
    response = Mock()
    response.status_code = status
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


def make_client(response=None, error=None, timeout=10):
    session = Mock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    client = NautobotClient("https://nautobot.example.com/", "secret", timeout=timeout, session=session)
    return client, session


class TestLookupKey:
    def test_fqdn_is_truncated_at_first_dot(self):
        assert lookup_key("node1.cluster.local") == "node1"

    def test_name_without_dot_is_used_verbatim(self):
        assert lookup_key("node2") == "node2"

    def test_leading_dot_keeps_whole_name(self):
        assert lookup_key(".hidden") == ".hidden"


class TestParseDeviceResponse:
    def test_name_falls_back_to_display(self):
        payload = {"results": [{"site": {"name": "", "display": "SiteA"}, "rack": {"name": "R1", "display": ""}}]}

        assert parse_device_response(payload, "node1") == DeviceRecord(site_name="SiteA", rack_name="R1")

    def test_name_preferred_over_display(self):
        payload = {"results": [{"site": {"name": "dc1", "display": "DC One"}, "rack": {"name": "r12", "display": "Rack 12"}}]}

        assert parse_device_response(payload, "node1") == DeviceRecord("dc1", "r12")

    def test_empty_results_is_not_found(self):
        with pytest.raises(DeviceNotFoundError) as exc:
            parse_device_response({"results": []}, "node1")
        assert exc.value.key == "node1"

    def test_null_rack_yields_empty_string(self):
        payload = {"results": [{"site": {"name": "dc1"}, "rack": None}]}

        assert parse_device_response(payload, "node1") == DeviceRecord("dc1", "")

    def test_only_first_result_is_used(self):
        payload = {"results": [{"site": {"name": "dc1"}, "rack": {"name": "r1"}}, {"site": {"name": "dc2"}, "rack": {"name": "r2"}}]}

        assert parse_device_response(payload, "node1") == DeviceRecord("dc1", "r1")

    @pytest.mark.parametrize("payload", [[], "text", {"count": 0}, {"results": "nope"}, {"results": ["x"]}])
    def test_unexpected_envelope_is_decode_error(self, payload):
        with pytest.raises(DecodeError):
            parse_device_response(payload, "node1")

    @pytest.mark.parametrize(
        "site, rack",
        [
            ({"name": 42}, {"name": "r1"}),
            ({"name": "dc1"}, {"name": {"id": 1}}),
            ({"name": "", "display": ["SiteA"]}, None),
            ({"name": None, "display": 7}, None),
        ],
    )
    def test_non_string_names_are_decode_error(self, site, rack):
        with pytest.raises(DecodeError):
            parse_device_response({"results": [{"site": site, "rack": rack}]}, "node1")

    def test_null_name_falls_back_to_display(self):
        payload = {"results": [{"site": {"name": None, "display": "SiteA"}, "rack": None}]}

        assert parse_device_response(payload, "node1") == DeviceRecord("SiteA", "")


class TestGetDeviceData:
    def test_request_shape(self):
        payload = {"results": [{"site": {"name": "dc1"}, "rack": {"name": "r12"}}]}
        client, session = make_client(make_response(payload=payload))

        record = client.get_device_data("node1.cluster.local")

        assert record == DeviceRecord("dc1", "r12")
        args, kwargs = session.get.call_args
        assert args[0] == "https://nautobot.example.com/api/dcim/devices/"
        assert kwargs["params"] == {"name": "node1"}
        assert kwargs["headers"]["Authorization"] == "Token secret"
        assert kwargs["timeout"] == 10

    def test_timeout_bounded_by_caller(self):
        payload = {"results": [{"site": {"name": "dc1"}, "rack": {"name": "r12"}}]}
        client, session = make_client(make_response(payload=payload))

        client.get_device_data("node1", timeout=2.5)

        assert session.get.call_args.kwargs["timeout"] == 2.5

    def test_caller_timeout_never_exceeds_client_timeout(self):
        payload = {"results": [{"site": {"name": "dc1"}, "rack": {"name": "r12"}}]}
        client, session = make_client(make_response(payload=payload), timeout=10)

        client.get_device_data("node1", timeout=60)

        assert session.get.call_args.kwargs["timeout"] == 10

    @pytest.mark.parametrize("status", [301, 404, 500, 503])
    def test_non_2xx_status(self, status):
        client, _ = make_client(make_response(status=status))

        with pytest.raises(UpstreamStatusError) as exc:
            client.get_device_data("node1")
        assert exc.value.code == status

    def test_transport_failure(self):
        client, _ = make_client(error=requests.ConnectionError("connection refused"))

        with pytest.raises(TransportError) as exc:
            client.get_device_data("node1")
        assert isinstance(exc.value.cause, requests.ConnectionError)

    def test_timeout_is_transport_failure(self):
        client, _ = make_client(error=requests.Timeout("read timed out"))

        with pytest.raises(TransportError):
            client.get_device_data("node1")

    @pytest.mark.parametrize("timeout", [0.0, -1.0])
    def test_exhausted_deadline_is_transport_failure(self, timeout):
        client, session = make_client(make_response(payload={"results": []}))

        with pytest.raises(TransportError):
            client.get_device_data("node1", timeout=timeout)
        session.get.assert_not_called()

    def test_rejected_timeout_is_transport_failure(self):
        client, _ = make_client(error=ValueError("Attempted to set connect timeout to 0.0"))

        with pytest.raises(TransportError):
            client.get_device_data("node1", timeout=0.001)

    def test_invalid_json_is_decode_error(self):
        client, _ = make_client(make_response(json_error=ValueError("Expecting value")))

        with pytest.raises(DecodeError):
            client.get_device_data("node1")

    def test_empty_results_raises_not_found(self):
        client, _ = make_client(make_response(payload={"results": []}))

        with pytest.raises(DeviceNotFoundError):
            client.get_device_data("node1.cluster.local")

    def test_all_failures_share_lookup_base_class(self):
        client, _ = make_client(make_response(status=503))

        with pytest.raises(InventoryLookupError):
            client.get_device_data("node1")

    def test_partially_empty_record_is_returned(self):
        payload = {"results": [{"site": {"name": "", "display": ""}, "rack": {"name": "r1"}}]}
        client, _ = make_client(make_response(payload=payload))

        assert client.get_device_data("node1") == DeviceRecord("", "r1")

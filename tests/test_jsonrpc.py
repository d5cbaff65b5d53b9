import json

import pytest

from jito_bundler.errors import DecodeRejected, ProtocolError, RpcError
from jito_bundler.jsonrpc import (
    BundleStatus,
    build_request,
    decode_body,
    decode_bundle_statuses,
    extract_rpc_error,
    parse_response,
)

STATUS_RECORDS = [
    {
        "bundle_id": "bundle-1",
        "transactions": ["sig-a", "sig-b"],
        "slot": 242804011,
        "status": "finalized",
    },
    {"bundleId": "bundle-2", "transactions": [], "slot": None},
]


class TestEnvelope:

    pytestmark = pytest.mark.unit

    def test_build_request(self):
        assert build_request("getTipAccounts", []) == {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getTipAccounts",
            "params": [],
        }

    def test_decode_body(self):
        assert decode_body("\u00e9t\u00e9".encode()) == "\u00e9t\u00e9"
        with pytest.raises(ProtocolError, match="not valid UTF-8"):
            decode_body(b"\xff\xfe{}")

    def test_parse_result(self):
        body = json.dumps({"jsonrpc": "2.0", "id": 1, "result": "bundle-123"})
        assert parse_response(body) == "bundle-123"

    def test_result_without_version_or_id(self):
        assert parse_response('{"result": ["a", "b"]}') == ["a", "b"]

    def test_rpc_error_preserves_code_and_data(self):
        body = json.dumps({
            "jsonrpc": "2.0",
            "id": 1,
            "error": {"code": -32002, "message": "Bundle simulation failed", "data": {"logs": ["x"]}},
        })
        with pytest.raises(RpcError, match="Bundle simulation failed") as exc_info:
            parse_response(body)

        err = exc_info.value
        assert not isinstance(err, DecodeRejected)
        assert err.code == -32002
        assert err.data == {"logs": ["x"]}
        assert err.message == "Bundle simulation failed"

    @pytest.mark.parametrize("message", [
        "transaction #0 could not be decoded",
        "bundle transaction could not be decoded as base64",
    ])
    def test_decode_failure_is_classified(self, message):
        body = json.dumps({"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": message}})
        with pytest.raises(DecodeRejected):
            parse_response(body)

    def test_missing_result_and_error(self):
        with pytest.raises(ProtocolError, match="missing 'result'"):
            parse_response('{"jsonrpc": "2.0", "id": 1}')

    def test_null_result(self):
        with pytest.raises(ProtocolError):
            parse_response('{"jsonrpc": "2.0", "id": 1, "result": null}')

    def test_invalid_json(self):
        with pytest.raises(ProtocolError, match="JSON parse error"):
            parse_response("invalid json")

    def test_non_object_body(self):
        with pytest.raises(ProtocolError):
            parse_response('["not", "an", "envelope"]')

    def test_extract_rpc_error(self):
        body = json.dumps({"error": {"code": -32602, "message": "transaction #0 could not be decoded"}})
        assert isinstance(extract_rpc_error(body), DecodeRejected)
        assert extract_rpc_error("Bad Request") is None
        assert extract_rpc_error('{"result": "ok"}') is None


class TestBundleStatuses:

    pytestmark = pytest.mark.unit

    def test_wrapper_and_bare_array_decode_the_same(self):
        wrapped = decode_bundle_statuses({"context": {"slot": 242804012}, "value": STATUS_RECORDS})
        bare = decode_bundle_statuses(STATUS_RECORDS)

        assert wrapped == bare
        assert wrapped[0] == BundleStatus(
            bundle_id="bundle-1",
            transactions=["sig-a", "sig-b"],
            slot=242804011,
            status="finalized",
        )
        assert wrapped[1].bundle_id == "bundle-2"
        assert wrapped[1].landed_signatures == []

    def test_wrapper_without_context(self):
        assert decode_bundle_statuses({"value": STATUS_RECORDS[:1]})[0].bundle_id == "bundle-1"

    def test_null_value_means_no_statuses(self):
        assert decode_bundle_statuses({"context": {"slot": 1}, "value": None}) == []

    def test_null_entries_are_not_statuses(self):
        with pytest.raises(ProtocolError, match="Unrecognized getBundleStatuses response"):
            decode_bundle_statuses({"value": [None]})

    @pytest.mark.parametrize("result", [
        "bundle-1",
        42,
        {"context": {"slot": 1}},
        {"value": "nope"},
        [{"bundle_id": "b", "transactions": "sig"}],
    ])
    def test_unrecognized_shapes(self, result):
        with pytest.raises(ProtocolError, match="Unrecognized getBundleStatuses response"):
            decode_bundle_statuses(result)

    def test_absent_transactions_means_not_landed(self):
        status = BundleStatus.from_json({"bundle_id": "b"})
        assert status.transactions is None
        assert status.landed_signatures == []

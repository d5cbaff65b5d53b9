import json
from dataclasses import dataclass
from typing import Any, Optional

from .errors import DecodeRejected, ProtocolError, RpcError

JSONRPC_VERSION = "2.0"
# Calls are one-at-a-time per dispatch, so responses never need correlating.
REQUEST_ID = 1

# Messages block engines use when they cannot decode the submitted transaction bytes.
DECODE_FAILURE_MARKERS = ("could not be decoded", "transaction #0")


def build_request(method: str, params: list) -> dict[str, Any]:
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": REQUEST_ID,
        "method": method,
        "params": params,
    }


def decode_body(raw: bytes) -> str:
    """Text of a successful response body. JSON-RPC bodies are UTF-8."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolError(f"Response body is not valid UTF-8: {e} (body={raw[:200]!r})") from e


def _load(body: str) -> Any:
    try:
        return json.loads(body)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"JSON parse error: {e} (body={body})") from e


def rpc_error_from(error: Any) -> RpcError:
    """Build the matching RpcError variant from a JSON-RPC `error` member."""
    if isinstance(error, dict):
        message = str(error.get("message", "Unknown error"))
        code = error.get("code")
        data = error.get("data")
    else:
        message, code, data = str(error), None, None

    if any(marker in message for marker in DECODE_FAILURE_MARKERS):
        return DecodeRejected(message, code, data)
    return RpcError(message, code, data)


def parse_response(body: str) -> Any:
    """
    Decode a response envelope and return its `result`.

    Raises:
        RpcError: the envelope carries an `error` member (DecodeRejected for
            transaction decode failures)
        ProtocolError: the body is not a JSON object, or holds neither a
            result nor an error
    """
    envelope = _load(body)
    if not isinstance(envelope, dict):
        raise ProtocolError(f"Invalid response format: expected a JSON object (body={body})")

    if envelope.get("error") is not None:
        raise rpc_error_from(envelope["error"])

    if envelope.get("result") is None:
        raise ProtocolError("Invalid response format: missing 'result' field")

    return envelope["result"]


def extract_rpc_error(body: str) -> Optional[RpcError]:
    """Best-effort decode of a JSON-RPC error carried in a non-2xx HTTP body."""
    try:
        envelope = json.loads(body)
    except (TypeError, ValueError):
        return None
    if isinstance(envelope, dict) and envelope.get("error") is not None:
        return rpc_error_from(envelope["error"])
    return None


@dataclass
class BundleStatus:
    bundle_id: Optional[str] = None
    transactions: Optional[list[str]] = None  # signatures that landed, when known
    slot: Optional[int] = None
    status: Optional[str] = None

    @property
    def landed_signatures(self) -> list[str]:
        return list(self.transactions or [])

    @classmethod
    def from_json(cls, obj: Any) -> "BundleStatus":
        if not isinstance(obj, dict):
            raise ProtocolError(f"Bundle status must be an object, got {obj!r}")

        transactions = obj.get("transactions")
        if transactions is not None and not (
            isinstance(transactions, list) and all(isinstance(t, str) for t in transactions)
        ):
            raise ProtocolError(f"Invalid 'transactions' in bundle status: {transactions!r}")

        slot = obj.get("slot")
        if slot is not None and (isinstance(slot, bool) or not isinstance(slot, int)):
            raise ProtocolError(f"Invalid 'slot' in bundle status: {slot!r}")

        bundle_id = obj.get("bundle_id", obj.get("bundleId"))
        status = obj.get("status")
        return cls(
            bundle_id=None if bundle_id is None else str(bundle_id),
            transactions=transactions,
            slot=slot,
            status=None if status is None else str(status),
        )


class _ShapeMismatch(Exception):
    pass


def _decode_status_wrapper(result: Any) -> list[BundleStatus]:
    if not isinstance(result, dict) or "value" not in result:
        raise _ShapeMismatch()
    value = result["value"]
    if value is None:
        return []
    if not isinstance(value, list):
        raise _ShapeMismatch()
    return _decode_status_array(value)


def _decode_status_array(result: Any) -> list[BundleStatus]:
    if not isinstance(result, list):
        raise _ShapeMismatch()
    try:
        return [BundleStatus.from_json(item) for item in result]
    except ProtocolError as e:
        raise _ShapeMismatch() from e


def decode_bundle_statuses(result: Any) -> list[BundleStatus]:
    """
    Decode a getBundleStatuses result.

    Deployments answer either with `{"context": ..., "value": [...]}` or with
    the bare array. The wrapper is tried first.
    """
    for decoder in (_decode_status_wrapper, _decode_status_array):
        try:
            return decoder(result)
        except _ShapeMismatch:
            continue
    raise ProtocolError(f"Unrecognized getBundleStatuses response: {json.dumps(result)}")

from typing import Any, Optional


class JitoBundlerError(Exception):
    """Base class for every failure raised by the bundle client."""

    # Whether the endpoint-fallback loop may try the next block engine.
    retryable = False


class ConfigurationError(JitoBundlerError):
    """No endpoints configured, unknown region, invalid percentile, ..."""


class ProtocolError(JitoBundlerError):
    """The block engine answered with something we could not decode."""


class InvalidBundle(JitoBundlerError, ValueError):
    """The caller passed transactions that cannot be submitted as a bundle."""


class TransportError(JitoBundlerError):
    retryable = True

    def __init__(self, url: str, cause: BaseException):
        self.url = url
        self.cause = cause
        super().__init__(f"Request error for {url}: {cause!r}")


class HttpStatusError(JitoBundlerError):
    retryable = True

    def __init__(self, status: int, url: str, body: str = ""):
        self.status = status
        self.url = url
        self.body = body
        super().__init__(f"HTTP error {status} for {url} (body={body})")


class RateLimited(HttpStatusError):
    """429 after all attempts on one endpoint."""


class ServerError(HttpStatusError):
    """5xx after all attempts on one endpoint."""


class ClientError(HttpStatusError):
    """4xx other than 429. The request itself was rejected, so it is never retried."""

    retryable = False

    def __init__(self, status: int, url: str, body: str = "", rpc_error: Optional["RpcError"] = None):
        super().__init__(status, url, body)
        self.rpc_error = rpc_error

    @property
    def decode_rejected(self) -> bool:
        return isinstance(self.rpc_error, DecodeRejected)


class RpcError(JitoBundlerError):
    """The block engine returned a JSON-RPC error object."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        self.message = message
        self.code = code
        self.data = data
        super().__init__(f"JSON-RPC error: {message}")


class DecodeRejected(RpcError):
    """The block engine could not decode the submitted transaction encoding."""


class EndpointsExhausted(JitoBundlerError):
    def __init__(self, last_error: Optional[BaseException]):
        self.last_error = last_error
        reason = str(last_error) if last_error is not None else "unknown"
        super().__init__(f"All block engine endpoints failed (last error: {reason})")

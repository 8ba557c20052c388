class LaunchkitError(Exception):
    pass


class KeyDecodeError(LaunchkitError):
    """Provided key material is present but malformed."""


class NoMintError(LaunchkitError):
    """Token step requested before a mint exists in the session."""


class InvalidAmount(LaunchkitError):
    pass


class IdlError(LaunchkitError):
    pass


class ExternalCallError(LaunchkitError):
    """Failure surfaced by the RPC node or an on-chain program."""


class RpcError(ExternalCallError):
    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        super().__init__(f"{method} failed: {message}" + (f" (code {code})" if code is not None else ""))


class TransactionFailed(ExternalCallError):
    def __init__(self, signature: str, reason: str) -> None:
        self.signature = signature
        self.reason = reason
        super().__init__(f"Transaction {signature[:16]}... failed: {reason}")


class FetchError(ExternalCallError):
    pass

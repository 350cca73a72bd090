class ScanPreconditionError(Exception):
    """A scan cannot proceed at all; the result is marked failed."""


class UnsupportedChainError(ScanPreconditionError):
    pass


class NoRpcEndpointError(ScanPreconditionError):
    pass


class AddressNotFoundError(ScanPreconditionError):
    """The address does not resolve to any on-chain entity."""


class ChainUnreachableError(ScanPreconditionError):
    """The chain did not answer the existence check for the address."""


class AdapterUnavailableError(Exception):
    """Network or timeout failure talking to a chain. Degrades, never fatal."""

    def __init__(self, chain: str, message: str):
        super().__init__(f"{chain}: {message}")
        self.chain = chain


class InvalidTransitionError(RuntimeError):
    """Programmer error: a scan status transition outside the allowed graph."""

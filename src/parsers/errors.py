"""Error taxonomy shared by the upstream clients and the analysis components.

Clients raise ``UpstreamError`` subclasses; components catch them at their
boundary and return degraded sentinel results. Only ``InvalidAddressError``
is allowed to reach a caller.
"""

MIN_ADDRESS_LEN = 32
MAX_ADDRESS_LEN = 44


class InvalidAddressError(ValueError):
    pass


class UpstreamError(Exception):
    pass


class HeliusError(UpstreamError):
    pass


class JupiterError(UpstreamError):
    pass


class TrenchBotError(UpstreamError):
    pass


class MagicEdenError(UpstreamError):
    pass


def validate_address(address: str, *, kind: str = "address") -> str:
    """Strip and length-check a wallet or mint address (32-44 chars).

    Base58 format is not checked; upstream services reject malformed ids.
    """
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddressError(f"{kind} is required")
    cleaned = address.strip()
    if not MIN_ADDRESS_LEN <= len(cleaned) <= MAX_ADDRESS_LEN:
        raise InvalidAddressError(
            f"{kind} must be {MIN_ADDRESS_LEN}-{MAX_ADDRESS_LEN} characters, got {len(cleaned)}"
        )
    return cleaned

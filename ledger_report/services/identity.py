"""Account identity: base58check display form <-> raw key bytes."""

from dataclasses import dataclass
from typing import Annotated

import base58
from pydantic import PlainSerializer, PlainValidator

from ledger_report.services.errors import InvalidIdentityError

# Display strings are base58check over VERSION || key_type || public key.
ADDRESS_VERSION: int = 0x00
KEY_TYPE_ECC_COMPACT: int = 0x00
KEY_TYPE_ED25519: int = 0x01
KNOWN_KEY_TYPES: frozenset[int] = frozenset({KEY_TYPE_ECC_COMPACT, KEY_TYPE_ED25519})
PUBLIC_KEY_LENGTH: int = 32
RAW_LENGTH: int = 1 + PUBLIC_KEY_LENGTH


@dataclass(frozen=True, slots=True)
class AccountIdentity:
    """A ledger participant.

    ``raw`` is the canonical binary form (key-type byte followed by the public
    key). The upper nibble of the key-type byte carries the network, so only
    the lower nibble is checked against the known key types.
    """

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != RAW_LENGTH:
            raise InvalidIdentityError(
                f"Identity must be {RAW_LENGTH} bytes, got {len(self.raw)}"
            )
        if self.raw[0] & 0x0F not in KNOWN_KEY_TYPES:
            raise InvalidIdentityError(f"Unknown key type 0x{self.raw[0]:02x}")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "AccountIdentity":
        return cls(bytes(raw))

    @classmethod
    def parse(cls, display: str) -> "AccountIdentity":
        if not isinstance(display, str) or not display.strip():
            raise InvalidIdentityError("Identity string is empty")
        try:
            payload: bytes = base58.b58decode_check(display.strip())
        except ValueError as e:
            raise InvalidIdentityError(f"Not a base58check identity: {display!r}") from e
        if not payload or payload[0] != ADDRESS_VERSION:
            raise InvalidIdentityError(f"Unsupported identity version in {display!r}")
        return cls(payload[1:])

    def to_display(self) -> str:
        return base58.b58encode_check(bytes([ADDRESS_VERSION]) + self.raw).decode("ascii")

    def matches(self, raw: bytes) -> bool:
        return self.raw == bytes(raw)

    def __str__(self) -> str:
        return self.to_display()


def _coerce_identity(value: object) -> AccountIdentity:
    if isinstance(value, AccountIdentity):
        return value
    if isinstance(value, str):
        return AccountIdentity.parse(value)
    if isinstance(value, (bytes, bytearray)):
        return AccountIdentity.from_bytes(bytes(value))
    raise InvalidIdentityError(f"Cannot read an identity from {type(value).__name__}")


# Pydantic field type: accepts a display string, serializes back to one.
Identity = Annotated[
    AccountIdentity,
    PlainValidator(_coerce_identity),
    PlainSerializer(lambda identity: identity.to_display(), return_type=str),
]

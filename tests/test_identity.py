"""Tests for ledger_report.services.identity."""

import base58
import pytest
from pydantic import BaseModel, ValidationError

from ledger_report.services.errors import InvalidIdentityError
from ledger_report.services.identity import AccountIdentity, Identity


def _ident(n: int, key_type: int = 0x01) -> AccountIdentity:
    return AccountIdentity.from_bytes(bytes([key_type]) + bytes([n]) * 32)


class TestRoundTrip:
    def test_parse_inverts_display(self) -> None:
        ident: AccountIdentity = AccountIdentity.from_bytes(b"\x01" + bytes(range(32)))
        assert AccountIdentity.parse(ident.to_display()) == ident

    def test_ecc_compact_key_type(self) -> None:
        ident: AccountIdentity = _ident(7, key_type=0x00)
        assert AccountIdentity.parse(ident.to_display()).raw == ident.raw

    def test_network_nibble_ignored(self) -> None:
        ident: AccountIdentity = _ident(3, key_type=0x11)
        assert AccountIdentity.parse(ident.to_display()) == ident

    def test_str_is_display(self) -> None:
        ident: AccountIdentity = _ident(9)
        assert str(ident) == ident.to_display()

    def test_surrounding_whitespace(self) -> None:
        ident: AccountIdentity = _ident(4)
        assert AccountIdentity.parse(f"  {ident.to_display()}\n") == ident

    def test_matches_raw(self) -> None:
        ident: AccountIdentity = _ident(5)
        assert ident.matches(b"\x01" + b"\x05" * 32)
        assert not ident.matches(_ident(6).raw)


class TestInvalid:
    def test_empty(self) -> None:
        with pytest.raises(InvalidIdentityError):
            AccountIdentity.parse("")

    def test_not_base58(self) -> None:
        with pytest.raises(InvalidIdentityError):
            AccountIdentity.parse("0OIl-not-base58")

    def test_bad_checksum(self) -> None:
        display: str = _ident(1).to_display()
        tampered: str = display[:-1] + ("2" if display[-1] != "2" else "3")
        with pytest.raises(InvalidIdentityError):
            AccountIdentity.parse(tampered)

    def test_wrong_version(self) -> None:
        display: str = base58.b58encode_check(b"\x01" + _ident(1).raw).decode("ascii")
        with pytest.raises(InvalidIdentityError, match="version"):
            AccountIdentity.parse(display)

    def test_wrong_length(self) -> None:
        with pytest.raises(InvalidIdentityError, match="33 bytes"):
            AccountIdentity.from_bytes(b"\x01" + bytes(31))

    def test_unknown_key_type(self) -> None:
        with pytest.raises(InvalidIdentityError, match="key type"):
            AccountIdentity.from_bytes(b"\x05" + bytes(32))

    def test_truncated_payload(self) -> None:
        display: str = base58.b58encode_check(b"\x00\x01" + bytes(10)).decode("ascii")
        with pytest.raises(InvalidIdentityError):
            AccountIdentity.parse(display)


class _Holder(BaseModel):
    who: Identity


class TestPydanticField:
    def test_coerces_display_string(self) -> None:
        ident: AccountIdentity = _ident(2)
        assert _Holder(who=ident.to_display()).who == ident

    def test_accepts_instance(self) -> None:
        ident: AccountIdentity = _ident(2)
        assert _Holder(who=ident).who is ident

    def test_malformed_is_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            _Holder(who="definitely-not-an-address")

    def test_serializes_to_display(self) -> None:
        ident: AccountIdentity = _ident(2)
        assert _Holder(who=ident).model_dump() == {"who": ident.to_display()}

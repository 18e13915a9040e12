"""
Tests for the spend entry point (prepare and inline-sign modes).
"""

from __future__ import annotations

import json

import pytest

from tagspend.config import Settings
from tagspend.errors import SpendAborted
from tagspend.models import SigningHandoff, SpendMode
from tagspend.script import create_tag_script, decode_pubkey
from tagspend.sighash import compute_witness_sighash
from tagspend.signer import LocalSigner, PresignedSigner, verify_signature
from tagspend.spend import ProcessHost, complete_handoff, prepare_spend, spend
from tagspend.transaction import Transaction


class TestPrepareMode:
    """Mode A: build the handoff for an offline signer."""

    def test_handoff_keys(self, reference_settings: Settings, host) -> None:
        """The handoff has the four wire keys."""
        result = json.loads(spend(settings=reference_settings, host=host))
        assert set(result) == {"RawTxHex", "InputIndex", "SigHashHex", "RedeemScriptHex"}
        assert result["InputIndex"] == 0

    def test_handoff_is_consistent(self, reference_settings: Settings, host) -> None:
        """Raw tx, script and digest in the handoff agree."""
        handoff = SigningHandoff.from_json(spend(settings=reference_settings, host=host))
        tx = Transaction.from_hex(handoff.raw_tx_hex)
        script = bytes.fromhex(handoff.redeem_script_hex)

        assert script == create_tag_script(reference_settings.pubkey, reference_settings.tag)
        assert len(tx.outputs) == 2
        assert tx.outputs[1].value == 112_768
        assert tx.inputs[0].witness == []
        assert compute_witness_sighash(tx, 0, script, 121_768).hex() == handoff.sighash_hex

    def test_payload_ignored(self, reference_settings: Settings, host) -> None:
        """The payload does not affect prepare mode."""
        first = spend("1000", settings=reference_settings, host=host)
        second = spend(None, settings=reference_settings, host=host)
        assert first == second

    def test_no_secret_needed(self, reference_settings: Settings, make_host) -> None:
        """Prepare mode never reads the key."""
        empty_host = make_host()
        spend(settings=reference_settings, host=empty_host)
        assert empty_host.aborted is None

    def test_taproot_destination(self, host) -> None:
        """A witness v1 destination goes through to the handoff."""
        settings = Settings(
            destination_address="tb1pqqqqp399et2xygdj5xreqhjjvcmzhxw4aywxecjdzew6hylgvsesf3hn0c"
        )
        handoff = SigningHandoff.from_json(spend(settings=settings, host=host))
        tx = Transaction.from_hex(handoff.raw_tx_hex)
        assert tx.outputs[0].script_pubkey[:2] == bytes([0x51, 0x20])

    def test_handoff_roundtrip(self, reference_settings: Settings) -> None:
        """The handoff survives JSON."""
        handoff = prepare_spend(reference_settings).handoff()
        assert SigningHandoff.from_json(handoff.to_json()) == handoff


class TestSignMode:
    """Mode B: sign inline with held key material."""

    def test_returns_signed_tx(self, signing_settings: Settings, host) -> None:
        """The result carries [signature, script] and verifies."""
        raw_hex = spend("1000", mode=SpendMode.SIGN, settings=signing_settings, host=host)
        tx = Transaction.from_hex(raw_hex)
        prepared = prepare_spend(signing_settings)

        signature, script = tx.inputs[0].witness
        assert script == prepared.redeem_script
        assert verify_signature(decode_pubkey(signing_settings.pubkey), prepared.digest, signature)
        assert tx.txid() == prepared.tx.txid()

    def test_logs_each_stage(self, signing_settings: Settings, host) -> None:
        """Address, payload, digest and signed tx are logged."""
        raw_hex = spend("1000", mode=SpendMode.SIGN, settings=signing_settings, host=host)
        prepared = prepare_spend(signing_settings)

        assert any(prepared.address in line for line in host.logs)
        assert any(prepared.digest.hex() in line for line in host.logs)
        assert any(raw_hex in line for line in host.logs)
        assert any("1000" in line for line in host.logs)

    def test_deterministic(self, signing_settings: Settings, host) -> None:
        """Signing twice gives the same transaction."""
        first = spend(mode=SpendMode.SIGN, settings=signing_settings, host=host)
        second = spend(mode=SpendMode.SIGN, settings=signing_settings, host=host)
        assert first == second

    def test_matches_offline_flow(
        self, signing_settings: Settings, host, private_key_hex: str
    ) -> None:
        """Signing the handoff later gives the same transaction as inline signing."""
        inline = spend(mode=SpendMode.SIGN, settings=signing_settings, host=host)

        handoff = SigningHandoff.from_json(spend(settings=signing_settings, host=host))
        offline = complete_handoff(handoff, LocalSigner(bytes.fromhex(private_key_hex)))

        assert offline == inline

    def test_presigned_signature(
        self, signing_settings: Settings, host, private_key_hex: str, pubkey_hex: str
    ) -> None:
        handoff = prepare_spend(signing_settings).handoff()
        signature = LocalSigner(bytes.fromhex(private_key_hex)).sign(
            bytes.fromhex(handoff.sighash_hex)
        )

        raw_hex = complete_handoff(handoff, PresignedSigner(signature, bytes.fromhex(pubkey_hex)))
        assert raw_hex == spend(mode=SpendMode.SIGN, settings=signing_settings, host=host)

    def test_custom_secret_name(self, signing_settings: Settings, make_host, private_key_hex):
        """private_key_secret selects the secret."""
        settings = signing_settings.model_copy(update={"private_key_secret": "OTHER_KEY"})
        custom_host = make_host({"OTHER_KEY": private_key_hex})
        assert spend(mode=SpendMode.SIGN, settings=settings, host=custom_host)


class TestAbort:
    """Errors abort through the host with no result."""

    def test_missing_key_material(self, signing_settings: Settings, make_host) -> None:
        """Abort happens after the payload is logged."""
        empty_host = make_host()
        with pytest.raises(SpendAborted, match="No private key material"):
            spend(mode=SpendMode.SIGN, settings=signing_settings, host=empty_host)
        assert empty_host.aborted is not None
        assert empty_host.logs[-1].startswith("Payload")

    def test_key_does_not_match_script(self, reference_settings: Settings, host) -> None:
        """The reference pubkey is not the test key's."""
        with pytest.raises(SpendAborted, match="does not match"):
            spend(mode=SpendMode.SIGN, settings=reference_settings, host=host)

    def test_malformed_pubkey(self, host) -> None:
        """Bad pubkey aborts."""
        settings = Settings(pubkey="02zz")
        with pytest.raises(SpendAborted, match="public key"):
            spend(settings=settings, host=host)
        assert host.aborted is not None

    def test_insufficient_funds(self, host) -> None:
        """Underfunded spend aborts."""
        settings = Settings(utxo_amount=8_000)
        with pytest.raises(SpendAborted, match="short"):
            spend(settings=settings, host=host)

    def test_invalid_txid(self, host) -> None:
        """Short txid aborts."""
        settings = Settings(utxo_txid="1234")
        with pytest.raises(SpendAborted, match="Txid"):
            spend(settings=settings, host=host)

    def test_unvalidated_amount_above_supply(self, host) -> None:
        """Settings built without validation still abort instead of raising from struct."""
        values = {**Settings().model_dump(), "utxo_amount": 2**63}
        settings = Settings.model_construct(**values)
        with pytest.raises(SpendAborted):
            spend(settings=settings, host=host)
        assert host.aborted is not None

    def test_unvalidated_version_out_of_range(self, host) -> None:
        """A version that skipped validation aborts before serialization."""
        values = {**Settings().model_dump(), "tx_version": 2**32}
        settings = Settings.model_construct(**values)
        with pytest.raises(SpendAborted, match="version"):
            spend(settings=settings, host=host)

    def test_dust_change_collapses(self, host) -> None:
        """Dust change leaves a single output."""
        settings = Settings(utxo_amount=7_500, send_amount=7_000, fee_amount=500)
        handoff = SigningHandoff.from_json(spend(settings=settings, host=host))
        assert len(Transaction.from_hex(handoff.raw_tx_hex).outputs) == 1


class TestProcessHost:
    def test_get_secret(self) -> None:
        """Empty values count as absent."""
        host = ProcessHost({"KEY": "abc", "EMPTY": ""})
        assert host.get_secret("KEY") == "abc"
        assert host.get_secret("EMPTY") is None
        assert host.get_secret("MISSING") is None

    def test_abort_raises(self) -> None:
        """abort raises SpendAborted with the reason."""
        with pytest.raises(SpendAborted) as exc_info:
            ProcessHost({}).abort("boom")
        assert exc_info.value.reason == "boom"

    def test_default_host_reads_environment(
        self, signing_settings: Settings, monkeypatch: pytest.MonkeyPatch, private_key_hex: str
    ) -> None:
        """Without a host the process environment is used."""
        monkeypatch.setenv("TAGSPEND_PRIVATE_KEY", private_key_hex)
        assert spend(mode=SpendMode.SIGN, settings=signing_settings)

    def test_default_host_missing_key(self, signing_settings: Settings) -> None:
        """Without a host a missing key still aborts."""
        with pytest.raises(SpendAborted):
            spend(mode=SpendMode.SIGN, settings=signing_settings)

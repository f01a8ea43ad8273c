"""
Tests for license.json loading and license key validation.
"""

import pytest

from db.licensing.descriptor import (
    LicenseDescriptor,
    LicenseDescriptorReader,
    ValidationStatus,
)
from db.licensing.license_token import b64url_encode
from tests.utils.seed import TEST_SECRET, signed_key, write_license


def descriptor(**overrides):
    document = {"product": "OpenDesk", "tier": "PRO", "id": "LIC-1"}
    document.update(overrides)
    return LicenseDescriptor.from_document(document)


class TestLoad:
    """Finding and parsing license.json."""

    def test_no_file_returns_none(self, reader):
        assert reader.load() is None
        assert reader.read_count == 0

    def test_container_path_wins_over_project_path(self, reader, license_dirs):
        container_path, project_path = license_dirs["license_paths"]
        write_license(container_path, product="Container", tier="PRO")
        write_license(project_path, product="Project", tier="PRO")

        assert reader.load().product == "Container"

    def test_falls_back_to_project_path(self, reader, project_license_path):
        write_license(project_license_path, product="OpenDesk", tier="PRO_LIFETIME", validity="Perpetual")

        loaded = reader.load()
        assert loaded.tier == "PRO_LIFETIME"
        assert loaded.validity == "Perpetual"
        assert reader.read_count == 1

    @pytest.mark.parametrize("document", [
        {"tier": "PRO"},
        {"product": "OpenDesk"},
        {"product": "", "tier": "PRO"},
        {"product": "OpenDesk", "tier": ""},
    ])
    def test_missing_required_fields(self, reader, project_license_path, document):
        write_license(project_license_path, **document)

        assert reader.load() is None

    def test_unparsable_json(self, reader, project_license_path):
        project_license_path.parent.mkdir(parents=True)
        project_license_path.write_text("{ product: ")

        assert reader.load() is None

    def test_json_array_is_malformed(self, reader, project_license_path):
        project_license_path.parent.mkdir(parents=True)
        project_license_path.write_text("[1, 2]")

        assert reader.load() is None

    def test_default_candidates(self):
        paths = LicenseDescriptorReader(TEST_SECRET).candidate_paths()

        assert str(paths[0]) == "/app/License/license.json"
        assert paths[1].parts[-2:] == ("License", "license.json")


class TestValidate:
    """License key validation ladder."""

    def test_no_key_is_accepted_unverified(self, reader):
        outcome = reader.validate(descriptor())

        assert outcome.status is ValidationStatus.UNVERIFIED_ACCEPTED
        assert outcome.reason == "no-license-key"
        assert reader.unverified_acceptances["no-license-key"] == 1

    def test_valid_signature(self, reader):
        key = signed_key({"plan": "PRO", "expiresAt": "2025-03-15T00:00:00.000Z"})

        outcome = reader.validate(descriptor(licenseKey=key))

        assert outcome.status is ValidationStatus.VERIFIED
        assert sum(reader.unverified_acceptances.values()) == 0

    def test_key_without_id_is_rejected(self, reader):
        outcome = reader.validate(descriptor(id=None, licenseKey=signed_key({"plan": "PRO"})))

        assert outcome.status is ValidationStatus.REJECTED
        assert outcome.reason == "missing-id"

    def test_non_token_key_accepted_with_id(self, reader):
        outcome = reader.validate(descriptor(licenseKey="ABCD-EFGH-IJKL"))

        assert outcome.status is ValidationStatus.UNVERIFIED_ACCEPTED
        assert outcome.reason == "not-a-token"

    def test_non_token_key_rejected_with_non_string_id(self, reader):
        outcome = reader.validate(descriptor(id=42, licenseKey="ABCD"))

        assert outcome.status is ValidationStatus.REJECTED

    def test_signature_mismatch_accepted_for_pro_tier(self, reader):
        key = signed_key({"plan": "PRO"}, secret="someone-elses-secret")

        outcome = reader.validate(descriptor(tier="PRO_LIFETIME", licenseKey=key))

        assert outcome.status is ValidationStatus.UNVERIFIED_ACCEPTED
        assert outcome.reason == "signature-mismatch"
        assert reader.unverified_acceptances["signature-mismatch"] == 1

    def test_signature_mismatch_rejected_for_other_tier(self, reader):
        key = signed_key({"plan": "PRO"}, secret="someone-elses-secret")

        outcome = reader.validate(descriptor(tier="BASIC", licenseKey=key))

        assert outcome.status is ValidationStatus.REJECTED
        assert outcome.reason == "signature-mismatch"

    def test_expired_payload_rejected_even_for_pro_tier(self, reader):
        key = signed_key({"plan": "PRO", "expiresAt": "2024-03-14T23:59:59Z"})

        outcome = reader.validate(descriptor(tier="PRO", licenseKey=key))

        assert outcome.status is ValidationStatus.REJECTED
        assert outcome.reason == "expired"

    def test_expiry_passes_when_clock_moves(self, reader, clock):
        key = signed_key({"plan": "PRO", "expiresAt": "2024-04-01T00:00:00Z"})
        assert reader.validate(descriptor(licenseKey=key)).accepted

        clock.advance(days=30)
        assert not reader.validate(descriptor(licenseKey=key)).accepted

    def test_epoch_millis_expiry(self, reader):
        # 2024-01-01T00:00:00Z
        key = signed_key({"plan": "PRO", "expiresAt": 1704067200000})

        assert reader.validate(descriptor(licenseKey=key)).reason == "expired"

    def test_descriptor_tier_takes_precedence_over_payload(self, reader):
        key = signed_key({"tier": "PRO"})

        outcome = reader.validate(descriptor(tier="TEAM", licenseKey=key))

        assert outcome.status is ValidationStatus.REJECTED
        assert outcome.reason == "tier-not-pro"

    def test_undecodable_payload_uses_tier_fallback(self, reader):
        from db.licensing.license_token import sign
        header = b64url_encode(b'{"alg":"HS256"}')
        payload = b64url_encode(b"not json")
        key = f"{header}.{payload}.{sign(f'{header}.{payload}', TEST_SECRET)}"

        accepted = reader.validate(descriptor(tier="PRO", licenseKey=key))
        rejected = reader.validate(descriptor(tier="BASIC", licenseKey=key))

        assert accepted.status is ValidationStatus.UNVERIFIED_ACCEPTED
        assert accepted.reason == "undecodable-payload"
        assert rejected.status is ValidationStatus.REJECTED

    def test_free_form_expiry_is_ignored(self, reader):
        key = signed_key({"plan": "PRO", "expiresAt": "March 15, 2020"})

        assert reader.validate(descriptor(licenseKey=key)).status is ValidationStatus.VERIFIED

    def test_non_string_tier_does_not_raise(self, reader):
        key = signed_key({"plan": "PRO"}, secret="someone-elses-secret")
        weird = LicenseDescriptor(product="OpenDesk", tier=["PRO"], id="LIC-1", license_key=key)

        outcome = reader.validate(weird)

        assert outcome.status is ValidationStatus.REJECTED
        assert outcome.reason == "signature-mismatch"

"""
Unit tests for the provenance-aware scoring engine.
"""

import pytest
import sys
from pathlib import Path

# Add package root to path
sys.path.append(str(Path(__file__).parent.parent))

from provider_trust.match.scorer import TrustScorer, round_half_up, score_claim
from provider_trust.models import (
    AddressAssessment,
    EvidenceDetails,
    EvidenceRecord,
    LicenseStatus,
    ProvenanceType,
    ProviderRecord,
    VerificationStatus,
)

CLAIM = ProviderRecord(
    identifier="1234567890",
    name="Dr. Ananya Sharma",
    address="2nd Floor, Aster Clinic, MG Road, Bengaluru, Karnataka 560001, India"
)
CLEAN_ADDRESS = AddressAssessment(inferred_country="IN", confidence=100)


def make_evidence(provenance=ProvenanceType.LIVE_API, license_status=LicenseStatus.ACTIVE,
                  name=CLAIM.name, address=CLAIM.address, identifier=CLAIM.identifier):
    return EvidenceRecord(
        provenance=provenance,
        details=EvidenceDetails(
            identifier=identifier,
            name=name,
            address=address,
            license_status=license_status
        )
    )


class TestRounding:
    """Test cases for half-up rounding."""

    def test_half_rounds_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(1.49) == 1
        assert round_half_up(84.0) == 84


class TestTrustScorer:
    """Test cases for TrustScorer."""

    def setup_method(self):
        """Setup test fixtures."""
        self.scorer = TrustScorer()

    def test_trust_levels(self):
        """Test the provenance trust table."""
        assert self.scorer.trust_level(ProvenanceType.LIVE_API) == 1.0
        assert self.scorer.trust_level(ProvenanceType.CACHED_VALID) == 0.9
        assert self.scorer.trust_level(ProvenanceType.STALE_LIVE) == 0.5
        assert self.scorer.trust_level(ProvenanceType.SIMULATION) == 0.5
        assert self.scorer.trust_level(ProvenanceType.USER_INPUT) == 0.0

    def test_simulation_trust_configurable(self):
        scorer = TrustScorer({"simulation_trust": 0.3})
        assert scorer.trust_level(ProvenanceType.SIMULATION) == 0.3
        assert scorer.trust_level(ProvenanceType.LIVE_API) == 1.0

    def test_exact_live_match_verified(self):
        """Test that a clean claim matching live evidence scores 100."""
        result = self.scorer.score(CLAIM, make_evidence(), CLEAN_ADDRESS)
        assert result.identity_score == 100
        assert result.trust_level == 1.0
        assert result.final_status == VerificationStatus.VERIFIED
        assert result.discrepancies == []
        assert not result.is_fatal

    def test_user_input_never_verified(self):
        """Test that self-reported evidence scores zero."""
        claim = ProviderRecord(identifier="N/A", name=CLAIM.name, address=CLAIM.address)
        evidence = make_evidence(ProvenanceType.USER_INPUT, LicenseStatus.ERROR, identifier="N/A")

        result = self.scorer.score(claim, evidence, CLEAN_ADDRESS)
        assert result.identity_score == 0
        assert result.final_status == VerificationStatus.UNVERIFIED
        assert result.discrepancies == [
            "Missing/invalid registry ID",
            "Unverified: no valid registry ID provided. Add a 10-digit registry ID "
            "to enable registry verification."
        ]

    def test_user_input_with_valid_id_unverified(self):
        """Test self-reported evidence for a claim that has a valid registry ID."""
        evidence = make_evidence(ProvenanceType.USER_INPUT, LicenseStatus.ERROR)

        result = self.scorer.score(CLAIM, evidence, CLEAN_ADDRESS)
        assert result.identity_score == 0
        assert result.final_status == VerificationStatus.UNVERIFIED
        assert result.discrepancies == [
            "Unverified: no trusted registry evidence available for verification."
        ]

    def test_inactive_license_fatal(self):
        """Test that an inactive license overrides everything."""
        result = self.scorer.score(CLAIM, make_evidence(license_status=LicenseStatus.INACTIVE), CLEAN_ADDRESS)
        assert result.is_fatal
        assert result.identity_score == 0
        assert result.final_status == VerificationStatus.BLOCKED
        assert "License is INACTIVE/REVOKED" in result.discrepancies

    def test_inactive_test_provider_blocked(self):
        evidence = make_evidence(
            license_status=LicenseStatus.INACTIVE,
            name="TEST PROVIDER - DO NOT USE",
            address="INVALID ADDRESS"
        )
        result = self.scorer.score(CLAIM, evidence, CLEAN_ADDRESS)
        assert result.final_status == VerificationStatus.BLOCKED
        assert result.identity_score == 0

    def test_outage_flagged(self):
        """Test SIMULATION fallback evidence from an outage."""
        evidence = make_evidence(ProvenanceType.SIMULATION, LicenseStatus.NOT_FOUND)
        result = self.scorer.score(CLAIM, evidence, CLEAN_ADDRESS)

        assert result.identity_score == 25
        assert result.trust_level == 0.5
        assert result.final_status == VerificationStatus.FLAGGED
        assert result.discrepancies == ["License NOT FOUND in registry"]

    def test_outage_with_zero_simulation_trust(self):
        """Test that an untrusted fallback is unverified, not penalized."""
        scorer = TrustScorer({"simulation_trust": 0.0})
        evidence = make_evidence(ProvenanceType.SIMULATION, LicenseStatus.NOT_FOUND)
        result = scorer.score(CLAIM, evidence, CLEAN_ADDRESS)

        assert result.identity_score == 0
        assert result.final_status == VerificationStatus.UNVERIFIED
        assert result.discrepancies == [
            "Unverified: registry evidence unavailable at the time of validation. Try again later."
        ]

    def test_trust_scales_score(self):
        """Test that lower trust never raises the score."""
        scores = [
            self.scorer.score(CLAIM, make_evidence(provenance), CLEAN_ADDRESS).identity_score
            for provenance in (ProvenanceType.LIVE_API, ProvenanceType.CACHED_VALID, ProvenanceType.STALE_LIVE)
        ]
        assert scores == [100, 90, 50]

    def test_stale_evidence_flagged(self):
        result = self.scorer.score(CLAIM, make_evidence(ProvenanceType.STALE_LIVE), CLEAN_ADDRESS)
        assert result.final_status == VerificationStatus.FLAGGED

    def test_name_mismatch(self):
        result = self.scorer.score(CLAIM, make_evidence(name="Dr. Rahul Verma"), CLEAN_ADDRESS)
        assert result.identity_score == 80
        assert result.final_status == VerificationStatus.VERIFIED
        assert len(result.discrepancies) == 1
        assert result.discrepancies[0].startswith("Name Mismatch (")
        assert result.discrepancies[0].endswith("% match)")

    def test_address_mismatch(self):
        result = self.scorer.score(CLAIM, make_evidence(address="45 Park Street, Kolkata 700016"), CLEAN_ADDRESS)
        assert result.identity_score < 100
        assert any(d.startswith("Address Mismatch (") for d in result.discrepancies)

    def test_address_quality_penalty(self):
        """Test the capped address quality penalty."""
        assert self.scorer.address_quality_penalty(100) == 0
        assert self.scorer.address_quality_penalty(80) == 0
        assert self.scorer.address_quality_penalty(79) == 1
        assert self.scorer.address_quality_penalty(78) == 2
        assert self.scorer.address_quality_penalty(60) == 15
        assert self.scorer.address_quality_penalty(0) == 40

    def test_low_quality_address(self):
        """Test that address issues are carried into discrepancies."""
        address = AddressAssessment(
            inferred_country="IN",
            confidence=60,
            issues=["Missing Indian state/UT", "Indian PIN code looks synthetic"]
        )
        result = self.scorer.score(CLAIM, make_evidence(), address)

        assert result.identity_score == 85
        assert result.final_status == VerificationStatus.VERIFIED
        assert result.discrepancies == [
            "Address: Missing Indian state/UT",
            "Address: Indian PIN code looks synthetic",
            "Address Quality Low (60%)"
        ]

    def test_bogus_address_flagged(self):
        address = AddressAssessment(inferred_country="US", confidence=0)
        result = self.scorer.score(CLAIM, make_evidence(), address)
        assert result.identity_score == 60
        assert result.final_status == VerificationStatus.FLAGGED

    def test_score_bounds(self):
        """Test that stacked penalties never go below zero."""
        claim = ProviderRecord(identifier="bad", name="X", address="Y")
        evidence = make_evidence(ProvenanceType.SIMULATION, LicenseStatus.NOT_FOUND,
                                 name="Completely Different", address="Somewhere Else Entirely")
        result = self.scorer.score(claim, evidence, AddressAssessment(confidence=0))
        assert 0 <= result.identity_score <= 100

    def test_score_claim_convenience(self):
        result = score_claim(CLAIM, make_evidence(), CLEAN_ADDRESS, {"thresholds": {"verified_min": 101}})
        assert result.identity_score == 100
        assert result.final_status == VerificationStatus.FLAGGED


if __name__ == "__main__":
    pytest.main([__file__])

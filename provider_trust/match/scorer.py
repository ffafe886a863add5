"""
Provenance-aware identity scorer for ProviderTrust.

Fuses the address assessment, registry evidence and fuzzy field matches
into a single identity score, then scales it by the trust level of the
evidence so that untrusted evidence can never produce a confident verdict.
"""

import logging
import math
from typing import Dict, List, Optional

from ..acquisition.registry_adapter import is_valid_registry_id
from ..models import (
    AddressAssessment,
    EvidenceRecord,
    LicenseStatus,
    ProvenanceType,
    ProviderRecord,
    ScoringResult,
    VerificationStatus,
)
from ..normalize.similarity import similarity

logger = logging.getLogger(__name__)

# Trust is a pure function of provenance. Only SIMULATION may be
# overridden, through scoring.simulation_trust.
TRUST_LEVELS = {
    ProvenanceType.LIVE_API: 1.0,
    ProvenanceType.CACHED_VALID: 0.9,
    ProvenanceType.STALE_LIVE: 0.5,
    ProvenanceType.SIMULATION: 0.5,
    ProvenanceType.USER_INPUT: 0.0,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 always rounding up."""
    return int(math.floor(value + 0.5))


class TrustScorer:
    """
    Scores a provider claim against acquired evidence.

    Penalties are applied to a running integer score starting at 100. An
    inactive license is fatal and overrides every other signal. The final
    score is the raw score multiplied by the evidence trust level.
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize trust scorer with configuration.

        Args:
            config: Scoring configuration section
        """
        self.config = config or {}
        self.thresholds = dict(self.config.get("thresholds", {}))
        self.penalties = dict(self.config.get("penalties", {}))

        self.default_thresholds = {
            "address_quality_min": 80,
            "similarity_min": 0.8,
            "verified_min": 80,
            "trust_min": 0.5
        }
        for key, value in self.default_thresholds.items():
            if key not in self.thresholds:
                self.thresholds[key] = value

        self.default_penalties = {
            "invalid_registry_id": 10,
            "license_not_found": 50,
            "name_mismatch": 20,
            "address_quality_factor": 0.75,
            "address_quality_cap": 40
        }
        for key, value in self.default_penalties.items():
            if key not in self.penalties:
                self.penalties[key] = value

        self.trust_levels = dict(TRUST_LEVELS)
        self.trust_levels[ProvenanceType.SIMULATION] = float(
            self.config.get("simulation_trust", TRUST_LEVELS[ProvenanceType.SIMULATION])
        )

        logger.info(f"Initialized TrustScorer (simulation trust {self.trust_levels[ProvenanceType.SIMULATION]})")

    def trust_level(self, provenance: ProvenanceType) -> float:
        """
        Look up the trust level for a provenance type.

        Args:
            provenance: Evidence provenance

        Returns:
            Trust multiplier in [0, 1]
        """
        return self.trust_levels.get(provenance, 0.0)

    def address_quality_penalty(self, confidence: int) -> int:
        """
        Penalty for a low-confidence address assessment.

        Args:
            confidence: Address confidence (0-100)

        Returns:
            Penalty points, capped so address quality cannot dominate
        """
        shortfall = self.thresholds["address_quality_min"] - confidence
        if shortfall <= 0:
            return 0
        penalty = round_half_up(shortfall * self.penalties["address_quality_factor"])
        return min(self.penalties["address_quality_cap"], penalty)

    def _unverified_reason(self, claim: ProviderRecord, evidence: EvidenceRecord) -> str:
        if not is_valid_registry_id(claim.identifier):
            return "Unverified: no valid registry ID provided. Add a 10-digit registry ID to enable registry verification."
        if evidence.provenance == ProvenanceType.SIMULATION:
            return "Unverified: registry evidence unavailable at the time of validation. Try again later."
        return "Unverified: no trusted registry evidence available for verification."

    def _determine_status(self, is_fatal: bool, trust_level: float, final_score: int) -> VerificationStatus:
        """
        Determine verdict from fatal flag, trust level and final score.

        Args:
            is_fatal: Whether a fatal condition was found
            trust_level: Evidence trust level
            final_score: Trust-scaled score

        Returns:
            VerificationStatus
        """
        if is_fatal:
            return VerificationStatus.BLOCKED
        if trust_level < self.thresholds["trust_min"]:
            return VerificationStatus.UNVERIFIED
        if final_score < self.thresholds["verified_min"]:
            return VerificationStatus.FLAGGED
        return VerificationStatus.VERIFIED

    def score(self, claim: ProviderRecord, evidence: EvidenceRecord,
              address: AddressAssessment) -> ScoringResult:
        """
        Score a claim against evidence and its address assessment.

        Args:
            claim: Provider claim
            evidence: Evidence acquired for the claim
            address: Assessment of the claimed address

        Returns:
            ScoringResult with identity score, trust level and verdict
        """
        score = 100
        discrepancies: List[str] = []
        is_fatal = False
        similarity_min = self.thresholds["similarity_min"]

        if not is_valid_registry_id(claim.identifier):
            discrepancies.append("Missing/invalid registry ID")
            score -= self.penalties["invalid_registry_id"]

        discrepancies.extend(f"Address: {issue}" for issue in address.issues)
        if address.confidence < self.thresholds["address_quality_min"]:
            score -= self.address_quality_penalty(address.confidence)
            discrepancies.append(f"Address Quality Low ({address.confidence}%)")

        trust_level = self.trust_level(evidence.provenance)
        license_status = evidence.details.license_status

        if license_status == LicenseStatus.INACTIVE:
            score = 0
            is_fatal = True
            discrepancies.append("License is INACTIVE/REVOKED")
        elif license_status == LicenseStatus.NOT_FOUND and trust_level > 0:
            # Absence of proof only counts against a source we trust
            score -= self.penalties["license_not_found"]
            discrepancies.append("License NOT FOUND in registry")

        address_similarity = similarity(claim.address, evidence.details.address)
        if address_similarity < similarity_min:
            score -= round_half_up((similarity_min - address_similarity) * 100)
            discrepancies.append(f"Address Mismatch ({round_half_up(address_similarity * 100)}% match)")

        name_similarity = similarity(claim.name, evidence.details.name)
        if name_similarity < similarity_min:
            score -= self.penalties["name_mismatch"]
            discrepancies.append(f"Name Mismatch ({round_half_up(name_similarity * 100)}% match)")

        final_score = min(100, max(0, round_half_up(score * trust_level)))

        final_status = self._determine_status(is_fatal, trust_level, final_score)
        if final_status == VerificationStatus.UNVERIFIED:
            discrepancies.append(self._unverified_reason(claim, evidence))

        logger.debug(f"Scored claim: {final_status.value} ({final_score}/100, trust {trust_level})")
        return ScoringResult(
            identity_score=final_score,
            trust_level=trust_level,
            is_fatal=is_fatal,
            discrepancies=discrepancies,
            final_status=final_status
        )


def score_claim(claim: ProviderRecord, evidence: EvidenceRecord,
                address: AddressAssessment, config: Optional[Dict] = None) -> ScoringResult:
    """
    Convenience function to score a single claim.

    Args:
        claim: Provider claim
        evidence: Evidence acquired for the claim
        address: Assessment of the claimed address
        config: Scoring configuration section

    Returns:
        ScoringResult
    """
    return TrustScorer(config).score(claim, evidence, address)

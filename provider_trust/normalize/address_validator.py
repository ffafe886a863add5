"""
World-aware postal address validation for ProviderTrust.

Infers the country of a free-text address from an ordered rule table and
applies that country's structural checks, producing a confidence percentage
and a list of human-readable issues.
"""

import re
import logging
from collections import namedtuple
from typing import Dict, List, Optional, Tuple

from ..models import AddressAssessment

logger = logging.getLogger(__name__)

GLOBAL_COUNTRY = "GLOBAL"

INDIAN_STATES = [
    "andhra pradesh", "arunachal pradesh", "assam", "bihar", "chhattisgarh",
    "goa", "gujarat", "haryana", "himachal pradesh", "jharkhand", "karnataka",
    "kerala", "madhya pradesh", "maharashtra", "manipur", "meghalaya",
    "mizoram", "nagaland", "odisha", "punjab", "rajasthan", "sikkim",
    "tamil nadu", "telangana", "tripura", "uttar pradesh", "uttarakhand",
    "west bengal", "delhi", "jammu and kashmir", "ladakh", "puducherry"
]

# Lightweight subset used only for country inference
INDIAN_STATE_HINTS = [
    "maharashtra", "karnataka", "tamil nadu", "telangana", "kerala", "delhi",
    "uttar pradesh", "west bengal", "gujarat", "rajasthan", "punjab",
    "haryana", "odisha", "assam", "bihar"
]

INDIA_LOCALITY_KEYWORDS = [
    r"flat", r"fl\.?", r"plot", r"near", r"opp\.?", r"opposite", r"behind",
    r"beside", r"sector", r"phase", r"taluk", r"tehsil", r"district",
    r"dist\.?", r"road", r"rd\.?", r"street", r"st\.?", r"lane", r"ln\.?",
    r"nagar", r"colony", r"layout"
]


def _alternation(words: List[str]) -> str:
    return r"\b(?:" + "|".join(words) + r")\b"


US_ZIP = re.compile(r"\b\d{5}(?:-\d{4})?\b", re.ASCII)
UK_POSTCODE = re.compile(r"\b[A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2}\b", re.IGNORECASE | re.ASCII)
CA_POSTAL_CODE = re.compile(
    r"\b[ABCEGHJ-NPRSTVXY]\d[ABCEGHJ-NPRSTV-Z]\s*\d[ABCEGHJ-NPRSTV-Z]\d\b", re.IGNORECASE | re.ASCII
)
FOUR_DIGIT_POSTCODE = re.compile(r"\b\d{4}\b", re.ASCII)
FIVE_DIGIT_POSTCODE = re.compile(r"\b\d{5}\b", re.ASCII)
INDIA_PIN = re.compile(r"(?:^|\D)(\d{6})(?:\D|$)", re.ASCII)

CountryRule = namedtuple("CountryRule", ["country", "patterns"])
PostcodeRequirement = namedtuple("PostcodeRequirement", ["pattern", "issue", "penalty"])

# Evaluated top to bottom against the lowercased address; first match wins.
# A 6-digit run is highly specific to India, so India is checked first.
COUNTRY_RULES = [
    CountryRule("IN", [
        INDIA_PIN,
        re.compile(r"\bindia\b"),
        re.compile(_alternation(INDIAN_STATE_HINTS)),
    ]),
    CountryRule("US", [US_ZIP, re.compile(r"\b(?:usa|united states)\b")]),
    CountryRule("GB", [UK_POSTCODE, re.compile(r"\b(?:uk|united kingdom)\b")]),
    CountryRule("CA", [CA_POSTAL_CODE, re.compile(r"\bcanada\b")]),
    CountryRule("AU", [
        re.compile(r"\b(?:australia|au)\b"),
        re.compile(r"\b(?:nsw|vic|qld|wa|sa|tas|act|nt)\b"),
    ]),
    CountryRule("NZ", [re.compile(r"\b(?:new zealand|nz)\b")]),
    CountryRule("DE", [re.compile(r"\b(?:germany|deutschland|de)\b")]),
    CountryRule("FR", [re.compile(r"\b(?:france|fr)\b")]),
]

POSTCODE_REQUIREMENTS = {
    "US": PostcodeRequirement(US_ZIP, "Missing US ZIP code", 25),
    "GB": PostcodeRequirement(UK_POSTCODE, "Missing UK postcode", 25),
    "CA": PostcodeRequirement(CA_POSTAL_CODE, "Missing Canada postal code", 25),
    "AU": PostcodeRequirement(FOUR_DIGIT_POSTCODE, "Missing Australia postcode (4 digits)", 20),
    "NZ": PostcodeRequirement(FOUR_DIGIT_POSTCODE, "Missing New Zealand postcode (4 digits)", 20),
    "DE": PostcodeRequirement(FIVE_DIGIT_POSTCODE, "Missing Germany postcode (5 digits)", 20),
    "FR": PostcodeRequirement(FIVE_DIGIT_POSTCODE, "Missing France postcode (5 digits)", 20),
}


class AddressValidator:
    """
    Validates the structure of free-text postal addresses.

    Assessment is a pure function of the address text: the same input
    always yields the same country, confidence and issues.
    """

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize address validator with configuration.

        Args:
            config: Address configuration section (optional)
        """
        self.config = config or {}
        self.min_length = self.config.get("min_length", 8)
        self.country_rules = COUNTRY_RULES
        self.postcode_requirements = POSTCODE_REQUIREMENTS

        # Compile regex patterns
        self.whitespace_pattern = re.compile(r"\s+")
        self.comma_spacing_pattern = re.compile(r"\s*,\s*")
        self.repeated_comma_pattern = re.compile(r",+")
        self.empty_segment_pattern = re.compile(r",\s*,")
        self.alpha_pattern = re.compile(r"[a-zA-Z]")
        self.placeholder_pattern = re.compile(
            r"\b(?:unknown|n/?a|na|null island|invalid address)\b"
        )
        self.zero_postcode_pattern = re.compile(r"\b0{5,6}\b", re.ASCII)
        self.india_keyword_pattern = re.compile(_alternation(INDIA_LOCALITY_KEYWORDS), re.IGNORECASE)
        self.india_state_pattern = re.compile(_alternation(INDIAN_STATES), re.IGNORECASE)
        self.synthetic_pin_pattern = re.compile(r"^(\d)\1{5}$", re.ASCII)
        self.digit_pattern = re.compile(r"\d", re.ASCII)
        self.separator_pattern = re.compile(r"[,-]")

    def normalize_address(self, address: str) -> str:
        """
        Normalize whitespace and comma usage in an address.

        Args:
            address: Raw address string

        Returns:
            Normalized address
        """
        if not isinstance(address, str):
            return ""

        address = self.whitespace_pattern.sub(" ", address)
        address = self.comma_spacing_pattern.sub(", ", address)
        address = self.repeated_comma_pattern.sub(",", address)
        address = self.empty_segment_pattern.sub(",", address)
        return address.strip()

    def infer_country(self, address: str) -> Optional[str]:
        """
        Infer ISO country code from address text.

        Args:
            address: Normalized address string

        Returns:
            Two-letter country code, or None when no rule matches
        """
        lower = (address or "").lower()
        for rule in self.country_rules:
            if any(pattern.search(lower) for pattern in rule.patterns):
                return rule.country
        return None

    def _check_common(self, normalized: str) -> Tuple[int, List[str]]:
        """Country-independent bogus-address signals."""
        lower = normalized.lower()
        penalty = 0
        issues = []

        if len(normalized) < self.min_length:
            issues.append("Address too short")
            penalty += 50
        if not self.alpha_pattern.search(normalized):
            issues.append("Address missing alphabetic locality text")
            penalty += 30
        if self.placeholder_pattern.search(lower):
            issues.append("Address contains placeholder/bogus text")
            penalty += 60
        if self.zero_postcode_pattern.search(lower):
            issues.append("Postal code appears invalid (all zeros)")
            penalty += 80

        return penalty, issues

    def _check_india(self, normalized: str) -> Tuple[int, List[str]]:
        penalty = 0
        issues = []
        has_keywords = bool(self.india_keyword_pattern.search(normalized))

        pin_match = INDIA_PIN.search(normalized)
        if not pin_match:
            issues.append("Missing Indian PIN code (6 digits)")
            penalty += 35
        else:
            pin = pin_match.group(1)
            if pin.startswith("0"):
                issues.append("Indian PIN code cannot start with 0")
                penalty += 25
            if self.synthetic_pin_pattern.match(pin):
                issues.append("Indian PIN code looks synthetic")
                penalty += 25

        segments = [part.strip() for part in normalized.split(",") if part.strip()]
        if len(segments) < 3:
            issues.append("Indian address should include locality, city, state, and PIN")
            penalty += 10 if has_keywords else 20

        state_match = self.india_state_pattern.search(normalized)
        pin_index = normalized.rfind(pin_match.group(1)) if pin_match else -1
        state_index = normalized.rfind(state_match.group(0)) if state_match else -1
        if pin_index != -1 and state_index != -1 and pin_index < state_index:
            issues.append("PIN appears before state; expected 'City, State PIN' ordering")
            penalty += 10

        if not state_match:
            issues.append("Missing Indian state/UT")
            penalty += 10

        if not has_keywords and len(segments) >= 3:
            issues.append("Indian address lacks locality cues (road, nagar, sector, ...)")
            penalty += 5

        return penalty, issues

    def _check_global(self, normalized: str) -> Tuple[int, List[str]]:
        penalty = 0
        issues = []
        if not self.digit_pattern.search(normalized):
            issues.append("Address missing building/plot/street number")
            penalty += 15
        if not self.separator_pattern.search(normalized):
            issues.append("Address missing separators (comma/hyphen)")
            penalty += 10
        return penalty, issues

    def _check_country(self, country: Optional[str], normalized: str) -> Tuple[int, List[str]]:
        """Run the single structural branch selected by the inferred country."""
        if country == "IN":
            return self._check_india(normalized)

        requirement = self.postcode_requirements.get(country)
        if requirement is not None:
            if requirement.pattern.search(normalized):
                return 0, []
            return requirement.penalty, [requirement.issue]

        return self._check_global(normalized)

    def assess(self, address: str) -> AddressAssessment:
        """
        Assess the structural quality of an address.

        Args:
            address: Raw address string

        Returns:
            AddressAssessment with inferred country, confidence and issues
        """
        normalized = self.normalize_address(address)
        country = self.infer_country(normalized)

        common_penalty, issues = self._check_common(normalized)
        country_penalty, country_issues = self._check_country(country, normalized)
        issues.extend(country_issues)

        confidence = max(0, min(100, 100 - common_penalty - country_penalty))

        logger.debug(f"Address assessed as {country or GLOBAL_COUNTRY} with {confidence}% confidence")
        return AddressAssessment(
            inferred_country=country,
            confidence=confidence,
            issues=issues,
            normalized_address=normalized
        )


def assess_address(address: str, config: Optional[Dict] = None) -> AddressAssessment:
    """
    Convenience function to assess a single address.

    Args:
        address: Raw address string
        config: Address configuration section (optional)

    Returns:
        AddressAssessment for the address
    """
    return AddressValidator(config).assess(address)

"""
Deterministic security gate for ProviderTrust.

Screens raw provider claims for sabotage patterns and markup before any
registry lookup or enrichment is paid for.
"""

import json
import logging
import re
import unicodedata
from typing import Dict, Union

from ..models import ProviderRecord, SecurityAssessment

logger = logging.getLogger(__name__)

ZERO_POSTCODE_REASON = "Security Block: Invalid Postal Code Pattern"
MARKUP_REASON = "Security Block: Malformed Characters Detected"


def fold_digits(text: str) -> str:
    """Map decimal digits from any script onto ASCII 0-9."""
    return "".join(str(unicodedata.decimal(ch)) if ch.isdecimal() else ch for ch in text)


class SecurityGate:
    """
    Structural and safety screen run before evidence acquisition.

    Every triggered rule appends a reason; any reason fails the gate.
    """

    def __init__(self):
        self.zero_postcode_pattern = re.compile(r"\b0{5,6}\b", re.ASCII)
        self.markup_pattern = re.compile(r"[<>]")

    def check(self, record: Union[ProviderRecord, Dict]) -> SecurityAssessment:
        """
        Screen a provider claim.

        Args:
            record: Provider record (model or raw dictionary)

        Returns:
            SecurityAssessment with pass flag and reasons
        """
        data = record.model_dump(mode="json") if isinstance(record, ProviderRecord) else dict(record)
        reasons = []

        address = data.get("address")
        if isinstance(address, str) and self.zero_postcode_pattern.search(fold_digits(address)):
            reasons.append(ZERO_POSTCODE_REASON)

        if self.markup_pattern.search(json.dumps(data, default=str)):
            reasons.append(MARKUP_REASON)

        if reasons:
            logger.warning(f"Security gate failed: {', '.join(reasons)}")

        return SecurityAssessment(passed=not reasons, reasons=reasons)


def check_record(record: Union[ProviderRecord, Dict]) -> SecurityAssessment:
    """
    Convenience function to run the security gate on one record.

    Args:
        record: Provider record

    Returns:
        SecurityAssessment
    """
    return SecurityGate().check(record)

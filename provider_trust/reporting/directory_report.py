"""
Directory report aggregation for ProviderTrust.

Reduces a set of processed provider states into summary counts, the most
frequent discrepancies and the country distribution of the directory.
"""

import json
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd

from ..models import ProviderState, WorkflowStatus, utc_now
from ..normalize.address_validator import GLOBAL_COUNTRY, AddressValidator

logger = logging.getLogger(__name__)

TOP_ISSUE_LIMIT = 5


def _as_state(state: Union[ProviderState, Dict[str, Any]]) -> ProviderState:
    if isinstance(state, ProviderState):
        return state
    return ProviderState.model_validate(state)


def _ranked(counts: Counter, key_name: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    # sorted() is stable and Counter keeps insertion order, so ties stay in
    # first-encountered order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return [{key_name: key, "count": count} for key, count in ranked]


def generate_directory_report(states: Iterable[Union[ProviderState, Dict[str, Any]]],
                              generated_at: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Summarize processed provider states.

    Args:
        states: ProviderState objects or their dictionary form
        generated_at: Report timestamp (current UTC time if omitted)

    Returns:
        Report dictionary with counts, average confidence, top issues,
        country distribution and per-record rows
    """
    states = [_as_state(state) for state in states]
    address_validator = AddressValidator()

    issue_counts: Counter = Counter()
    country_counts: Counter = Counter()
    status_counts: Counter = Counter()
    total_confidence = 0
    records = []

    for state in states:
        issues = list(state.scoring.discrepancies) if state.scoring else []
        confidence = state.scoring.identity_score if state.scoring else 0

        issue_counts.update(issues)
        status_counts[state.status] += 1
        total_confidence += confidence

        country = state.address_verification.inferred_country if state.address_verification else None
        if country is None and state.record is not None:
            country = address_validator.infer_country(
                address_validator.normalize_address(state.record.address)
            )
        country_counts[country or GLOBAL_COUNTRY] += 1

        records.append({
            "identifier": state.record.identifier if state.record else None,
            "name": state.record.name if state.record else None,
            "status": state.status.value,
            "confidence": confidence,
            "issues": issues
        })

    report = {
        "timestamp": (generated_at or utc_now()).isoformat(),
        "total_providers": len(states),
        "verified_count": status_counts[WorkflowStatus.READY],
        "flagged_count": status_counts[WorkflowStatus.FLAGGED],
        "blocked_count": status_counts[WorkflowStatus.BLOCKED],
        "unverified_count": status_counts[WorkflowStatus.UNVERIFIED],
        "avg_confidence": total_confidence / len(states) if states else 0,
        "top_issues": _ranked(issue_counts, "issue", TOP_ISSUE_LIMIT),
        "country_distribution": _ranked(country_counts, "country"),
        "records": records
    }

    logger.info(f"Generated directory report for {len(states)} providers")
    return report


def save_directory_report(report: Dict[str, Any], output_dir: str) -> Dict[str, str]:
    """
    Write a directory report to disk.

    Args:
        report: Report from generate_directory_report
        output_dir: Directory to write into (created if missing)

    Returns:
        Dictionary with the 'json' and 'csv' file paths
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    date_stamp = report["timestamp"][:10]
    json_file = output_path / f"directory_report_{date_stamp}.json"
    with open(json_file, 'w') as f:
        json.dump(report, f, indent=2, default=str)

    records_df = pd.DataFrame(
        report["records"], columns=["identifier", "name", "status", "confidence", "issues"]
    )
    records_df["issues"] = records_df["issues"].apply(lambda issues: "; ".join(issues))
    csv_file = output_path / "directory_records.csv"
    records_df.to_csv(csv_file, index=False)

    logger.info(f"Saved directory report to {output_dir}")
    return {"json": str(json_file), "csv": str(csv_file)}

"""
Boundary validation for ProviderTrust.

Turns raw provider payloads into typed ProviderRecord values. Malformed
input fails validation instead of being silently defaulted.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

import pandas as pd
from pydantic import ValidationError

from ..models import ProviderRecord, RecordValidationError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["identifier", "name", "address"]


def _format_errors(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(loc) for loc in item['loc']) or 'record'}: {item['msg']}"
        for item in error.errors()
    ]


def validate_provider_record(raw: Dict[str, Any]) -> ProviderRecord:
    """
    Validate a raw provider payload.

    Args:
        raw: Dictionary with identifier, name, address and optional fields

    Returns:
        Validated ProviderRecord

    Raises:
        RecordValidationError: If required fields are missing or mistyped
    """
    if not isinstance(raw, dict):
        raise RecordValidationError("Provider record must be a mapping", [f"record: got {type(raw).__name__}"])

    try:
        return ProviderRecord.model_validate(raw)
    except ValidationError as e:
        errors = _format_errors(e)
        raise RecordValidationError(f"Invalid provider record: {'; '.join(errors)}", errors) from e


def _is_missing(value: Any) -> bool:
    # pd.isna on a list cell returns an array, so only test scalars
    return value is None or (pd.api.types.is_scalar(value) and pd.isna(value))


def _cell_text(value: Any) -> Any:
    """Read a scalar cell as text; containers are left for validation to reject."""
    if _is_missing(value):
        return ""
    if pd.api.types.is_scalar(value):
        return str(value)
    return value


def _row_to_payload(row: pd.Series) -> Dict[str, Any]:
    payload = {}
    for column in REQUIRED_COLUMNS:
        payload[column] = _cell_text(row[column])

    if "input_source" in row.index and not _is_missing(row["input_source"]):
        payload["input_source"] = _cell_text(row["input_source"])

    if "specialties" in row.index:
        specialties = row["specialties"]
        if isinstance(specialties, list):
            payload["specialties"] = [str(s) for s in specialties]
        elif isinstance(specialties, str) and specialties.strip():
            payload["specialties"] = [s.strip() for s in specialties.split(";") if s.strip()]

    return payload


def validate_provider_batch(df: pd.DataFrame) -> Tuple[List[ProviderRecord], pd.DataFrame]:
    """
    Validate a DataFrame of provider records.

    Rows that fail validation are collected rather than aborting the batch.

    Args:
        df: DataFrame with identifier, name and address columns

    Returns:
        Tuple of (valid records, rejected rows with an 'error' column)

    Raises:
        RecordValidationError: If a required column is missing
    """
    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise RecordValidationError(
            f"Missing required columns: {', '.join(missing)}",
            [f"{column}: column missing" for column in missing]
        )

    records = []
    rejected_rows = []
    for idx, row in df.iterrows():
        try:
            records.append(validate_provider_record(_row_to_payload(row)))
        except RecordValidationError as e:
            rejected = row.to_dict()
            rejected["error"] = str(e)
            rejected_rows.append(rejected)
            logger.warning(f"Rejected provider row {idx}: {e}")

    rejects_df = pd.DataFrame(rejected_rows, columns=list(df.columns) + ["error"])

    logger.info(f"Validated {len(records)} provider records, rejected {len(rejects_df)}")
    return records, rejects_df


def load_provider_file(input_path: str) -> pd.DataFrame:
    """
    Load provider records from a local file.

    Args:
        input_path: Path to a .csv, .json (array of objects) or .jsonl file

    Returns:
        DataFrame with provider records as text

    Raises:
        ValueError: If the file format is not supported
    """
    suffix = Path(input_path).suffix.lower()
    if suffix == ".csv":
        df = pd.read_csv(input_path, dtype=str, keep_default_na=False)
    elif suffix == ".json":
        df = pd.read_json(input_path, dtype=False)
    elif suffix == ".jsonl":
        df = pd.read_json(input_path, lines=True, dtype=False)
    else:
        raise ValueError(f"Unsupported file format: {input_path}")

    logger.info(f"Loaded {len(df)} records from {input_path}")
    return df

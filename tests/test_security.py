"""
Unit tests for the security gate and boundary validation.
"""

import json
import shutil
import tempfile
import pytest
import pandas as pd
import sys
from pathlib import Path

# Add package root to path
sys.path.append(str(Path(__file__).parent.parent))

from provider_trust.ingestion.security_gate import (
    MARKUP_REASON,
    ZERO_POSTCODE_REASON,
    SecurityGate,
    check_record,
    fold_digits,
)
from provider_trust.ingestion.schema_validator import (
    load_provider_file,
    validate_provider_batch,
    validate_provider_record,
)
from provider_trust.models import ProviderRecord, RecordValidationError


class TestSecurityGate:
    """Test cases for the security gate."""

    def setup_method(self):
        """Setup test fixtures."""
        self.gate = SecurityGate()

    def _record(self, **overrides):
        fields = {
            "identifier": "1234567890",
            "name": "Dr. Ananya Sharma",
            "address": "2nd Floor, Aster Clinic, MG Road, Bengaluru, Karnataka 560001, India"
        }
        fields.update(overrides)
        return ProviderRecord(**fields)

    def test_clean_record_passes(self):
        """Test that a clean record passes with no reasons."""
        result = self.gate.check(self._record())
        assert result.passed
        assert result.reasons == []

    def test_zero_postcode_blocked(self):
        """Test all-zero postal codes."""
        for address in ["Null Street, Springfield 00000", "MG Road, Pune 000000"]:
            result = self.gate.check(self._record(address=address))
            assert not result.passed
            assert result.reasons == [ZERO_POSTCODE_REASON]

    def test_zero_run_inside_number_not_blocked(self):
        """Test that zeros embedded in a longer number are not a postcode."""
        result = self.gate.check(self._record(address="Unit 1000000, Market Road, Pune 411001"))
        assert result.passed

    def test_markup_in_any_field_blocked(self):
        """Test angle brackets anywhere in the record."""
        result = self.gate.check(self._record(name="<script>alert(1)</script>"))
        assert not result.passed
        assert result.reasons == [MARKUP_REASON]

        result = self.gate.check(self._record(input_source="upload<br>"))
        assert result.reasons == [MARKUP_REASON]

    def test_reasons_accumulate(self):
        """Test that every triggered rule is reported."""
        result = self.gate.check(self._record(address="<b>00000</b> Main St"))
        assert not result.passed
        assert result.reasons == [ZERO_POSTCODE_REASON, MARKUP_REASON]

    def test_accepts_raw_dict(self):
        """Test gate on an unvalidated payload."""
        result = check_record({"identifier": "x", "name": "A", "address": "Road 000000", "extra": ">"})
        assert result.reasons == [ZERO_POSTCODE_REASON, MARKUP_REASON]

    def test_non_ascii_zero_postcode_blocked(self):
        """Test that all-zero postcodes written in another script are blocked."""
        assert fold_digits("५६०००१") == "560001"
        result = self.gate.check(self._record(address="MG Road, Pune ००००००"))
        assert not result.passed
        assert result.reasons == [ZERO_POSTCODE_REASON]


class TestSchemaValidator:
    """Test cases for boundary validation."""

    def setup_method(self):
        """Setup test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Cleanup test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_valid_record(self):
        """Test a complete payload."""
        record = validate_provider_record({
            "identifier": "1234567890",
            "name": "Dr. Ananya Sharma",
            "address": "MG Road, Bengaluru 560001",
            "specialties": ["Cardiology"]
        })
        assert record.identifier == "1234567890"
        assert record.specialties == ["Cardiology"]
        assert record.input_source is None

    def test_missing_field_rejected(self):
        """Test that required fields are enforced."""
        with pytest.raises(RecordValidationError) as exc_info:
            validate_provider_record({"identifier": "1234567890", "name": "Dr. A"})
        assert any(error.startswith("address") for error in exc_info.value.errors)

    def test_wrong_type_rejected(self):
        """Test that identifiers are not coerced from numbers."""
        with pytest.raises(RecordValidationError):
            validate_provider_record({"identifier": 1234567890, "name": "Dr. A", "address": "X Road 1"})

    def test_unknown_field_rejected(self):
        """Test that unknown keys are rejected."""
        with pytest.raises(RecordValidationError):
            validate_provider_record({"identifier": "1", "name": "A", "address": "B", "npi": "1"})

    def test_non_mapping_rejected(self):
        """Test non-dict payloads."""
        with pytest.raises(RecordValidationError):
            validate_provider_record(["1234567890"])

    def test_batch_collects_rejects(self):
        """Test batch validation with a mix of good and bad rows."""
        df = pd.DataFrame({
            "identifier": ["1234567890", "0987654321"],
            "name": ["Dr. Ananya Sharma", "Dr. Rahul Verma"],
            "address": ["MG Road, Bengaluru 560001", "Sector 5, Noida 201301"],
            "specialties": ["Cardiology; Internal Medicine", ""]
        })
        records, rejects = validate_provider_batch(df)

        assert len(records) == 2
        assert records[0].specialties == ["Cardiology", "Internal Medicine"]
        assert records[1].specialties == []
        assert len(rejects) == 0
        assert "error" in rejects.columns

    def test_batch_missing_column(self):
        """Test that a missing required column fails the batch."""
        df = pd.DataFrame({"identifier": ["1234567890"], "name": ["Dr. A"]})
        with pytest.raises(RecordValidationError):
            validate_provider_batch(df)

    def test_batch_list_cell_rejects_row(self):
        """Test that a container cell rejects only its own row."""
        df = pd.DataFrame({
            "identifier": ["1234567890", "0987654321"],
            "name": ["Dr. A", ["Dr", "B"]],
            "address": ["MG Road, Bengaluru 560001", "Sector 5, Noida 201301"]
        })
        records, rejects = validate_provider_batch(df)

        assert len(records) == 1
        assert records[0].name == "Dr. A"
        assert len(rejects) == 1
        assert rejects.iloc[0]["identifier"] == "0987654321"
        assert rejects.iloc[0]["error"]

    def test_csv_keeps_identifier_text(self):
        """Test that leading zeros survive CSV loading."""
        csv_path = Path(self.temp_dir) / "providers.csv"
        csv_path.write_text(
            "identifier,name,address\n"
            "0123456789,Dr. Meera Iyer,\"12 Anna Salai, Chennai, Tamil Nadu 600002\"\n"
        )
        records, rejects = validate_provider_batch(load_provider_file(str(csv_path)))

        assert len(rejects) == 0
        assert records[0].identifier == "0123456789"

    def test_jsonl_loading(self):
        """Test JSON lines input."""
        jsonl_path = Path(self.temp_dir) / "providers.jsonl"
        rows = [
            {"identifier": "1234567890", "name": "Dr. A", "address": "MG Road, Pune 411001"},
            {"identifier": "", "name": "Dr. B", "address": "FC Road, Pune 411004", "input_source": "manual"}
        ]
        jsonl_path.write_text("\n".join(json.dumps(row) for row in rows))

        records, rejects = validate_provider_batch(load_provider_file(str(jsonl_path)))
        assert [record.name for record in records] == ["Dr. A", "Dr. B"]
        assert records[1].input_source == "manual"

    def test_unsupported_format(self):
        """Test file extension check."""
        with pytest.raises(ValueError):
            load_provider_file(str(Path(self.temp_dir) / "providers.xlsx"))


if __name__ == "__main__":
    pytest.main([__file__])

"""
Unit tests for Stage 4: field-level repair.
"""

import math

import pytest

from jobmail_inference.models.enums import JobStatus, RiskLevel
from jobmail_inference.validation.stage4_field_repair import (
    Stage4FieldRepair,
    clean_text,
    is_placeholder,
    normalize_status,
)


class TestCleanText:

    def test_strips_quotes_and_whitespace(self):
        assert clean_text('  "Acme   Corp"  ') == "Acme Corp"

    def test_removes_chat_tokens(self):
        assert clean_text("Acme<|im_end|>") == "Acme"
        assert clean_text("<|eot_id|>") is None

    def test_non_strings(self):
        assert clean_text(None) is None
        assert clean_text(True) is None
        assert clean_text(42) == "42"


class TestPlaceholders:

    @pytest.mark.parametrize("value", ["Unknown", "N/A", "tbd", "Hiring Team", "12345", "REQ-20931"])
    def test_placeholders(self, value):
        assert is_placeholder(value)

    @pytest.mark.parametrize("value", ["Acme", "Data Analyst", "3M", "Web3 Labs"])
    def test_real_values(self, value):
        assert not is_placeholder(value)


class TestStage4FieldRepair:

    def setup_method(self):
        self.repair = Stage4FieldRepair()

    def test_company_legal_suffix_removed(self):
        assert self.repair.repair_company("Acme Inc.") == "Acme"
        assert self.repair.repair_company("Globex, LLC") == "Globex"

    def test_company_rejects_noise(self):
        assert self.repair.repair_company("Unknown") is None
        assert self.repair.repair_company("A") is None
        assert self.repair.repair_company("Thank you for your application") is None
        assert self.repair.repair_company("jobs@acme.com") is None
        assert self.repair.repair_company("The Very Long Name Of A Company Group Holdings") is None

    def test_position_strips_requisition_references(self):
        assert self.repair.repair_position("Data Analyst (Req ID: 12345)") == "Data Analyst"
        assert self.repair.repair_position("Software Engineer - JR-123456") == "Software Engineer"

    def test_position_rejects_placeholders(self):
        assert self.repair.repair_position("N/A") is None
        assert self.repair.repair_position("REQ12345") is None
        assert self.repair.repair_position(None) is None

    def test_status_exact_and_fuzzy(self):
        assert self.repair.repair_status("applied") is JobStatus.APPLIED
        assert self.repair.repair_status("Rejected") is JobStatus.DECLINED
        assert self.repair.repair_status("Offer extended") is JobStatus.OFFER
        assert self.repair.repair_status("Phone screen scheduled") is JobStatus.INTERVIEW
        assert self.repair.repair_status("Under review") is JobStatus.APPLIED
        assert self.repair.repair_status("banana") is None

    def test_rejection_wording_beats_offer_wording(self):
        assert normalize_status("We cannot offer you the position") is JobStatus.DECLINED

    def test_confidence_clamping(self):
        assert self.repair.repair_confidence(None, default=0.7) == 0.7
        assert self.repair.repair_confidence("0.8") == 0.8
        assert self.repair.repair_confidence(85) == pytest.approx(0.85)
        assert self.repair.repair_confidence(-1) == 0.0
        assert self.repair.repair_confidence(150) == 1.0
        assert self.repair.repair_confidence(True, default=0.6) == 0.6
        assert self.repair.repair_confidence("high", default=0.6) == 0.6
        assert self.repair.repair_confidence(math.nan, default=0.6) == 0.6

    def test_risk_level(self):
        assert self.repair.repair_risk_level("HIGH") is RiskLevel.HIGH
        assert self.repair.repair_risk_level(None) is RiskLevel.NONE
        assert self.repair.repair_risk_level("extreme") is RiskLevel.MEDIUM

    def test_bool(self):
        assert self.repair.repair_bool("yes") is True
        assert self.repair.repair_bool(0) is False
        assert self.repair.repair_bool("False") is False
        assert self.repair.repair_bool("maybe") is None

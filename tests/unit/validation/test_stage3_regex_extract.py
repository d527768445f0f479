"""
Unit tests for Stage 3: regex key/value extraction.
"""

import pytest

from jobmail_inference.validation.exceptions import MalformedOutputError
from jobmail_inference.validation.stage3_regex_extract import Stage3RegexExtraction, coerce_scalar


class TestStage3RegexExtraction:

    def setup_method(self):
        self.stage3 = Stage3RegexExtraction()

    def test_double_quoted_values(self):
        found = self.stage3.extract('"company": "Acme, Inc", "position": "Dev"', ("company", "position"))

        assert found == {"company": "Acme, Inc", "position": "Dev"}

    def test_single_quoted_values(self):
        found = self.stage3.extract("company = 'Acme'", ("company",))

        assert found == {"company": "Acme"}

    def test_yaml_style_bare_values(self):
        content = "company: Acme\nposition: Data Analyst\nstatus: Interview"
        found = self.stage3.extract(content, ("company", "position", "status", "confidence"))

        assert found == {"company": "Acme", "position": "Data Analyst", "status": "Interview"}

    def test_bare_booleans_and_numbers_are_coerced(self):
        found = self.stage3.extract("is_job: yes, risk_level: medium, confidence: 0.8", ("is_job", "risk_level"))

        assert found == {"is_job": True, "risk_level": "medium"}
        assert self.stage3.extract("confidence: 0.8", ("confidence",)) == {"confidence": 0.8}

    def test_aliases_are_accepted(self):
        found = self.stage3.extract('{"isJobRelated": false}', ("is_job",))

        assert found == {"is_job": False}

    def test_alias_must_be_whole_word(self):
        found = self.stage3.extract("is_job_related: true", ("is_job",))

        assert found == {"is_job": True}

    def test_nothing_found_raises(self):
        with pytest.raises(MalformedOutputError) as exc_info:
            self.stage3.extract("I cannot answer that.", ("is_job", "risk_level"))

        assert exc_info.value.details["fields"] == ["is_job", "risk_level"]

    def test_unrequested_fields_are_ignored(self):
        found = self.stage3.extract("company: Acme, same_job: true", ("same_job",))

        assert found == {"same_job": True}


class TestCoerceScalar:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("true", True),
            ("No", False),
            ("null", None),
            ("n/a", None),
            ("42", 42.0),
            ("Acme", "Acme"),
        ],
    )
    def test_bare_tokens(self, raw, expected):
        assert coerce_scalar(raw, quoted=False) == expected

    def test_quoted_tokens_stay_strings(self):
        assert coerce_scalar("true", quoted=True) == "true"

"""
Unit tests for PromptBuilder.
"""

import pytest
from jinja2 import TemplateNotFound

from jobmail_inference.llm.prompt_builder import SCHEMA_FILES, PromptBuilder, load_schema
from jobmail_inference.llm.text_utils import HEAD_TAIL_SEPARATOR


class TestPromptBuilder:

    @pytest.fixture(autouse=True)
    def _builder(self, test_settings):
        self.settings = test_settings
        self.builder = PromptBuilder(test_settings)

    def test_stage1_request(self, create_test_email):
        email = create_test_email(subject="Your application", body="We received your application.")
        request = self.builder.build_stage1_request(email)

        assert "Subject: Your application" in request.prompt
        assert "From: jobs@globex.com" in request.prompt
        assert "We received your application." in request.prompt
        assert request.max_tokens == self.settings.STAGE1_MAX_TOKENS
        assert request.temperature == self.settings.LLM_TEMPERATURE
        assert request.format_schema["title"] == "stage1_classification"
        assert "is_job" in request.system_prompt

    def test_stage1_body_is_truncated(self, create_test_email):
        body = "This is a sentence about the role. " * 100
        request = self.builder.build_stage1_request(create_test_email(body=body))

        assert len(request.prompt) < len(body)
        assert request.prompt.endswith(".")

    def test_missing_subject_and_sender(self, create_test_email):
        request = self.builder.build_stage1_request(create_test_email(subject="", sender=""))

        assert "Subject: (no subject)" in request.prompt
        assert "From:" not in request.prompt

    def test_stage2_request_with_status_hint(self, create_test_email):
        request = self.builder.build_stage2_request(create_test_email(), status_hint="Interview")

        assert "Likely status: Interview" in request.prompt
        assert request.max_tokens == self.settings.STAGE2_MAX_TOKENS
        assert request.format_schema["title"] == "stage2_extraction"

    def test_stage2_request_without_hint(self, create_test_email):
        request = self.builder.build_stage2_request(create_test_email())

        assert "Likely status" not in request.prompt

    def test_stage2_keeps_head_and_tail(self, create_test_email):
        body = "HEAD " + "filler " * 600 + " Regards, Globex Talent"
        request = self.builder.build_stage2_request(create_test_email(body=body))

        assert HEAD_TAIL_SEPARATOR.strip() in request.prompt
        assert "HEAD" in request.prompt
        assert request.prompt.endswith("Regards, Globex Talent")

    def test_match_request(self):
        request = self.builder.build_match_request(
            {"company": "Acme", "position": "Data Analyst", "location": "Remote"},
            {"company": "Acme Inc", "position": None},
        )

        assert "Job A: Acme / Data Analyst / Remote" in request.prompt
        assert "Job B: Acme Inc / unknown position" in request.prompt
        assert request.format_schema["title"] == "stage3_match"

    def test_missing_templates_dir_raises(self, test_settings, tmp_path):
        test_settings.PROMPT_TEMPLATES_DIR = str(tmp_path)

        with pytest.raises(TemplateNotFound):
            PromptBuilder(test_settings)


def test_every_bundled_schema_loads():
    for name in SCHEMA_FILES:
        schema = load_schema(name)
        assert schema["type"] == "object"
        assert schema["additionalProperties"] is False

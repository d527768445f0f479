"""
Prompt builder for stage requests.

Responsible for:
- Loading and rendering Jinja2 templates (system + user prompt per stage)
- Truncating the email body per stage (prefix for Stage 1, head+tail for Stage 2)
- Loading the JSON Schemas each stage constrains output with
- Constructing complete LLMGenerationRequest objects
"""

import json
from pathlib import Path
from typing import Any, Optional

import structlog
from jinja2 import Environment, FileSystemLoader

from jobmail_inference.config import Settings
from jobmail_inference.llm.text_utils import (
    compact_whitespace,
    truncate_at_sentence_boundary,
    truncate_head_tail,
)
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.llm_models import LLMGenerationRequest

logger = structlog.get_logger(__name__)

BUNDLED_TEMPLATES_DIR = Path(__file__).parent / "templates"
BUNDLED_SCHEMAS_DIR = Path(__file__).parent / "schemas"

SCHEMA_FILES = {
    "stage1": "stage1_classification.json",
    "stage2": "stage2_extraction.json",
    "match": "stage3_match.json",
}


def load_schema(name: str, schemas_dir: Optional[Path] = None) -> dict[str, Any]:
    """Load one of the bundled (or overridden) stage schemas by short name."""
    path = Path(schemas_dir or BUNDLED_SCHEMAS_DIR) / SCHEMA_FILES[name]
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class PromptBuilder:
    """
    Build stage requests from EmailMessage objects.

    Templates and schemas are loaded once at construction.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        templates_dir = Path(settings.PROMPT_TEMPLATES_DIR or BUNDLED_TEMPLATES_DIR)
        schemas_dir = Path(settings.JSON_SCHEMA_DIR or BUNDLED_SCHEMAS_DIR)

        self.jinja_env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,  # prompts, not HTML
        )
        try:
            self.templates = {
                name: (
                    self.jinja_env.get_template(f"{name}_system.txt"),
                    self.jinja_env.get_template(f"{name}_user.txt"),
                )
                for name in ("stage1", "stage2", "match")
            }
            self.schemas = {name: load_schema(name, schemas_dir) for name in SCHEMA_FILES}
        except Exception as e:
            logger.error("Failed to load prompt resources", error=str(e), templates_dir=str(templates_dir))
            raise

        logger.info(
            "PromptBuilder initialized",
            templates_dir=str(templates_dir),
            schemas_dir=str(schemas_dir),
            stage1_body_max=settings.STAGE1_BODY_MAX_CHARS,
            stage2_body_max=settings.STAGE2_BODY_MAX_CHARS,
        )

    def _render(self, name: str, **variables: Any) -> tuple[str, str]:
        system_template, user_template = self.templates[name]
        return system_template.render().strip(), user_template.render(**variables).strip()

    def build_stage1_request(self, email: EmailMessage) -> LLMGenerationRequest:
        """Minimal gate prompt: short body prefix, tiny token budget."""
        body = truncate_at_sentence_boundary(compact_whitespace(email.body), self.settings.STAGE1_BODY_MAX_CHARS)
        system_prompt, user_prompt = self._render(
            "stage1",
            sender=email.sender,
            subject=email.subject or "(no subject)",
            body=body,
        )
        return LLMGenerationRequest(
            system_prompt=system_prompt,
            prompt=user_prompt,
            temperature=self.settings.LLM_TEMPERATURE,
            max_tokens=self.settings.STAGE1_MAX_TOKENS,
            format_schema=self.schemas["stage1"],
        )

    def build_stage2_request(self, email: EmailMessage, status_hint: Optional[str] = None) -> LLMGenerationRequest:
        """Extraction prompt: head+tail body, optional rule-based status hint."""
        compacted = compact_whitespace(email.body)
        body = truncate_head_tail(
            compacted,
            self.settings.STAGE2_BODY_MAX_CHARS,
            self.settings.STAGE2_BODY_TAIL_CHARS,
        )
        system_prompt, user_prompt = self._render(
            "stage2",
            sender=email.sender,
            subject=email.subject or "(no subject)",
            body=body,
            status_hint=status_hint,
        )
        logger.debug(
            "Stage 2 prompt built",
            truncated=len(body) < len(compacted),
            body_length=len(body),
            status_hint=status_hint,
        )
        return LLMGenerationRequest(
            system_prompt=system_prompt,
            prompt=user_prompt,
            temperature=self.settings.LLM_TEMPERATURE,
            max_tokens=self.settings.STAGE2_MAX_TOKENS,
            format_schema=self.schemas["stage2"],
        )

    def build_match_request(self, job_a: dict[str, Any], job_b: dict[str, Any]) -> LLMGenerationRequest:
        system_prompt, user_prompt = self._render("match", job_a=job_a, job_b=job_b)
        return LLMGenerationRequest(
            system_prompt=system_prompt,
            prompt=user_prompt,
            temperature=self.settings.LLM_TEMPERATURE,
            max_tokens=16,
            format_schema=self.schemas["match"],
        )

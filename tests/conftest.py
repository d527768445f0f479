"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

from jobmail_inference.config import Settings
from jobmail_inference.models.enums import JobStatus, RecordSource
from jobmail_inference.models.input_models import EmailMessage
from jobmail_inference.models.record_models import JobRecord


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Deadlines are short so timeout paths finish quickly. Override specific
    settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.SESSION_MAX_USES = 2
    """
    return Settings(
        # === Application ===
        APP_NAME="Job Mail Inference (Test)",
        APP_VERSION="0.1.0",
        DEBUG=True,
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Ollama ===
        OLLAMA_BASE_URL="http://localhost:11434",
        OLLAMA_TIMEOUT=5,
        STAGE1_MODEL="test-gate:1b",
        STAGE2_MODEL="test-extract:3b",

        # === Deadlines ===
        STAGE1_TIMEOUT_MS=100,
        STAGE2_TIMEOUT_MS=150,

        # === Sessions ===
        SESSION_MAX_USES=10,
        INFERENCE_MAX_CONCURRENT=2,

        # === Stores ===
        RECORD_STORE_BACKEND="memory",
        CACHE_PERSISTENCE_ENABLED=False,
        REDIS_URL="redis://localhost:6379/0",
        REDIS_MAX_CONNECTIONS=10,

        PROMETHEUS_ENABLED=False,  # Disable metrics in tests unless explicitly needed
    )


@pytest.fixture
def fixtures_dir() -> Path:
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_emails_data(fixtures_dir: Path) -> Dict[str, Dict[str, Any]]:
    """Load named sample emails as dicts.

    Returns raw dicts suitable for EmailMessage(**sample_emails_data["rejection"]).
    """
    with open(fixtures_dir / "sample_emails.json") as f:
        return json.load(f)


@pytest.fixture
def sample_emails(sample_emails_data: Dict[str, Dict[str, Any]]) -> Dict[str, EmailMessage]:
    """Parsed EmailMessage instances keyed by fixture name."""
    return {name: EmailMessage(**data) for name, data in sample_emails_data.items()}


@pytest.fixture
def model_outputs(fixtures_dir: Path) -> Dict[str, str]:
    """Raw model outputs keyed by fixture name."""
    with open(fixtures_dir / "model_outputs.json") as f:
        return json.load(f)


@pytest.fixture
def indeed_email(sample_emails: Dict[str, EmailMessage]) -> EmailMessage:
    """Indeed application confirmation: Acme / Data Analyst / Applied."""
    return sample_emails["indeed_application"]


@pytest.fixture
def create_test_email():
    """Factory fixture to create EmailMessage with custom values.

    Usage:
        def test_something(create_test_email):
            email = create_test_email(body="Custom email text")
    """
    def _create(
        subject: str = "Your application for Backend Engineer",
        body: str = "Thank you for applying for the Backend Engineer position at Globex.",
        sender: str = "jobs@globex.com",
        message_id: Optional[str] = None,
    ) -> EmailMessage:
        return EmailMessage(subject=subject, body=body, sender=sender, message_id=message_id)

    return _create


@pytest.fixture
def create_test_record():
    """Factory fixture to create JobRecord with custom values.

    ``age_days`` backdates created_at/updated_at.

    Usage:
        def test_something(create_test_record):
            record = create_test_record(company="Acme", age_days=3)
    """
    def _create(
        company: Optional[str] = "Acme",
        position: Optional[str] = "Data Analyst",
        status: Optional[JobStatus] = JobStatus.APPLIED,
        location: Optional[str] = None,
        notes: Optional[str] = None,
        sender_domain: Optional[str] = None,
        record_source: RecordSource = RecordSource.AUTO_INFERRED,
        age_days: float = 0.0,
        **kwargs: Any,
    ) -> JobRecord:
        created = datetime.now(timezone.utc) - timedelta(days=age_days)
        return JobRecord(
            company=company,
            position=position,
            status=status,
            location=location,
            notes=notes,
            sender_domain=sender_domain,
            record_source=record_source,
            created_at=created,
            updated_at=created,
            **kwargs,
        )

    return _create

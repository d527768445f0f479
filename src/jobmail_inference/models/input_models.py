"""
Input data models for the classification pipeline.

An EmailMessage is the unit of work: sender, subject and plain-text body.
Everything downstream (hashing, prompts, fallback rules) reads from it.
"""

import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ADDRESS_RE = re.compile(r"<?([^<>\s@]+@([^<>\s@]+))>?\s*$")


class EmailMessage(BaseModel):
    """
    Inbound email to classify.

    Only ``subject`` and ``body`` are required; sender may be missing on
    forwarded or imported messages.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    subject: str = Field(default="", description="Subject line")
    body: str = Field(default="", description="Plain-text body")
    sender: str = Field(default="", description="From header, e.g. 'Acme Jobs <no-reply@acme.com>'")
    message_id: Optional[str] = Field(default=None, description="Message-ID or provider id")
    received_at: Optional[datetime] = Field(default=None, description="Received timestamp")

    @field_validator("subject", "body", "sender", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v

    @property
    def sender_address(self) -> str:
        """Bare lowercase address from the From header, or empty."""
        match = _ADDRESS_RE.search(self.sender.strip())
        return match.group(1).lower() if match else ""

    @property
    def sender_domain(self) -> str:
        """Lowercase domain of the sender address, or empty."""
        address = self.sender_address
        return address.rsplit("@", 1)[1] if address else ""

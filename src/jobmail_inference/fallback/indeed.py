"""
Indeed application confirmations.

Indeed sends the same confirmation layout for every application:
subject ``Indeed Application: <title>`` and a body naming the employer
either as ``sent to <Company>`` or as a ``<Company> - <Location>`` segment.
"""

import re
from typing import Optional

from jobmail_inference.models.enums import JobStatus
from jobmail_inference.models.input_models import EmailMessage

INDEED_APPLY_ADDRESS = "indeedapply@indeed.com"

_SUBJECT = re.compile(r"^\s*Indeed Application:\s*(.+?)\s*$", re.IGNORECASE)
_SENT_TO = re.compile(r"(?:items were sent to|sent to)\s+([^.\n]+?)\.?\s*(?:Good luck|$)", re.IGNORECASE | re.MULTILINE)
_COMPANY_LOCATION = re.compile(r"(?:^|,)\s*([^,\n-]+?)\s+-\s+([^\n]+)$")


def is_indeed_application(email: EmailMessage) -> bool:
    return email.sender_address == INDEED_APPLY_ADDRESS or bool(_SUBJECT.match(email.subject))


def _company_from_lines(body: str) -> Optional[str]:
    for line in body.splitlines():
        line = line.strip()
        if " - " not in line:
            continue
        match = _COMPANY_LOCATION.search(line)
        if not match:
            continue
        company = match.group(1).strip()
        # skip rating/review-count lines like "4.1 - 2,345 reviews"
        if len(company) > 1 and not company[0].isdigit() and "review" not in company.lower():
            return company
    return None


def extract_indeed_fields(email: EmailMessage) -> tuple[Optional[str], Optional[str], JobStatus]:
    """
    Returns:
        Tuple of (company, position, status); status is always Applied
    """
    position = None
    subject_match = _SUBJECT.match(email.subject)
    if subject_match:
        position = subject_match.group(1)

    company = None
    sent_to = _SENT_TO.search(email.body)
    if sent_to:
        company = sent_to.group(1).strip()
    if not company:
        company = _company_from_lines(email.body)

    return company, position, JobStatus.APPLIED

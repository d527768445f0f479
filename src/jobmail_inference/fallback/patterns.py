"""
Pattern families used by the rule-based fallback classifier.

Each family pairs sender-domain fragments with subject and body regexes.
Families are data only; FallbackClassifier decides the rule order.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

from jobmail_inference.models.enums import JobStatus
from jobmail_inference.models.input_models import EmailMessage


def _compile_all(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


@dataclass(frozen=True)
class PatternFamily:
    """Sender-domain fragments plus subject/body regexes for one signal."""

    name: str
    domains: tuple[str, ...] = ()
    subjects: tuple[re.Pattern, ...] = ()
    bodies: tuple[re.Pattern, ...] = ()

    def matches_sender(self, email: EmailMessage) -> bool:
        domain = email.sender_domain
        if not domain:
            return False
        return any(domain == d or domain.endswith("." + d) for d in self.domains)

    def matches_subject(self, email: EmailMessage) -> bool:
        return any(p.search(email.subject) for p in self.subjects)

    def matches_body(self, email: EmailMessage) -> bool:
        return any(p.search(email.body) for p in self.bodies)

    def matches_text(self, email: EmailMessage) -> bool:
        return self.matches_subject(email) or self.matches_body(email)


ATS = PatternFamily(
    name="ats",
    domains=(
        "greenhouse.io", "workday.com", "lever.co", "bamboohr.com", "icims.com",
        "smartrecruiters.com", "taleo.net", "successfactors.com", "myworkday.com",
        "workdayrecruiting.com",
    ),
    subjects=_compile_all(
        r"application.*received", r"application.*confirmation", r"thanks?\s+(?:you\s+)?for\s+applying",
        r"your\s+application", r"application\s+status",
    ),
    bodies=_compile_all(
        r"application.*(?:has\s+been\s+)?received", r"thank\s+you\s+for\s+applying",
        r"we\s+have\s+received\s+your\s+application",
    ),
)

REJECTION = PatternFamily(
    name="rejection",
    subjects=_compile_all(
        r"update\s+on\s+your\s+application", r"regarding\s+your\s+application",
    ),
    bodies=_compile_all(
        r"regret\s+to\s+inform", r"sorry\s+to\s+inform", r"not\s+(?:been\s+)?selected",
        r"(?:pursue|pursuing|move\s+forward\s+with)\s+other\s+candidates",
        r"position\s+has\s+been\s+filled", r"decided\s+(?:not\s+)?to\s+(?:proceed|move\s+forward)",
        r"will\s+not\s+be\s+moving\s+forward", r"not\s+be\s+progressing",
        r"unfortunately.{0,80}(?:application|candidacy|position|role)",
    ),
)

INTERVIEW = PatternFamily(
    name="interview",
    subjects=_compile_all(
        r"interview\s+(?:invitation|request)", r"schedule\s+(?:an?\s+)?interview", r"phone\s+screen",
        r"technical\s+interview",
    ),
    bodies=_compile_all(
        r"(?:invite|invited|inviting)\s+you\s+(?:to|for)\s+(?:an?\s+)?interview",
        r"would\s+like\s+to\s+schedule\s+(?:an?\s+)?(?:interview|call|phone\s+screen)",
        r"phone\s+screen", r"technical\s+screen", r"interview\s+with\s+(?:our|the)\s+hiring\s+manager",
    ),
)

OFFER = PatternFamily(
    name="offer",
    subjects=_compile_all(
        r"job\s+offer", r"offer\s+letter", r"pleased\s+to\s+offer", r"welcome\s+to\s+the\s+team",
    ),
    bodies=_compile_all(
        r"pleased\s+to\s+offer", r"job\s+offer", r"offer\s+letter", r"compensation\s+package",
        r"extend\s+(?:an?\s+)?offer", r"offer\s+you\s+the\s+(?:position|role)",
    ),
)

JOB_BOARD = PatternFamily(
    name="job_board",
    domains=(
        "indeed.com", "linkedin.com", "glassdoor.com", "ziprecruiter.com", "monster.com",
        "careerbuilder.com", "dice.com",
    ),
    subjects=_compile_all(
        r"job\s+alert", r"jobs?\s+recommended", r"recommended\s+for\s+you", r"new\s+jobs\s+matching",
        r"\d+\s+new\s+jobs", r"jobs\s+you\s+might\s+like",
    ),
    bodies=_compile_all(
        r"job\s+alert", r"recommended\s+jobs", r"jobs\s+matching", r"jobs\s+you\s+might\s+be\s+interested",
        r"view\s+all\s+jobs", r"manage\s+your\s+job\s+alerts",
    ),
)

NEWSLETTER = PatternFamily(
    name="newsletter",
    subjects=_compile_all(r"newsletter", r"weekly\s+digest", r"\bwebinar\b"),
    bodies=_compile_all(r"unsubscribe\s+from\s+(?:this|our)\s+newsletter", r"view\s+(?:this\s+email\s+)?in\s+(?:your\s+)?browser"),
)

TALENT_COMMUNITY = PatternFamily(
    name="talent_community",
    subjects=_compile_all(r"talent\s+community", r"welcome\s+to\s+(?:our\s+)?talent"),
    bodies=_compile_all(
        r"talent\s+community", r"talent\s+pool", r"talent\s+network", r"member\s+of\s+our\s+talent",
        r"weekly\s+opportunities",
    ),
)

APPLICATION_CONFIRMATION = PatternFamily(
    name="application_confirmation",
    subjects=_compile_all(
        r"^indeed\s+application:", r"application\s+(?:received|submitted|confirmation)",
        r"thanks?\s+(?:you\s+)?for\s+(?:applying|your\s+application)",
    ),
    bodies=_compile_all(
        r"application\s+(?:has\s+been\s+)?(?:submitted|received)", r"thank\s+you\s+for\s+applying",
        r"we\s+have\s+received\s+your\s+application", r"your\s+application\s+(?:for|to)\b",
    ),
)

JOB_KEYWORDS = (
    "application", "interview", "position", "job", "career", "hiring", "resume", "cv",
    "candidate", "recruiter", "recruitment", "offer", "role", "employment", "screening", "onsite",
)
MARKETING_KEYWORDS = (
    "newsletter", "unsubscribe", "marketing", "promotion", "sale", "discount", "webinar",
    "event", "conference", "announcement", "blog", "article", "deal", "coupon",
)


def count_keywords(text: str, keywords: tuple[str, ...]) -> int:
    """Number of distinct keywords present as whole words."""
    lowered = text.lower()
    return sum(1 for kw in keywords if re.search(rf"\b{re.escape(kw)}\b", lowered))


# === Extraction patterns ===

STATUS_PATTERNS: list[tuple[JobStatus, tuple[re.Pattern, ...]]] = [
    (JobStatus.OFFER, _compile_all(
        r"congratulations", r"job\s+offer", r"pleased\s+to\s+offer", r"offer\s+letter",
        r"extend\s+(?:an?\s+)?offer",
    )),
    (JobStatus.DECLINED, _compile_all(
        r"unfortunately", r"not\s+(?:been\s+)?selected", r"decided\s+not\s+to\s+proceed", r"other\s+candidates",
        r"not\s+moving\s+forward", r"position\s+has\s+been\s+filled", r"regret\s+to\s+inform",
    )),
    (JobStatus.INTERVIEW, _compile_all(
        r"interview", r"schedule\s+a\s+call", r"next\s+steps?", r"phone\s+screen", r"video\s+call",
        r"\bzoom\b", r"meet\s+with",
    )),
    (JobStatus.APPLIED, _compile_all(
        r"application\s+received", r"thank\s+you\s+for\s+applying", r"received\s+your\s+application",
        r"application\s+submitted", r"your\s+application", r"application\s+confirmation",
    )),
]

COMPANY_DOMAIN_NAMES = {
    "google.com": "Google",
    "meta.com": "Meta",
    "facebook.com": "Meta",
    "microsoft.com": "Microsoft",
    "apple.com": "Apple",
    "amazon.com": "Amazon",
    "netflix.com": "Netflix",
    "spotify.com": "Spotify",
    "uber.com": "Uber",
    "airbnb.com": "Airbnb",
    "stripe.com": "Stripe",
    "tesla.com": "Tesla",
    "adobe.com": "Adobe",
}

PERSONAL_DOMAINS = (
    "gmail.com", "googlemail.com", "yahoo.com", "outlook.com", "hotmail.com", "live.com",
    "icloud.com", "me.com", "aol.com", "proton.me", "protonmail.com",
)

_SECOND_LEVEL_SUFFIXES = {"co", "com", "ac", "org", "net", "gov"}

COMPANY_SUBJECT_PATTERNS = _compile_all(
    r"application\s+(?:at|to|with)\s+(.+?)$",
    r"position\s+at\s+(.+?)$",
    r"interview\s+with\s+(.+?)$",
    r"^(.+?)\s*[-:|]\s*(?:job|position|application|interview)\b",
)

COMPANY_BODY_PATTERNS = _compile_all(
    r"thank\s+you\s+for\s+applying\s+(?:to|at)\s+(.+?)(?:\s+for\b|[.!,\n])",
    r"(?:position|role|opportunity)\s+at\s+(.+?)(?:[.!,\n]|\s+and\b|\s+has\b|\s+is\b)",
    r"join\s+(.+?)\s+as\b",
    r"interest\s+in\s+(?:joining\s+)?(.+?)(?:[.!,\n]|\s+and\b)",
)

POSITION_SUBJECT_PATTERNS = _compile_all(
    r"(?:your\s+)?application\s+for\s+(?:the\s+)?(.+?)(?:\s+(?:position|role))?(?:\s+at\s+.+)?$",
    r"(?:position|role):\s*(.+?)$",
    r"re:\s*(.+?)\s*[-–—]\s*application",
    r"^(.+?)\s*[-–—]\s*(?:application|interview)",
)

POSITION_BODY_PATTERNS = _compile_all(
    r"applying\s+for\s+(?:the\s+)?(.+?)\s+(?:position|role)",
    r"application\s+for\s+(?:the\s+)?(.+?)\s+(?:position|role)",
    r"interested\s+in\s+(?:the\s+)?(.+?)\s+(?:position|role)",
)


def company_from_domain(domain: Optional[str], skip: tuple[str, ...] = ()) -> Optional[str]:
    """
    Derive a company name from a sender domain.

    Mapped domains win; personal mail providers and anything in ``skip``
    (ATS vendors, job boards) yield None.
    """
    if not domain:
        return None
    for known, name in COMPANY_DOMAIN_NAMES.items():
        if domain == known or domain.endswith("." + known):
            return name
    if any(domain == d or domain.endswith("." + d) for d in PERSONAL_DOMAINS + skip):
        return None

    labels = domain.split(".")
    if len(labels) < 2:
        return None
    if len(labels) >= 3 and len(labels[-1]) == 2 and labels[-2] in _SECOND_LEVEL_SUFFIXES:
        label = labels[-3]
    else:
        label = labels[-2]
    if len(label) < 2:
        return None
    return label[0].upper() + label[1:]


def first_group(patterns: tuple[re.Pattern, ...], text: str, min_len: int, max_len: int) -> Optional[str]:
    """First captured group of length [min_len, max_len) across ``patterns``."""
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1):
            value = match.group(1).strip(" .,:;-|")
            if min_len <= len(value) < max_len:
                return value
    return None

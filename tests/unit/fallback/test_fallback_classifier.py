"""
Unit tests for the rule-based fallback classifier.
"""

import pytest

from jobmail_inference.fallback import patterns
from jobmail_inference.fallback.classifier import FallbackClassifier
from jobmail_inference.fallback.indeed import extract_indeed_fields, is_indeed_application
from jobmail_inference.models.enums import JobStatus


class TestFallbackClassifier:

    def setup_method(self):
        self.fallback = FallbackClassifier()

    def test_indeed_application(self, indeed_email):
        result = self.fallback.classify(indeed_email, reason="timeout")

        assert result.is_job_related is True
        assert result.company == "Acme"
        assert result.position == "Data Analyst"
        assert result.status is JobStatus.APPLIED
        assert result.confidence == pytest.approx(0.85)
        assert result.decision_path == "fallback:timeout"
        assert self.fallback.decide(indeed_email).rule == "ats"

    def test_ats_sender(self, sample_emails):
        email = sample_emails["ats_confirmation"]
        result = self.fallback.classify(email)

        assert self.fallback.decide(email).rule == "ats"
        assert result.position == "Backend Engineer"
        assert result.status is JobStatus.APPLIED
        assert result.decision_path == "fallback:inference_error"

    def test_rejection(self, sample_emails):
        result = self.fallback.classify(sample_emails["rejection"])

        assert result.is_job_related is True
        assert result.company == "Initech"
        assert result.status is JobStatus.DECLINED
        assert result.confidence == pytest.approx(0.8)

    def test_interview(self, sample_emails):
        result = self.fallback.classify(sample_emails["interview"])

        assert self.fallback.decide(sample_emails["interview"]).rule == "interview"
        assert result.company == "Hooli"
        assert result.status is JobStatus.INTERVIEW

    def test_offer_uses_known_domain_name(self, sample_emails):
        result = self.fallback.classify(sample_emails["offer"])

        assert result.company == "Stripe"
        assert result.status is JobStatus.OFFER

    @pytest.mark.parametrize("name,rule", [("job_alert", "job_board"), ("newsletter", "newsletter")])
    def test_not_job_signals(self, sample_emails, name, rule):
        result = self.fallback.classify(sample_emails[name])

        assert result.is_job_related is False
        assert result.confidence == pytest.approx(0.85)
        assert (result.company, result.position, result.status) == (None, None, None)
        assert self.fallback.decide(sample_emails[name]).rule == rule

    def test_personal_mail_is_ambiguous(self, sample_emails):
        decision = self.fallback.decide(sample_emails["personal"])

        assert decision.is_job_related is False
        assert decision.rule == "ambiguous"
        assert decision.confidence == pytest.approx(0.55)

    def test_application_confirmation(self, create_test_email):
        email = create_test_email()
        result = self.fallback.classify(email)

        assert self.fallback.decide(email).rule == "application_confirmation"
        assert result.confidence == pytest.approx(0.7)
        assert (result.company, result.position, result.status) == ("Globex", "Backend Engineer", JobStatus.APPLIED)

    def test_keyword_majority(self, create_test_email):
        email = create_test_email(
            subject="Quick question",
            body="Our recruiter is hiring for a role on the team and your resume stood out.",
            sender="sam@globex.com",
        )
        decision = self.fallback.decide(email)

        assert decision.is_job_related is True
        assert decision.rule == "keyword_majority"
        assert decision.confidence == pytest.approx(0.6)

    def test_marketing_outweighs_job_words(self, create_test_email):
        email = create_test_email(
            subject="Spring promotion",
            body="Big discount on career coaching. Coupon inside, deal ends soon, hiring event.",
            sender="deals@coach.example",
        )

        assert self.fallback.decide(email).is_job_related is False

    def test_status_hint(self, sample_emails):
        assert self.fallback.status_hint(sample_emails["offer"]) is JobStatus.OFFER
        assert self.fallback.status_hint(sample_emails["rejection"]) is JobStatus.DECLINED
        assert self.fallback.status_hint(sample_emails["personal"]) is None


class TestIndeed:

    def test_detected_by_sender(self, create_test_email):
        email = create_test_email(subject="Your application", sender="Indeed Apply <indeedapply@indeed.com>")
        assert is_indeed_application(email)

    def test_sent_to_layout(self, create_test_email):
        email = create_test_email(
            subject="Indeed Application: Barista",
            body="The following items were sent to Blue Bottle. Good luck!",
            sender="indeedapply@indeed.com",
        )

        assert extract_indeed_fields(email) == ("Blue Bottle", "Barista", JobStatus.APPLIED)

    def test_rating_lines_are_skipped(self, create_test_email):
        email = create_test_email(
            subject="Indeed Application: Cook",
            body="4.1 - 2,345 reviews\nDiner Co - Austin, TX",
        )

        assert extract_indeed_fields(email)[0] == "Diner Co"


class TestPatternHelpers:

    def test_company_from_domain(self):
        assert patterns.company_from_domain("careers.google.com") == "Google"
        assert patterns.company_from_domain("mail.initech.co.uk") == "Initech"
        assert patterns.company_from_domain("gmail.com") is None
        assert patterns.company_from_domain("acme.greenhouse.io", skip=("greenhouse.io",)) is None
        assert patterns.company_from_domain(None) is None

    def test_count_keywords_whole_words(self):
        assert patterns.count_keywords("Job offer for the role", patterns.JOB_KEYWORDS) == 3
        assert patterns.count_keywords("jobless offering", patterns.JOB_KEYWORDS) == 0

"""
Test fixtures for the job-mail inference service.

Contains sample data for testing:
- sample_emails.json: Named example emails (Indeed confirmation, ATS receipt,
  rejection, interview invite, offer, job alert, newsletter, personal mail)
- model_outputs.json: Raw Stage 1 / Stage 2 model outputs, clean and malformed
"""

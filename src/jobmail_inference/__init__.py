"""
Job-application mail inference and record reconciliation.

Classifies inbound email as job-application related and extracts
company / position / status with a local LLM, under hard deadlines:
- Stage 1 gate (is this job related?) and Stage 2 field extraction
- Deterministic rule-based fallback when inference times out or fails
- Tiered, source-aware cache in front of inference
- Duplicate detection and conflict resolution against stored records

Architecture: FastAPI / Celery surface + Ollama inference + staged normalization
"""

__version__ = "0.1.0"

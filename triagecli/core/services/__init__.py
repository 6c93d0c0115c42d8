"""Application services (bulk processing, triage)."""

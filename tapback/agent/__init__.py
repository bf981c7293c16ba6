"""Turn pipeline: orchestration, triage, dispatch."""

"""Long-running operation tracking (submit, poll status, progress ETA)."""

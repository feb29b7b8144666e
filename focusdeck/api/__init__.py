"""HTTP API for focusdeck."""

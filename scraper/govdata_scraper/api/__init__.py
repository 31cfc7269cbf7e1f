"""HTTP invocation boundary for vacuum runs."""

"""BilimCheck: subject tests, scoring and AI study plans."""

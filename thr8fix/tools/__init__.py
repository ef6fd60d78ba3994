"""GitHub-side tools: host access plus idempotent issue and PR creation."""

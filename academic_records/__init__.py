"""Academic records core: visibility resolution and idempotent roster registration."""

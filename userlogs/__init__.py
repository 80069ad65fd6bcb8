"""Per-identity append-only log store with streaming ZIP export."""

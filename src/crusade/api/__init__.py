"""HTTP API over the crusade engine."""

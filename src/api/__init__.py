"""HTTP API exposed by the playground backend."""

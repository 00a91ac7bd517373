"""Application layer: chat clients, conversation services and generators."""

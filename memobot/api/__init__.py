"""HTTP API for channel adapters and the web client."""

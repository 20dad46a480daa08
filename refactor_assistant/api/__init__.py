"""HTTP/SSE surface for the Refactor Assistant."""

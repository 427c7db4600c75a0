"""Infrastructure adapters: HTTP, credentials, events, observability."""

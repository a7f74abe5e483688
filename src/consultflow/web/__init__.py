"""Reference consultation REST API."""

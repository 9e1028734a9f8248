"""Core components: errors, logging, auth, rate limiting and domain managers."""

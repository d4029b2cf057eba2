"""Settings, errors, hashing helpers and logging setup."""

"""Credential and tenant storage: keyring secrets, key slots, profile store."""

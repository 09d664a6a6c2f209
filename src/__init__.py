"""Recipe Vault extraction service."""

"""External systems: AWS, Vault, Cronitor and queue adapters."""

"""cronkeeper: multi-tenant cron scheduling control plane."""

__version__ = "0.1.0"

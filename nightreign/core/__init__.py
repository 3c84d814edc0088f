"""Search core: domain models, ports and services."""

"""Interactive AWS credential onboarding for Dashboard-managed services."""

__version__ = "0.1.0"

"""Event kind constants for Dashboard event streams."""

# Provider lifecycle events
PROVIDER_CREATED = "provider.created"
PROVIDER_UPDATED = "provider.updated"
PROVIDER_DELETED = "provider.deleted"

# Provider link events
PROVIDER_LINK_CREATED = "provider_link.created"
PROVIDER_LINK_DELETED = "provider_link.deleted"

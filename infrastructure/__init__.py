"""Infrastructure adapters: HTTP and in-memory collaborators, audit logging."""

"""Task assignment module -- schemas and TaskRepository for tenant-scoped tasks."""

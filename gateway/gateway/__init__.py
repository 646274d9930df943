"""gateway: HTTP transport for typed service operations."""

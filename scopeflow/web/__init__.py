"""HTTP routes, dependencies and exception handlers."""

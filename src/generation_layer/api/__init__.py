"""HTTP surface: routes, dependency injection and exception handlers."""

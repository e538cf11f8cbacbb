"""HTTP surface: routes, schemas and dependency providers."""

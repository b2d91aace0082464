"""HTTP surface: health endpoints, versioned router, shared dependencies."""

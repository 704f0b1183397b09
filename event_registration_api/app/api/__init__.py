"""HTTP delivery layer: versioned routers and shared dependencies."""

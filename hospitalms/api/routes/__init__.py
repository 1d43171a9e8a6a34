"""API routers, one module per collection plus health."""

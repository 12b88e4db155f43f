"""api/ -- FastAPI transport layer. Translates domain error kinds into HTTP statuses."""

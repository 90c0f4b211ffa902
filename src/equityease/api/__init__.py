"""equityease.api: FastAPI service over the cache orchestrator and sweeper."""

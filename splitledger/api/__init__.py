"""HTTP request layer."""

from splitledger.api.routes import KIND_STATUS, create_api

__all__ = ["KIND_STATUS", "create_api"]

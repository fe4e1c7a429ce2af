from creative_factory.routers import approvals, creative

__all__ = ["approvals", "creative"]

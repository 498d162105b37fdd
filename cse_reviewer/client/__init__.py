"""HTTP client for the reviewer backend."""
from cse_reviewer.client.api_client import ReviewerClient, TokenStore

__all__ = ["ReviewerClient", "TokenStore"]

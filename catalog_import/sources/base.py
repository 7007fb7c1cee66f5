"""
Listing fetcher interface.

A fetcher turns a marketplace listing URL into a SourceListing. Fetchers
talk to unreliable, rate-limited sites; any failure surfaces as FetchError.
"""

from abc import ABC, abstractmethod

from ..models import SourceListing


class ListingFetcher(ABC):
    """Abstract base for marketplace listing fetchers."""

    @abstractmethod
    def fetch(self, url: str) -> SourceListing:
        """
        Fetch and parse one listing.

        Args:
            url: Listing URL

        Returns:
            SourceListing

        Raises:
            FetchError: On network, HTTP or parse failure
        """

    def close(self) -> None:
        """Release network resources. Optional for implementations."""

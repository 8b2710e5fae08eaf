"""External search adapters behind one injectable boundary."""

from .base import NullSearchAdapter, SearchAdapter, get_search_adapter

__all__ = ["SearchAdapter", "NullSearchAdapter", "get_search_adapter"]

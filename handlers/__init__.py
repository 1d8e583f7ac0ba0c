"""Handlers layer exports."""

from handlers.entity_handler import EntityHandler
from handlers.summary_handler import SummaryHandler

__all__ = ["EntityHandler", "SummaryHandler"]

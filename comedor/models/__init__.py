"""
Modelos de dominio
"""

from .base import DeleteResult, NamedRef
from .catalog import CatalogItem
from .log import LogEntry, LogPage
from .menu import Menu, ProteinOption, SideOption, UserMenu
from .reservation import (
    BulkUpdateResult,
    ProteinCount,
    Reservation,
    ReservationStatus,
    ReservationSummary,
    SummaryStatus,
)
from .whitelist import BulkImportResult, WhitelistEntry, WhitelistLogin, WhitelistPage

__all__ = [
    "BulkImportResult",
    "BulkUpdateResult",
    "CatalogItem",
    "DeleteResult",
    "LogEntry",
    "LogPage",
    "Menu",
    "NamedRef",
    "ProteinCount",
    "ProteinOption",
    "Reservation",
    "ReservationStatus",
    "ReservationSummary",
    "SideOption",
    "SummaryStatus",
    "UserMenu",
    "WhitelistEntry",
    "WhitelistLogin",
    "WhitelistPage",
]

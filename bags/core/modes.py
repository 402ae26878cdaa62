"""Input modes of the application, one dataclass per mode.

The active mode carries its own buffers, so leaving a mode discards whatever
was typed in it.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..data.models import AlertDirection, ChartRange, SearchResult, SettingsField, SettingsForm


@dataclass
class Locked:
    """Password prompt shown before the store is opened."""
    is_new: bool
    buffer: str = ""
    error: Optional[str] = None
    busy: bool = False


@dataclass
class ConfirmingPassword:
    """Second password prompt when a new store is created."""
    first: str
    buffer: str = ""
    busy: bool = False


@dataclass
class Browsing:
    pass


@dataclass
class Filtering:
    pass


@dataclass
class SortPicking:
    pass


@dataclass
class EditingAmount:
    coin_id: str
    buffer: str = ""


@dataclass
class EditingAlert:
    coin_id: str
    buffer: str = ""
    direction: AlertDirection = AlertDirection.ABOVE


@dataclass
class EditingBuyPrice:
    coin_id: str
    buffer: str = ""


@dataclass
class Settings:
    """Settings popup; ``saved_theme`` is restored when the popup is cancelled."""
    form: SettingsForm
    saved_theme: str
    field: SettingsField = SettingsField.CURRENCY
    editing: bool = False


@dataclass
class SearchQuery:
    query: str = ""
    error: Optional[str] = None
    loading: bool = False


@dataclass
class SearchResults:
    query: str
    results: List[SearchResult] = field(default_factory=list)
    selected: int = 0


@dataclass
class ChartPopup:
    coin_id: str
    range: ChartRange = ChartRange.DAY_1


Mode = Union[
    Locked, ConfirmingPassword, Browsing, Filtering, SortPicking,
    EditingAmount, EditingAlert, EditingBuyPrice, Settings,
    SearchQuery, SearchResults, ChartPopup,
]

EDIT_MODES = (EditingAmount, EditingAlert, EditingBuyPrice)

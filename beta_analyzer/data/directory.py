"""
Offline industry directory.

A spreadsheet of listed Indian companies and their industry groups is loaded
once into an immutable ``IndustryDirectory`` snapshot. Peer discovery reads
the snapshot; a reload builds a new snapshot and swaps it in whole.
"""

import threading
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence, Union

import pandas as pd
import structlog

from beta_analyzer.ticker_utils import bare_symbol, to_directory_symbol

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DirectoryEntry:
    """One company row of the directory, keyed by bare ticker."""

    symbol: str
    company_name: str = ""
    industry: str = ""


@dataclass(frozen=True)
class IndustryDirectory:
    """
    Read-only mapping of bare ticker to company name and industry label.

    Entries keep the order of the source file, which is the order industry
    peers are proposed in.
    """

    entries: Sequence[DirectoryEntry] = field(default_factory=tuple)
    source: Optional[str] = None

    def __post_init__(self):
        by_symbol = {}
        for entry in self.entries:
            by_symbol.setdefault(entry.symbol, entry)
        object.__setattr__(self, "entries", tuple(self.entries))
        object.__setattr__(self, "_by_symbol", MappingProxyType(by_symbol))

    def __len__(self) -> int:
        return len(self.entries)

    def is_empty(self) -> bool:
        return not self.entries

    @property
    def by_symbol(self) -> Mapping[str, DirectoryEntry]:
        return self._by_symbol

    def lookup(self, symbol: str) -> Optional[DirectoryEntry]:
        """Entry for a bare or suffixed symbol ("TCS" or "TCS.NS")."""
        if not symbol:
            return None
        return self._by_symbol.get(bare_symbol(symbol))

    def industry_of(self, symbol: str) -> Optional[str]:
        entry = self.lookup(symbol)
        if entry is None or not entry.industry:
            return None
        return entry.industry

    def symbols_in_industry(
        self, industry: str, exclude: Optional[str] = None
    ) -> List[str]:
        """Bare symbols whose industry label matches exactly, in file order."""
        if not industry:
            return []
        excluded = bare_symbol(exclude) if exclude else None
        return [
            entry.symbol
            for entry in self.entries
            if entry.industry == industry and entry.symbol != excluded
        ]


def _find_column(headers: List[str], matches) -> Optional[int]:
    for idx, header in enumerate(headers):
        if matches(header):
            return idx
    return None


def directory_from_frame(frame: pd.DataFrame, source: Optional[str] = None) -> IndustryDirectory:
    """
    Build a directory from a raw sheet whose first row holds the headers.

    Header detection:
        - company: contains "company" or equals "name"
        - ticker: contains "ticker" or equals "symbol"
        - industry: equals "industry group", "industry" or "sector"
    """
    if frame is None or frame.empty:
        return IndustryDirectory(source=source)

    headers = [str(h if h is not None and not pd.isna(h) else "").strip().lower() for h in frame.iloc[0]]
    rows = frame.iloc[1:]

    name_idx = _find_column(headers, lambda h: "company" in h or h == "name")
    ticker_idx = _find_column(headers, lambda h: "ticker" in h or h == "symbol")
    industry_idx = _find_column(headers, lambda h: h in ("industry group", "industry", "sector"))

    if ticker_idx is None:
        logger.warning("directory_missing_ticker_column", source=source, headers=headers)
        return IndustryDirectory(source=source)

    def cell(row, idx: Optional[int]) -> str:
        if idx is None or idx >= len(row):
            return ""
        value = row.iloc[idx]
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return ""
        # Numeric BSE codes come back from Excel as floats
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).strip()

    entries = []
    for _, row in rows.iterrows():
        symbol = to_directory_symbol(cell(row, ticker_idx))
        if not symbol:
            continue
        entries.append(
            DirectoryEntry(
                symbol=symbol,
                company_name=cell(row, name_idx),
                industry=cell(row, industry_idx),
            )
        )

    return IndustryDirectory(entries=entries, source=source)


def load_industry_directory(path: Union[str, Path, None]) -> IndustryDirectory:
    """
    Load the industry directory from an .xlsx/.xls or .csv file.

    A missing or unreadable file yields an empty directory; peer discovery
    then relies on provider recommendations alone.

    Args:
        path: Spreadsheet location

    Returns:
        IndustryDirectory snapshot (possibly empty)
    """
    if not path:
        logger.warning("industry_directory_not_configured")
        return IndustryDirectory()

    path = Path(path)
    if not path.exists():
        logger.warning("industry_directory_not_found", path=str(path))
        return IndustryDirectory(source=str(path))

    try:
        if path.suffix.lower() == ".csv":
            frame = pd.read_csv(path, header=None, dtype=str, keep_default_na=False)
        else:
            # First worksheet only
            frame = pd.read_excel(path, sheet_name=0, header=None, engine="openpyxl")
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        logger.error(
            "industry_directory_load_failed",
            path=str(path),
            error_type=type(e).__name__,
            error=str(e),
        )
        return IndustryDirectory(source=str(path))

    directory = directory_from_frame(frame, source=str(path))
    logger.info(
        "industry_directory_loaded",
        path=str(path),
        entries=len(directory),
        industries=len({e.industry for e in directory.entries if e.industry}),
    )
    return directory


class DirectoryHolder:
    """
    Process-wide holder of the current directory snapshot.

    Readers take ``current`` once per analysis run; ``reload`` replaces the
    snapshot reference under a lock and never mutates the old one.
    """

    def __init__(self, path: Union[str, Path, None] = None, directory: Optional[IndustryDirectory] = None):
        self._path = path
        self._lock = threading.Lock()
        self._current = directory if directory is not None else load_industry_directory(path)

    @property
    def current(self) -> IndustryDirectory:
        return self._current

    def reload(self, path: Union[str, Path, None] = None) -> IndustryDirectory:
        """Load a fresh snapshot and swap it in."""
        if path is not None:
            self._path = path
        snapshot = load_industry_directory(self._path)
        with self._lock:
            self._current = snapshot
        logger.info("industry_directory_swapped", entries=len(snapshot))
        return snapshot

from __future__ import annotations

from pathlib import Path
from typing import List

import pandas as pd

from portfolio_optimizer.exceptions import InvalidAssetError
from portfolio_optimizer.models import Asset


# Bundled sample file, resolved relative to this file so it works regardless
# of which directory the user launches from.
_DEFAULT_FILE = Path(__file__).parent.parent / "data" / "sample_assets.csv"

# Accepted column spellings → Asset field names
_COLUMN_ALIASES = {
    "ticker": "symbol",
    "expectedReturn": "expected_return",
    "return": "expected_return",
    "volatility": "risk",
    "marketCap": "market_cap",
    "peRatio": "pe_ratio",
    "pe": "pe_ratio",
    "isIndexFund": "is_index_fund",
}

_REQUIRED = {"symbol", "expected_return", "risk"}


class DataLoader:
    """
    Loads candidate assets from a CSV or JSON file.

    Expected columns (one row per asset)::

        symbol, expected_return, risk, beta, sector, market_cap, pe_ratio, is_index_fund

    Only ``symbol``, ``expected_return`` and ``risk`` are required.  JSON
    files hold a list of records with the same keys.
    """

    def __init__(self, path: str | Path = _DEFAULT_FILE):
        self._path = Path(path)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def load_frame(self) -> pd.DataFrame:
        """
        Return the raw asset table with normalised column names.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValueError
            If the format is unsupported, the table is empty, or a required
            column is missing.
        """
        if not self._path.exists():
            raise FileNotFoundError(f"Asset file not found: {self._path}")

        suffix = self._path.suffix.lower()
        if suffix == ".csv":
            # Keep market caps like "45.2B" as text
            frame = pd.read_csv(self._path, dtype={"market_cap": str, "marketCap": str})
        elif suffix == ".json":
            frame = pd.read_json(self._path, orient="records", convert_dates=False)
        else:
            raise ValueError(f"Unsupported asset file type {suffix!r}; use .csv or .json.")

        frame = frame.rename(columns=_COLUMN_ALIASES)

        if frame.empty:
            raise ValueError(f"Asset file {self._path} contains no rows.")

        missing = _REQUIRED - set(frame.columns)
        if missing:
            raise ValueError(
                f"Asset file {self._path} is missing columns: {sorted(missing)}"
            )
        return frame

    def load_assets(self) -> List[Asset]:
        """Return one :class:`Asset` per row, in file order."""
        return assets_from_frame(self.load_frame())


def assets_from_frame(frame: pd.DataFrame) -> List[Asset]:
    """
    Convert a DataFrame of asset rows into ``Asset`` objects.

    Empty cells (NaN) become missing values so ``Asset.from_dict`` applies
    its defaults.

    Raises
    ------
    InvalidAssetError
        If any row is malformed.
    """
    records = frame.astype(object).where(frame.notna(), None).to_dict(orient="records")
    assets = []
    for row_number, record in enumerate(records, start=1):
        try:
            assets.append(Asset.from_dict(record))
        except InvalidAssetError as exc:
            raise InvalidAssetError(f"Row {row_number}: {exc}") from exc
    return assets

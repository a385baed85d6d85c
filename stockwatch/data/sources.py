"""
Base data source interface.

All market data providers follow this pattern:
1. Batch quotes for many codes in one request
2. Per-symbol fundamentals (optional fields, absence is not an error)
3. Per-symbol OHLCV series for a bar period
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import pandas as pd

from ..shared.types import Detail, KLinePeriod, Quote


class DataSource(ABC):
    """
    Base class for market data providers.

    Implementations are called concurrently from scheduler threads and
    must be safe to share between them.
    """

    @abstractmethod
    def fetch_quotes(self, codes: Sequence[str]) -> List[Quote]:
        """
        Fetch current quotes for a batch of codes.

        Args:
            codes: Instrument codes (at most one chunk's worth)

        Returns:
            Quotes for the codes the provider knows; unknown codes are
            simply missing from the list
        """
        pass

    @abstractmethod
    def fetch_detail(self, code: str) -> Optional[Detail]:
        """
        Fetch fundamentals for one code.

        Returns:
            Detail, or None if the provider has nothing for the code
        """
        pass

    @abstractmethod
    def fetch_series(self, code: str, period: KLinePeriod, count: int) -> pd.DataFrame:
        """
        Fetch the most recent `count` bars for one code.

        Args:
            code: Instrument code
            period: Bar granularity
            count: Number of bars wanted (fewer may be returned)

        Returns:
            OHLCV DataFrame (Open/High/Low/Close/Volume) with a strictly
            increasing DatetimeIndex; empty if no data exists
        """
        pass

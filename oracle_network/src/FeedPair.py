"""FeedPair: Asset pair representation for price feeds.

A feed prices one base asset in units of a quote asset. Asset symbols are
normalized to uppercase. The feed hash used by external consumers to address
a feed is computed as:
    keccak256(feed_id + "/" + base + "/" + quote)

.. code-block:: python

    >>> pair = FeedPair("xlm", "usd")
    >>> str(pair)
    'XLM/USD'
"""

from __future__ import annotations

from web3 import Web3

from .errors import InvalidInput


class FeedPair:
    """A base/quote asset pair.

    :ivar base: Base asset symbol (uppercase).
    :ivar quote: Quote asset symbol (uppercase).
    """

    def __init__(self, base: str, quote: str) -> None:
        """Initialize a feed pair.

        :param base: Base asset symbol (e.g., "XLM", "BTC").
        :param quote: Quote asset symbol (e.g., "USD").
        :raises InvalidInput: If a symbol is empty or contains "/".
        """
        for symbol in (base, quote):
            if not symbol or "/" in symbol or not symbol.strip():
                raise InvalidInput(f"Invalid asset symbol {symbol!r}")
        self.base = base.strip().upper()
        self.quote = quote.strip().upper()

    def __str__(self) -> str:
        return f"{self.base}/{self.quote}"

    def __repr__(self) -> str:
        return f"FeedPair({self.base!r}, {self.quote!r})"

    def __hash__(self) -> int:
        return hash(str(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeedPair):
            return NotImplemented
        return str(self) == str(other)

    def compute_feed_hash(self, feed_id: str) -> bytes:
        """Compute the keccak256 key consumers use to address this feed.

        :param feed_id: Feed identifier (e.g., "XLMUSD").
        :returns: 32-byte keccak256 hash.

        .. code-block:: python

            >>> len(FeedPair("XLM", "USD").compute_feed_hash("XLMUSD"))
            32
        """
        return Web3.keccak(text=f"{feed_id}/{self}")

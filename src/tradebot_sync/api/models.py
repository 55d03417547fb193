"""
Payload models for the trading-bot backend.

Every response body is validated against one of these models at the client
boundary. Downstream code works with validated models (or plain dicts
produced from them) and never inspects raw payloads for optional fields.

Note on the ticker endpoint:
    The backend proxies the exchange's v2 ticker format, which wraps a
    single-element list under "data" and renames fields (lastPr, baseVolume).
    TickerSnapshot.from_response() normalizes that into the flat shape the
    dashboard renders.

Note on the balance endpoint:
    "data" may be a list of per-coin rows or a single object. Either way
    AccountBalance.from_response() reduces it to the first row.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Metadata fields the persistence layer adds to stored configuration documents
DOCUMENT_FIELDS = frozenset({"_id", "__v", "symbol", "createdAt", "updatedAt"})


def _to_str(value: Any) -> Any:
    """Coerce numeric ticker fields to strings (the exchange sends both)."""
    if value is None or isinstance(value, str):
        return value
    return str(value)


# =============================================================================
# Bot Status
# =============================================================================


class BotStatus(BaseModel):
    """
    Runtime status of a bot for one symbol.

    `config` is the configuration the running process holds in memory.
    When the bot is not running the backend may still attach the last
    persisted configuration here, so callers must check `running` first.
    """

    model_config = ConfigDict(extra="allow")

    running: bool = False
    uptime: Optional[float] = None
    stats: Optional[dict[str, Any]] = None
    config: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def live_config(self) -> Optional[dict[str, Any]]:
        """Embedded configuration, only if the bot is actually running."""
        if self.running and self.config:
            return self.config
        return None


# =============================================================================
# Configuration
# =============================================================================


def config_from_document(document: dict[str, Any]) -> dict[str, Any]:
    """
    Extract the configuration tree from a stored configuration document.

    Documents either wrap the tree under "config" or store the sections
    at the top level next to persistence metadata.
    """
    nested = document.get("config")
    if isinstance(nested, dict):
        return dict(nested)
    return {k: v for k, v in document.items() if k not in DOCUMENT_FIELDS}


# =============================================================================
# Market Data
# =============================================================================


class TickerRow(BaseModel):
    """One row of the exchange's v2 ticker response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    symbol: str
    last_price: str = Field(alias="lastPr")
    open_24h: Optional[str] = Field(default=None, alias="open24h")
    high_24h: Optional[str] = Field(default=None, alias="high24h")
    low_24h: Optional[str] = Field(default=None, alias="low24h")
    base_volume: Optional[str] = Field(default=None, alias="baseVolume")
    change_24h: Optional[str] = Field(default=None, alias="change24h")
    mark_price: Optional[str] = Field(default=None, alias="markPrice")

    @field_validator(
        "last_price", "open_24h", "high_24h", "low_24h",
        "base_volume", "change_24h", "mark_price",
        mode="before",
    )
    @classmethod
    def _coerce_numeric(cls, value: Any) -> Any:
        return _to_str(value)


class TickerResponse(BaseModel):
    """Envelope of the v2 ticker response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    code: Optional[str] = None
    msg: Optional[str] = None
    request_time: Optional[int] = Field(default=None, alias="requestTime")
    data: list[TickerRow] = Field(min_length=1)


class TickerSnapshot(BaseModel):
    """Flat ticker as rendered by the dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    symbol: str
    last: str
    open_24h: Optional[str] = Field(default=None, alias="open24h")
    high_24h: Optional[str] = Field(default=None, alias="high24h")
    low_24h: Optional[str] = Field(default=None, alias="low24h")
    volume_24h: Optional[str] = Field(default=None, alias="volume24h")
    change_24h: Optional[str] = Field(default=None, alias="change24h")
    mark_price: Optional[str] = Field(default=None, alias="markPrice")

    @classmethod
    def from_response(cls, response: TickerResponse) -> "TickerSnapshot":
        """Normalize the first row of a v2 ticker response."""
        row = response.data[0]
        return cls(
            symbol=row.symbol,
            last=row.last_price,
            open_24h=row.open_24h,
            high_24h=row.high_24h,
            low_24h=row.low_24h,
            volume_24h=row.base_volume,
            change_24h=row.change_24h,
            mark_price=row.mark_price,
        )

    def to_payload(self) -> dict[str, Any]:
        """Consumer-facing dict (camelCase keys)."""
        return self.model_dump(by_alias=True)


class MarketAnalysis(BaseModel):
    """Market-condition analysis and the strategy recommended for it."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    symbol: Optional[str] = None
    market_type: str = Field(alias="marketType")
    recommended_strategy: str = Field(alias="recommendedStrategy")
    confidence: float = 0.0
    volatility: float = 0.0
    volume_ratio: float = Field(default=0.0, alias="volumeRatio")
    trend_strength: float = Field(default=0.0, alias="trendStrength")
    timestamp: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        """Consumer-facing dict (camelCase keys)."""
        return self.model_dump(by_alias=True)


class BotStats(BaseModel):
    """Trading statistics for one bot."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    total_trades: int = Field(default=0, alias="totalTrades")
    win_trades: int = Field(default=0, alias="winTrades")
    loss_trades: int = Field(default=0, alias="lossTrades")
    total_pnl: float = Field(default=0.0, alias="totalPnl")
    max_drawdown: float = Field(default=0.0, alias="maxDrawdown")
    current_balance: float = Field(default=0.0, alias="currentBalance")
    initial_balance: float = Field(default=0.0, alias="initialBalance")
    active_strategy: Optional[str] = Field(default=None, alias="activeStrategy")

    @property
    def win_rate(self) -> float:
        """Winning trades as a percentage of all closed trades."""
        if self.total_trades == 0:
            return 0.0
        return self.win_trades / self.total_trades * 100

    def to_payload(self) -> dict[str, Any]:
        """Consumer-facing dict (camelCase keys)."""
        return self.model_dump(by_alias=True)


# =============================================================================
# Account Balance
# =============================================================================


class BalanceRow(BaseModel):
    """One margin-coin entry of the account balance response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    margin_coin: str = Field(default="USDT", alias="marginCoin")
    available: Optional[float] = None
    equity: Optional[float] = None
    usdt_equity: Optional[float] = Field(default=None, alias="usdtEquity")
    # Older backends report only the aggregate margin
    total_available_margin: Optional[float] = Field(default=None, alias="totalAvailableMargin")


class BalanceResponse(BaseModel):
    """
    Envelope of the account balance response.

    The exchange returns "data" either as a list of per-coin rows or as a
    single object; both are accepted, a missing or empty "data" is not.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    code: Optional[str] = None
    msg: Optional[str] = None
    request_time: Optional[int] = Field(default=None, alias="requestTime")
    data: Union[list[BalanceRow], BalanceRow]

    @field_validator("data")
    @classmethod
    def _require_rows(cls, value: Any) -> Any:
        if isinstance(value, list) and not value:
            raise ValueError("balance data is empty")
        return value


class AccountBalance(BaseModel):
    """Account balance in the margin coin, as rendered by the header."""

    model_config = ConfigDict(populate_by_name=True)

    margin_coin: str = Field(default="USDT", alias="marginCoin")
    available: float = 0.0
    equity: float = 0.0
    usdt_equity: float = Field(default=0.0, alias="usdtEquity")

    @classmethod
    def from_response(cls, response: BalanceResponse) -> "AccountBalance":
        """Normalize the first row (or the single object) of a balance response."""
        row = response.data[0] if isinstance(response.data, list) else response.data
        available = row.available
        if available is None:
            available = row.total_available_margin
        return cls(
            margin_coin=row.margin_coin,
            available=available or 0.0,
            equity=row.equity or 0.0,
            usdt_equity=row.usdt_equity or 0.0,
        )

    def to_payload(self) -> dict[str, Any]:
        """Consumer-facing dict (camelCase keys)."""
        return self.model_dump(by_alias=True)

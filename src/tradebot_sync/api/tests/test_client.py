"""
Tests for the trading-bot REST client.

These tests verify:
- Error taxonomy (404 -> NotFoundError, 5xx/network -> TransportError,
  bad JSON / bad payload -> MalformedResponseError)
- Every call makes exactly one attempt
- Ticker v2 normalization
- Account balance normalization (list or object "data")
- Persisted configuration extraction
"""

import asyncio

import aiohttp
import pytest

from tradebot_sync.api.client import (
    BotApiClient,
    MalformedResponseError,
    NotFoundError,
    TransportError,
)
from tradebot_sync.api.models import AccountBalance, BotStatus, TickerSnapshot


class TestErrorTaxonomy:
    """Tests for mapping transport outcomes onto typed errors."""

    @pytest.mark.asyncio
    async def test_404_raises_not_found(self, client, respond, response):
        respond(response(404, {"error": "No config"}))

        with pytest.raises(NotFoundError) as exc_info:
            await client.get("bot/config", params={"symbol": "BTCUSDT"})

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_404_is_not_retried(self, client, fake_session, respond, response):
        respond(response(404, {}), response(200, {"activeStrategy": "DCA"}))

        with pytest.raises(NotFoundError):
            await client.get("bot/config")

        assert fake_session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_500_raises_transport_error(self, client, respond, response):
        respond(response(500, {"error": "boom"}))

        with pytest.raises(TransportError) as exc_info:
            await client.get("bot/status")

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_400_raises_transport_error(self, client, fake_session, respond, response):
        respond(response(400, {"error": "Symbol is required"}))

        with pytest.raises(TransportError) as exc_info:
            await client.get("bot/status")

        assert exc_info.value.status_code == 400
        assert fake_session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self, client, respond):
        respond(aiohttp.ClientConnectionError("refused"))

        with pytest.raises(TransportError) as exc_info:
            await client.get("bot/status")

        assert "refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout_raises_transport_error(self, client, respond):
        respond(asyncio.TimeoutError())

        with pytest.raises(TransportError, match="timed out"):
            await client.get("market/ticker/BTCUSDT")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_malformed(self, client, respond, response):
        respond(response(200, invalid_json=True))

        with pytest.raises(MalformedResponseError):
            await client.get("bot/status")

    @pytest.mark.asyncio
    async def test_cancelled_error_propagates(self, client, respond):
        respond(asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await client.get("bot/status")

    @pytest.mark.asyncio
    async def test_5xx_makes_single_attempt(self, client, fake_session, respond, response):
        respond(response(503, {}), response(200, {"running": False}))

        with pytest.raises(TransportError):
            await client.get("bot/status")

        assert fake_session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_timeout_makes_single_attempt(self, client, fake_session, respond, response):
        respond(asyncio.TimeoutError(), response(200, {"running": False}))

        with pytest.raises(TransportError):
            await client.get("bot/status")

        assert fake_session.request.call_count == 1

    def test_retry_settings_not_accepted(self, fake_session):
        """Retrying belongs to the sync controller, not the transport."""
        with pytest.raises(TypeError):
            BotApiClient("http://bot.local/api", session=fake_session, max_retries=2)


class TestBotEndpoints:
    """Tests for bot status / config / strategy endpoints."""

    @pytest.mark.asyncio
    async def test_get_bot_status_passes_symbol(
        self, client, fake_session, respond, response, running_status_payload
    ):
        respond(response(200, running_status_payload))

        status = await client.get_bot_status("BTCUSDT")

        assert isinstance(status, BotStatus)
        assert status.running is True
        assert status.config["activeStrategy"] == "DCA"
        args, kwargs = fake_session.request.call_args
        assert args == ("GET", "http://bot.local/api/bot/status")
        assert kwargs["params"] == {"symbol": "BTCUSDT"}

    @pytest.mark.asyncio
    async def test_get_bot_status_rejects_non_object(self, client, respond, response):
        respond(response(200, ["not", "an", "object"]))

        with pytest.raises(MalformedResponseError):
            await client.get_bot_status("BTCUSDT")

    @pytest.mark.asyncio
    async def test_get_bot_config_strips_document_fields(
        self, client, respond, response, stored_config_document
    ):
        respond(response(200, stored_config_document))

        config = await client.get_bot_config("BTCUSDT")

        assert config["activeStrategy"] == "SCALPING"
        assert config["common"]["leverage"] == 5
        for field in ("_id", "__v", "symbol", "createdAt", "updatedAt"):
            assert field not in config

    @pytest.mark.asyncio
    async def test_get_bot_config_unwraps_nested_config(self, client, respond, response):
        respond(response(200, {"symbol": "ETHUSDT", "config": {"activeStrategy": "DCA"}}))

        config = await client.get_bot_config("ETHUSDT")

        assert config == {"activeStrategy": "DCA"}

    @pytest.mark.asyncio
    async def test_get_bot_config_empty_body_is_none(self, client, respond, response):
        respond(response(200, None))

        assert await client.get_bot_config("BTCUSDT") is None

    @pytest.mark.asyncio
    async def test_update_bot_config_posts_symbol_and_tree(
        self, client, fake_session, respond, response
    ):
        respond(response(200, {"success": True}))
        tree = {"activeStrategy": "DCA", "common": {"leverage": 15}}

        result = await client.update_bot_config("BTCUSDT", tree)

        assert result == {"success": True}
        args, kwargs = fake_session.request.call_args
        assert args == ("POST", "http://bot.local/api/bot/config")
        assert kwargs["json"] == {"symbol": "BTCUSDT", "config": tree}

    @pytest.mark.asyncio
    async def test_set_strategy_posts_strategy(self, client, fake_session, respond, response):
        respond(response(200, {"success": True, "currentStrategy": "SCALPING"}))

        await client.set_strategy("BTCUSDT", "SCALPING")

        _, kwargs = fake_session.request.call_args
        assert kwargs["json"] == {"symbol": "BTCUSDT", "strategy": "SCALPING"}

    @pytest.mark.asyncio
    async def test_analyze_market_requires_recommendation(self, client, respond, response):
        respond(response(200, {"marketType": "TRENDING", "confidence": 0.8}))

        with pytest.raises(MalformedResponseError):
            await client.analyze_market("BTCUSDT")

    @pytest.mark.asyncio
    async def test_get_bot_stats(self, client, respond, response):
        respond(response(200, {"totalTrades": 10, "winTrades": 7, "totalPnl": 12.5}))

        stats = await client.get_bot_stats("BTCUSDT")

        assert stats.total_trades == 10
        assert stats.win_rate == pytest.approx(70.0)


class TestTicker:
    """Tests for ticker normalization."""

    @pytest.mark.asyncio
    async def test_normalizes_v2_fields(self, client, fake_session, respond, response, ticker_v2_payload):
        respond(response(200, ticker_v2_payload))

        ticker = await client.get_ticker("BTCUSDT")

        assert isinstance(ticker, TickerSnapshot)
        assert ticker.last == "64250.5"
        assert ticker.volume_24h == "18234.2"
        assert ticker.mark_price == "64251.0"
        args, _ = fake_session.request.call_args
        assert args == ("GET", "http://bot.local/api/market/ticker/BTCUSDT")

    @pytest.mark.asyncio
    async def test_numeric_fields_become_strings(self, client, respond, response):
        respond(response(200, {"data": [{"symbol": "ETHUSDT", "lastPr": 3100.25, "baseVolume": 12}]}))

        ticker = await client.get_ticker("ETHUSDT")

        assert ticker.last == "3100.25"
        assert ticker.volume_24h == "12"

    @pytest.mark.asyncio
    async def test_empty_data_is_malformed(self, client, respond, response):
        respond(response(200, {"code": "00000", "msg": "success", "data": []}))

        with pytest.raises(MalformedResponseError):
            await client.get_ticker("BTCUSDT")

    @pytest.mark.asyncio
    async def test_payload_uses_dashboard_keys(self, client, respond, response, ticker_v2_payload):
        respond(response(200, ticker_v2_payload))

        payload = (await client.get_ticker("BTCUSDT")).to_payload()

        assert payload["symbol"] == "BTCUSDT"
        assert payload["last"] == "64250.5"
        assert payload["volume24h"] == "18234.2"
        assert "lastPr" not in payload


class TestAccountBalance:
    """Tests for the account balance endpoint."""

    @pytest.mark.asyncio
    async def test_reads_first_row(self, client, fake_session, respond, response, balance_payload):
        respond(response(200, balance_payload))

        balance = await client.get_account_balance()

        assert isinstance(balance, AccountBalance)
        assert balance.margin_coin == "USDT"
        assert balance.available == pytest.approx(1523.75)
        assert balance.usdt_equity == pytest.approx(1610.20)
        args, kwargs = fake_session.request.call_args
        assert args == ("GET", "http://bot.local/api/account/balance")
        assert kwargs["params"] is None

    @pytest.mark.asyncio
    async def test_single_object_data(self, client, respond, response):
        respond(response(200, {"data": {"marginCoin": "USDT", "available": 12, "equity": 15}}))

        balance = await client.get_account_balance()

        assert balance.available == 12.0
        assert balance.equity == 15.0

    @pytest.mark.asyncio
    async def test_total_available_margin_used_when_available_missing(self, client, respond, response):
        respond(response(200, {"data": {"totalAvailableMargin": "88.5"}}))

        balance = await client.get_account_balance()

        assert balance.available == pytest.approx(88.5)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"code": "00000", "msg": "success"},
        {"code": "00000", "data": None},
        {"code": "00000", "data": []},
        ["not", "an", "object"],
    ])
    async def test_missing_data_is_malformed(self, client, respond, response, body):
        respond(response(200, body))

        with pytest.raises(MalformedResponseError):
            await client.get_account_balance()

    @pytest.mark.asyncio
    async def test_payload_uses_dashboard_keys(self, client, respond, response, balance_payload):
        respond(response(200, balance_payload))

        payload = (await client.get_account_balance()).to_payload()

        assert payload == {
            "marginCoin": "USDT",
            "available": 1523.75,
            "equity": 1610.20,
            "usdtEquity": 1610.20,
        }


class TestSessionLifecycle:
    """Tests for session ownership."""

    @pytest.mark.asyncio
    async def test_does_not_close_borrowed_session(self, client, fake_session):
        await client.close()

        fake_session.close.assert_not_called()

    def test_base_url_trailing_slash_stripped(self):
        client = BotApiClient("http://bot.local/api/")

        assert client.base_url == "http://bot.local/api"

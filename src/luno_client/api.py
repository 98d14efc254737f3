from __future__ import annotations

from concurrent.futures import Future
from typing import Any

from .client import Callback, LunoClient
from .config import VERSION


class Luno(LunoClient):
    """
    Luno exchange endpoints.

    Every method returns a ``Future`` resolving to the decoded JSON payload,
    or ``None`` when ``callback`` is given. ``options`` is merged over the
    method's defaults, so any documented query/body field can be passed.
    """

    def _with_pair(self, options: dict[str, Any] | None) -> dict[str, Any]:
        return {"pair": self.config.pair, **(options or {})}

    # ---------- market data ----------
    def get_ticker(self, options: dict[str, Any] | None = None, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/1/ticker", self._with_pair(options), callback)

    def get_all_tickers(self, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/1/tickers", None, callback)

    def get_order_book(self, options: dict[str, Any] | None = None, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/1/orderbook", self._with_pair(options), callback)

    def get_trades(self, options: dict[str, Any] | None = None, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/1/trades", self._with_pair(options), callback)

    # ---------- orders ----------
    def get_order_list(self, options: dict[str, Any] | None = None, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/1/listorders", self._with_pair(options), callback)

    def get_order_list_v2(
        self, options: dict[str, Any] | None = None, *, callback: Callback | None = None
    ) -> Future | None:
        return self._request("GET", "/api/exchange/2/listorders", self._with_pair(options), callback)

    def get_trade_list(self, options: dict[str, Any] | None = None, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/1/listtrades", self._with_pair(options), callback)

    def get_fee_info(self, options: dict[str, Any] | None = None, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/1/fee_info", self._with_pair(options), callback)

    def stop_order(self, order_id: str, *, callback: Callback | None = None) -> Future | None:
        return self._request("POST", "/api/1/stoporder", {"order_id": order_id}, callback)

    def post_buy_order(
        self,
        volume: Any,
        price: Any,
        options: dict[str, Any] | None = None,
        *,
        callback: Callback | None = None,
    ) -> Future | None:
        body = {"type": "BID", "volume": volume, "price": price, "pair": self.config.pair, **(options or {})}
        return self._request("POST", "/api/1/postorder", body, callback)

    def post_market_buy_order(
        self, volume: Any, options: dict[str, Any] | None = None, *, callback: Callback | None = None
    ) -> Future | None:
        # market buys are sized in the counter currency
        body = {"type": "BUY", "counter_volume": volume, "pair": self.config.pair, **(options or {})}
        return self._request("POST", "/api/1/marketorder", body, callback)

    def post_sell_order(
        self,
        volume: Any,
        price: Any,
        options: dict[str, Any] | None = None,
        *,
        callback: Callback | None = None,
    ) -> Future | None:
        body = {"type": "ASK", "volume": volume, "price": price, "pair": self.config.pair, **(options or {})}
        return self._request("POST", "/api/1/postorder", body, callback)

    def post_market_sell_order(
        self, volume: Any, options: dict[str, Any] | None = None, *, callback: Callback | None = None
    ) -> Future | None:
        body = {"type": "SELL", "base_volume": volume, "pair": self.config.pair, **(options or {})}
        return self._request("POST", "/api/1/marketorder", body, callback)

    def get_order(self, order_id: str, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", f"/api/1/orders/{order_id}", None, callback)

    def get_order_v2(self, order_id: str, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", f"/api/exchange/2/orders/{order_id}", None, callback)

    def get_order_v3(self, options: dict[str, Any] | None = None, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/exchange/3/order", options, callback)

    # ---------- accounts & funding ----------
    def get_balance(self, asset: str | None = None, *, callback: Callback | None = None) -> Future | None:
        params = {"assets": [asset]} if asset else None
        return self._request("GET", "/api/1/balance", params, callback)

    def get_funding_address(
        self, asset: str, options: dict[str, Any] | None = None, *, callback: Callback | None = None
    ) -> Future | None:
        return self._request("GET", "/api/1/funding_address", {"asset": asset, **(options or {})}, callback)

    def create_funding_address(self, asset: str, *, callback: Callback | None = None) -> Future | None:
        return self._request("POST", "/api/1/funding_address", {"asset": asset}, callback)

    def get_transactions(
        self, asset: str, options: dict[str, Any] | None = None, *, callback: Callback | None = None
    ) -> Future | None:
        params = {"asset": asset, "offset": 0, "limit": 10, **(options or {})}
        return self._request("GET", "/api/1/transactions", params, callback)

    # ---------- withdrawals ----------
    def get_withdrawals(self, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", "/api/1/withdrawals/", None, callback)

    def get_withdrawal(self, withdrawal_id: str, *, callback: Callback | None = None) -> Future | None:
        return self._request("GET", f"/api/1/withdrawals/{withdrawal_id}", None, callback)

    def request_withdrawal(
        self, withdrawal_type: str, amount: Any, *, callback: Callback | None = None
    ) -> Future | None:
        body = {"type": withdrawal_type, "amount": amount}
        return self._request("POST", "/api/1/withdrawals/", body, callback)

    def cancel_withdrawal(self, withdrawal_id: str, *, callback: Callback | None = None) -> Future | None:
        return self._request("DELETE", f"/api/1/withdrawals/{withdrawal_id}", None, callback)


class BitX(Luno):
    """Legacy name of the Luno client; only the User-Agent differs."""

    default_user_agent = f"bitx-api-python v{VERSION}"

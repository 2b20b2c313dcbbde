"""
Market adapters for the sillyexchange.

``SillyExchangeAdapter`` is the transport: one HTTP call per operation, every
call registered with the ``RateTracker`` exactly once, failures classified as
``RateLimitError`` (HTTP 429) or ``RequestError`` (anything else). It performs
no retries; retry policy belongs to the trade executor.

``InMemoryMarketAdapter`` keeps the same contract against an in-process
market and is used by tests and dry runs.
"""

from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Annotated, Any, Deque, Dict, List, Optional, Tuple

import requests
from pydantic import BaseModel, ConfigDict, NonNegativeInt, PositiveInt, Strict, TypeAdapter, ValidationError

from .errors import RateLimitError, RequestError
from .logging_setup import logger
from .rate_limit_policy import RateTracker

RATE_LIMIT_STATUS = 429

_unit_count = TypeAdapter(Annotated[NonNegativeInt, Strict()])


class PriceResponse(BaseModel):
    """Body of the price endpoint."""

    model_config = ConfigDict(strict=True, extra="ignore")

    price: PositiveInt


class MarketAdapter(ABC):
    """Narrow interface to the remote market.

    Reads return plain integers. Writes return nothing; a write that does not
    raise was accepted by the market.
    """

    rate_tracker: RateTracker

    @abstractmethod
    def fetch_price(self) -> int:
        """Current price of one share in beans."""

    @abstractmethod
    def fetch_owned_units(self) -> int:
        """Number of shares held by the bot."""

    @abstractmethod
    def fetch_balance(self) -> int:
        """Beans in the bot's wallet."""

    @abstractmethod
    def submit_buy(self, units: int) -> None:
        """Buy ``units`` shares at the market price."""

    @abstractmethod
    def submit_sell(self, units: int) -> None:
        """Sell ``units`` shares at the market price."""


class SillyExchangeAdapter(MarketAdapter):
    """HTTP adapter for sillypost.net.

    Notes:
    - The token is sent as the ``token`` cookie; obtaining it is out of scope.
    - Empty bodies decode to ``None``.
    - Error messages prefer the body's ``message`` or ``error`` field.
    """

    PRICE_PATH = "/games/sillyexchange"
    OWNED_PATH = "/games/sillyexchange/owned"
    BALANCE_PATH = "/beans"
    BUY_PATH = "/games/sillyexchange/buy/{units}"
    SELL_PATH = "/games/sillyexchange/sell/{units}"

    def __init__(
        self,
        token: str,
        rate_tracker: Optional[RateTracker] = None,
        *,
        base_url: str = "https://sillypost.net",
        user_agent: str = "beanbot/0.1",
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        self.token = token
        self.rate_tracker = rate_tracker or RateTracker()
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json, text/plain, */*",
            "Pragma": "no-cache",
            "Cache-Control": "no-cache",
            "User-Agent": self.user_agent,
            "Cookie": f"token={self.token}",
        }

    @staticmethod
    def _decode_body(resp: requests.Response) -> Any:
        if resp.headers.get("Content-Length") == "0" or not resp.text:
            return None
        return resp.json()

    @staticmethod
    def _error_message(body: Any) -> str:
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    def send(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        """Issue one request and return the decoded JSON body.

        Raises:
            RateLimitError: the market answered 429
            RequestError: network failure, other non-2xx status, or undecodable body
        """
        request_path = path if path.startswith("/") else f"/{path}"
        url = f"{self.base_url}{request_path}"
        logger.debug(f"Request | method={method} url={url} payload={payload}")

        try:
            resp = self.session.request(
                method, url, headers=self._headers(), json=payload, timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise RequestError(f"request failed to {method} {url}: {e}") from e
        finally:
            self.rate_tracker.record_call()

        try:
            body = self._decode_body(resp)
        except ValueError as e:
            if resp.status_code == RATE_LIMIT_STATUS:
                raise RateLimitError(
                    f"rate limit exceeded for {method} {url}", status_code=resp.status_code
                ) from e
            raise RequestError(
                f"response invalid for {method} {url}", status_code=resp.status_code
            ) from e

        if not resp.ok:
            message = self._error_message(body)
            if resp.status_code == RATE_LIMIT_STATUS:
                raise RateLimitError(
                    f"rate limit exceeded for {method} {url} error: {message}",
                    status_code=resp.status_code,
                )
            raise RequestError(
                f"response {resp.status_code} for {method} {url} error: {message}",
                status_code=resp.status_code,
            )

        logger.debug(f"Response | status={resp.status_code} body={body}")
        return body

    def fetch_price(self) -> int:
        body = self.send("POST", self.PRICE_PATH)
        try:
            return PriceResponse.model_validate(body).price
        except ValidationError as e:
            raise RequestError(f"invalid price response: {body!r}") from e

    def _fetch_count(self, method: str, path: str) -> int:
        body = self.send(method, path)
        try:
            return _unit_count.validate_python(body)
        except ValidationError as e:
            raise RequestError(f"invalid response from {path}: {body!r}") from e

    def fetch_owned_units(self) -> int:
        return self._fetch_count("POST", self.OWNED_PATH)

    def fetch_balance(self) -> int:
        return self._fetch_count("GET", self.BALANCE_PATH)

    def submit_buy(self, units: int) -> None:
        self.send("POST", self.BUY_PATH.format(units=units))

    def submit_sell(self, units: int) -> None:
        self.send("POST", self.SELL_PATH.format(units=units))


class InMemoryMarketAdapter(MarketAdapter):
    """An in-process market that records calls and lets tests inject failures.

    Failures are queued per operation name (``price``, ``owned``, ``balance``,
    ``buy``, ``sell``) and raised by the next matching call. Every call, failed
    or not, is registered with the rate tracker.
    """

    def __init__(
        self,
        price: int = 50,
        owned_units: int = 0,
        balance: int = 1000,
        rate_tracker: Optional[RateTracker] = None,
    ):
        self.price = price
        self.owned_units = owned_units
        self.balance = balance
        self.rate_tracker = rate_tracker or RateTracker()
        self.calls: List[Tuple[str, Optional[int]]] = []
        self._failures: Dict[str, Deque[Exception]] = defaultdict(deque)

    def queue_failure(self, operation: str, exc: Exception, times: int = 1) -> None:
        for _ in range(times):
            self._failures[operation].append(exc)

    def _call(self, operation: str, units: Optional[int] = None) -> None:
        self.rate_tracker.record_call()
        self.calls.append((operation, units))
        if self._failures[operation]:
            raise self._failures[operation].popleft()

    def order_calls(self) -> List[Tuple[str, Optional[int]]]:
        """Buy and sell calls in submission order, failed ones included."""
        return [c for c in self.calls if c[0] in ("buy", "sell")]

    def fetch_price(self) -> int:
        self._call("price")
        return self.price

    def fetch_owned_units(self) -> int:
        self._call("owned")
        return self.owned_units

    def fetch_balance(self) -> int:
        self._call("balance")
        return self.balance

    def submit_buy(self, units: int) -> None:
        self._call("buy", units)
        cost = units * self.price
        if cost > self.balance:
            raise RequestError(f"not enough beans to buy {units} shares", status_code=400)
        self.balance -= cost
        self.owned_units += units

    def submit_sell(self, units: int) -> None:
        self._call("sell", units)
        if units > self.owned_units:
            raise RequestError(f"not enough shares to sell {units}", status_code=400)
        self.owned_units -= units
        self.balance += units * self.price

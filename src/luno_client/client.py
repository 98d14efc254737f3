from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from functools import partial
from typing import Any, Callable, Mapping
from urllib.parse import urlencode

import requests
from requests.exceptions import RequestException

from .config import DEFAULT_USER_AGENT, ClientConfig
from .errors import (
    LunoAPIError,
    LunoMalformedResponseError,
    LunoRateLimitError,
    LunoTransportError,
    is_rate_limit_code,
)
from .rate_window import RateWindow

logger = logging.getLogger(__name__)

QUERY_METHODS = ("GET", "DELETE")
BODY_METHODS = ("POST", "PUT")

Callback = Callable[[BaseException | None, Any], None]


def _encode_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def encode_params(params: Mapping[str, Any] | None) -> str:
    """URL-encode a flat parameter bag; lists repeat the key, None is dropped."""
    if not params:
        return ""
    pairs: list[tuple[str, Any]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.append((key, [_encode_value(v) for v in value]))
        else:
            pairs.append((key, _encode_value(value)))
    return urlencode(pairs, doseq=True)


def _deliver(callback: Callback, future: Future) -> None:
    if future.cancelled():
        error: BaseException | None = LunoTransportError("Request cancelled before it was sent")
    else:
        error = future.exception()

    try:
        if error is not None:
            callback(error, None)
        else:
            callback(None, future.result())
    except Exception:
        logger.exception("Callback raised while handling a response")


class LunoClient:
    """
    Dispatch core for the Luno REST API.

    Each call to ``_request`` performs exactly one HTTPS request in the
    background and resolves exactly once: the returned ``Future`` settles
    with the parsed JSON payload or one of the ``LunoClientError``
    subclasses, or, when a callback is given, the callback is invoked as
    ``callback(error, None)`` / ``callback(None, data)``.

    By default every dispatch gets its own thread, so any number of calls
    can be in flight. ``ClientConfig.max_workers`` opts into a bounded
    pool instead; queued calls are not counted until they are sent.

    Nothing is retried here. Rate-limit rejections carry the rolling call
    count so the caller can decide when to back off.
    """

    default_user_agent = DEFAULT_USER_AGENT

    def __init__(
        self,
        key_id: str | None = None,
        key_secret: str | None = None,
        *,
        config: ClientConfig | None = None,
        session: requests.Session | None = None,
        **overrides: Any,
    ):
        if key_id is not None:
            overrides["key_id"] = key_id
        if key_secret is not None:
            overrides["key_secret"] = key_secret

        config = config or ClientConfig()
        if config.user_agent == DEFAULT_USER_AGENT:
            overrides.setdefault("user_agent", self.default_user_agent)
        config = replace(config, **overrides)

        self.config = config
        self.session = session or requests.Session()
        self.rate_window = RateWindow()

        self._executor: ThreadPoolExecutor | None = None
        if config.max_workers is not None:
            self._executor = ThreadPoolExecutor(max_workers=config.max_workers, thread_name_prefix="luno")
        self._workers: set[threading.Thread] = set()
        self._workers_lock = threading.Lock()
        self._closed = False

    def __enter__(self) -> LunoClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._closed = True
        with self._workers_lock:
            pending = list(self._workers)
        for thread in pending:
            thread.join()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self.session.close()
        self.rate_window.close()

    @property
    def api_call_rate(self) -> int:
        """Number of calls sent in the trailing minute."""
        return self.rate_window.count()

    # ---------- background execution ----------
    def _submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        if self._closed:
            raise RuntimeError("cannot dispatch requests after close()")
        if self._executor is not None:
            return self._executor.submit(fn, *args)

        future: Future = Future()
        thread = threading.Thread(target=self._run, args=(future, fn, args), name="luno-dispatch", daemon=True)
        with self._workers_lock:
            self._workers.add(thread)
        thread.start()
        return future

    def _run(self, future: Future, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = fn(*args)
            except BaseException as e:
                future.set_exception(e)
            else:
                future.set_result(result)
        finally:
            with self._workers_lock:
                self._workers.discard(threading.current_thread())

    # ---------- request core ----------
    def _default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Accept-Charset": "utf-8",
            "User-Agent": self.config.user_agent,
        }

    def _request(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
        callback: Callback | None = None,
    ) -> Future | None:
        method_u = method.upper()
        headers = self._default_headers()
        body = encode_params(params)

        if method_u in QUERY_METHODS:
            if body:
                path = f"{path}?{body}"
            body = ""
        elif method_u in BODY_METHODS:
            if body:
                headers["Content-Type"] = "application/x-www-form-urlencoded"
                headers["Content-Length"] = str(len(body.encode("utf-8")))
        else:
            raise ValueError(f"Unsupported method: {method_u}")

        future = self._submit(self._dispatch, method_u, path, body, headers)
        if callback is None:
            return future

        future.add_done_callback(partial(_deliver, callback))
        return None

    def _dispatch(self, method: str, path: str, body: str, headers: dict[str, str]) -> Any:
        url = f"{self.config.base_url}{path}"

        try:
            prepped = self.session.prepare_request(
                requests.Request(method, url, data=body or None, headers=headers, auth=self.config.auth)
            )
            if not body:
                # requests adds "Content-Length: 0" to bodyless POST/PUT
                prepped.headers.pop("Content-Length", None)
            settings = self.session.merge_environment_settings(prepped.url, {}, None, self.config.ca or True, None)

            logger.debug("%s %s", method, path)
            mts = self.rate_window.record()
            resp = self.session.send(prepped, timeout=self.config.timeout, **settings)
        except RequestException as e:
            logger.error("%s %s network error: %s", method, path, e)
            raise LunoTransportError(f"Network error calling {url}: {e}", cause=e) from e

        logger.debug("%s %s -> HTTP %d %s", method, path, resp.status_code, resp.text)
        return self._classify(method, path, resp, mts)

    def _classify(self, method: str, path: str, resp: requests.Response, mts: int) -> Any:
        status = resp.status_code
        text = resp.text or ""

        try:
            data = resp.json()
        except ValueError as e:
            logger.error("%s %s returned invalid JSON (HTTP %d)", method, path, status)
            raise LunoMalformedResponseError(status, text, method=method, path=path, cause=e) from e

        if status != 200:
            if not isinstance(data, dict) or data.get("error_code") is None:
                logger.error("%s %s returned HTTP %d without an error code", method, path, status)
                raise LunoMalformedResponseError(status, text, method=method, path=path)

            error_code = data["error_code"]
            error = str(data.get("error") or "")

            if is_rate_limit_code(error_code):
                # the exchange did not serve this call; stop counting it
                self.rate_window.retract(mts)
                rate = self.rate_window.count()
                logger.warning("%s %s rate limited (%d calls in the last minute)", method, path, rate)
                raise LunoRateLimitError(
                    error_code,
                    error,
                    api_call_rate=rate,
                    status_code=status,
                    method=method,
                    path=path,
                )

            raise LunoAPIError(error_code, error, status_code=status, method=method, path=path)

        # business-level rejections arrive with HTTP 200
        if isinstance(data, dict) and data.get("error"):
            raise LunoAPIError(
                data.get("error_code"),
                str(data["error"]),
                status_code=status,
                method=method,
                path=path,
            )

        return data

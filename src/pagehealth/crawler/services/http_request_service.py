# src/pagehealth/crawler/services/http_request_service.py
import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)

# Methods some servers refuse for HEAD; the header-only fetch retries these as a bodiless GET
_HEAD_UNSUPPORTED = (405, 501)


class HttpRequestService:
    """
    Central service for executing HTTP requests (GET/HEAD/POST).
    Manages the aiohttp session, concurrency (semaphore), and error handling.

    Failures never raise: every call returns a dict whose 'status' is the HTTP
    status code, or a negative sentinel (-1 network/timeout, -2 unexpected,
    -99 misuse) with an 'error' message.
    """

    def __init__(self, config: Dict, user_agent: Optional[str] = None):
        self.config = config

        session_config = config.get('session', {})
        self.user_agent = user_agent or session_config.get('user_agent', 'PageHealth/0.3')
        self.max_concurrency = int(session_config.get('concurrency', 10))
        self.timeout = int(session_config.get('time_out', 30))
        self.max_redirects = int(session_config.get('max_redirects', 10))

        self.semaphore = asyncio.Semaphore(self.max_concurrency)
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        if not self.session or self.session.closed:
            timeout_obj = aiohttp.ClientTimeout(total=self.timeout)
            default_headers = {
                'Accept-Encoding': 'gzip, deflate',
                'User-Agent': self.user_agent
            }
            self.session = aiohttp.ClientSession(
                timeout=timeout_obj, headers=default_headers
            )
            logger.debug("HttpRequestService: Session initialized.")

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
            logger.debug("HttpRequestService: Session closed.")

    async def perform_request(self, url: str, method: str = "GET", **kwargs: Any) -> dict:
        """
        Main entry point. Delegates to specific handlers based on method.
        Wraps execution in global semaphore and error handling.
        """
        start_time = time.perf_counter()

        if not self.session or self.session.closed:
            await self.initialize()
            if not self.session:
                return {"status": -99, "error": "Session not initialized"}

        response_data = None

        try:
            async with self.semaphore:
                # --- ROUTING LOGIC ---
                if method.upper() == "GET":
                    response_data = await self._execute_get(url, start_time, **kwargs)
                elif method.upper() == "HEAD":
                    response_data = await self._execute_head(url, start_time)
                elif method.upper() == "POST":
                    response_data = await self._execute_post(url, start_time, **kwargs)
                else:
                    return {"status": -99, "error": f"Method {method} not supported"}
                # ---------------------

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            response_data = {"status": -1, "error": str(e) or e.__class__.__name__}
        except Exception as e:
            logger.debug("Unexpected %s failure for %s", method, url, exc_info=True)
            response_data = {"status": -2, "error": str(e)}
        finally:
            if response_data:
                total_elapsed = round((time.perf_counter() - start_time), 4)
                response_data["elapsed_time"] = total_elapsed
                if "timers" not in response_data:
                    response_data["timers"] = {}
                response_data["timers"]["total_elapsed"] = round(total_elapsed * 1000, 2)

        return response_data if response_data else {"status": -99, "error": "Unknown failure"}

    # =========================================================================
    #  GET REQUEST LOGIC (Page Fetching / JSON APIs)
    # =========================================================================
    async def _execute_get(
            self,
            url: str,
            start_time: float,
            params: Optional[Dict[str, Any]] = None,
            timeout: Optional[float] = None,
            expect_json: bool = False
    ) -> dict:
        """
        Handles a full fetch:
        1. Sends GET request (following redirects).
        2. Reads the body as text, or as JSON when `expect_json` is set.
        """
        timeout_val = float(timeout or self.config.get('session', {}).get('fetch_page_total_timeout', 30.0))
        timers = {}

        async with self.session.get(
                url,
                params=params,
                allow_redirects=True,
                max_redirects=self.max_redirects,
                timeout=aiohttp.ClientTimeout(total=timeout_val)
        ) as response:
            timers["initial_request"] = round((time.perf_counter() - start_time) * 1000, 2)
            content = await self._read_content(response, timers, url)

            return {
                "status": response.status,
                "headers": dict(response.headers),
                "content": content,
                "json": self._decode_json(content) if expect_json else None,
                "redirect_chain": self._redirect_chain(response),
                "timers": timers,
                "final_url": str(response.url)
            }

    async def _read_content(self, response, timers, url) -> Optional[str]:
        """Helper to read response body text safely."""
        read_start = time.perf_counter()
        content = None
        try:
            read_timeout = float(self.config.get('session', {}).get('client_read_timeout', 15.0))
            content = await asyncio.wait_for(response.text(), timeout=read_timeout)
        except asyncio.TimeoutError:
            logger.warning("Timeout reading response body for %s", url)
        except UnicodeDecodeError:
            # Fallback decoding
            content_bytes = await response.read()
            content = content_bytes.decode('utf-8', errors='replace')
        finally:
            timers["read_content"] = round((time.perf_counter() - read_start) * 1000, 2)
        return content

    # =========================================================================
    #  HEAD REQUEST LOGIC (Header-only checks)
    # =========================================================================
    async def _execute_head(self, url: str, start_time: float) -> dict:
        """
        Handles a header-only fetch:
        1. Sends HEAD request, following redirects to the final destination.
        2. Falls back to a GET whose body is never read when HEAD is refused.
        3. Returns status, headers and every Set-Cookie value (NO content download).
        """
        timeout_val = float(self.config.get('session', {}).get('head_timeout', 15.0))
        timers = {}

        async with self.session.head(
                url,
                allow_redirects=True,
                max_redirects=self.max_redirects,
                timeout=aiohttp.ClientTimeout(total=timeout_val)
        ) as response:
            timers["initial_request"] = round((time.perf_counter() - start_time) * 1000, 2)
            if response.status not in _HEAD_UNSUPPORTED:
                return self._header_payload(response, timers)

        logger.debug("HEAD refused by %s, retrying headers with a bodiless GET", url)
        async with self.session.get(
                url,
                allow_redirects=True,
                max_redirects=self.max_redirects,
                timeout=aiohttp.ClientTimeout(total=timeout_val)
        ) as response:
            timers["get_fallback"] = round((time.perf_counter() - start_time) * 1000, 2)
            return self._header_payload(response, timers)

    def _header_payload(self, response: aiohttp.ClientResponse, timers: dict) -> dict:
        return {
            "status": response.status,
            "headers": dict(response.headers),
            "cookies": list(response.headers.getall('Set-Cookie', [])),
            "content": None,  # Explicitly None for header-only fetches
            "redirect_chain": self._redirect_chain(response),
            "timers": timers,
            "final_url": str(response.url)
        }

    # =========================================================================
    #  POST REQUEST LOGIC (External analysis services)
    # =========================================================================
    async def _execute_post(
            self,
            url: str,
            start_time: float,
            data: Any = None,
            json_body: Any = None,
            headers: Optional[Dict[str, str]] = None,
            auth: Optional[aiohttp.BasicAuth] = None,
            timeout: Optional[float] = None,
            expect_json: bool = False
    ) -> dict:
        """Submits a payload (raw text or JSON) to an analysis service."""
        timeout_val = float(timeout or self.timeout)
        timers = {}

        async with self.session.post(
                url,
                data=data,
                json=json_body,
                headers=headers,
                auth=auth,
                timeout=aiohttp.ClientTimeout(total=timeout_val)
        ) as response:
            timers["initial_request"] = round((time.perf_counter() - start_time) * 1000, 2)
            content = await self._read_content(response, timers, url)
            return {
                "status": response.status,
                "headers": dict(response.headers),
                "content": content,
                "json": self._decode_json(content) if expect_json else None,
                "timers": timers,
                "final_url": str(response.url)
            }

    # =========================================================================
    #  SHARED HELPERS
    # =========================================================================
    @staticmethod
    def _redirect_chain(response: aiohttp.ClientResponse) -> list:
        return [
            {'source': str(hop.url), 'status': hop.status, 'target': hop.headers.get('Location')}
            for hop in response.history
        ]

    @staticmethod
    def _decode_json(content: Optional[str]) -> Optional[Any]:
        if not content:
            return None
        try:
            return json.loads(content)
        except (ValueError, TypeError):
            logger.debug("Response body is not valid JSON (%d chars)", len(content))
            return None

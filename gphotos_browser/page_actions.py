"""Remote-control surface over one Playwright page and its CDP session."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from .errors import SessionError
from .event_logger import BrowserEventLogger
from .models import RunState
from .session import BrowserSessionManager

VALID_DOWNLOAD_BEHAVIORS = {"allow", "deny", "default"}


class BrowserCapability:
    """Navigate, wait on and send raw input to the active gallery page.

    Key events and download behavior go through the Chrome DevTools Protocol
    session opened by the session manager, because Playwright's keyboard API
    does not let callers set the native key code fields.
    """

    def __init__(
        self,
        session_manager: BrowserSessionManager,
        run_state: RunState,
        event_logger: Optional[BrowserEventLogger] = None,
    ):
        self.session_manager = session_manager
        self.run_state = run_state
        self.event_logger = event_logger

    async def navigate(self, url: str, wait_until: str = "load") -> Dict[str, Any]:
        target = str(url or "").strip()
        if not target:
            raise ValueError("URL is required")

        page = await self._get_or_create_page()
        valid_wait_until = {"load", "domcontentloaded", "networkidle", "commit"}
        wait_mode = wait_until if wait_until in valid_wait_until else "load"
        response = await page.goto(target, wait_until=wait_mode, timeout=self._timeout_ms())
        self.run_state.current_url = page.url or target

        status_code = None
        if response is not None:
            try:
                status_code = response.status
            except Exception:
                status_code = None

        result = {
            "ok": True,
            "requested_url": target,
            "final_url": self.run_state.current_url,
            "status_code": status_code,
            "wait_until": wait_mode,
        }
        self._log_action("navigate", result)
        return result

    async def wait_ready(self, selector: str = "body", timeout_ms: Optional[int] = None) -> None:
        page = await self._get_or_create_page()
        target = str(selector or "").strip()
        if not target:
            raise ValueError("Selector is required")
        await page.locator(target).first.wait_for(state="attached", timeout=int(timeout_ms or self._timeout_ms()))
        self._log_action("wait_ready", {"selector": target, "url": page.url})

    async def outer_html(self, selector: str = "html>body") -> str:
        page = await self._get_or_create_page()
        target = str(selector or "").strip()
        if not target:
            raise ValueError("Selector is required")
        html = await page.locator(target).first.evaluate("el => el.outerHTML")
        return str(html or "")

    async def dispatch_key_event(self, params: Dict[str, Any]) -> None:
        cdp = await self._get_cdp_session()
        await cdp.send("Input.dispatchKeyEvent", dict(params))
        if self.event_logger is not None:
            try:
                self.event_logger.log_key_event(
                    {
                        "run_id": self.run_state.run_id,
                        "event_type": str(params.get("type") or ""),
                        "ts": time.time(),
                        "key": params.get("key"),
                        "modifiers": params.get("modifiers", 0),
                    }
                )
            except Exception:
                pass

    async def set_download_behavior(self, behavior: str, download_path: Optional[str] = None) -> None:
        mode = str(behavior or "").strip().lower()
        if mode not in VALID_DOWNLOAD_BEHAVIORS:
            raise ValueError(f"Unsupported download behavior: {behavior}")
        params: Dict[str, Any] = {"behavior": mode}
        if download_path:
            params["downloadPath"] = str(download_path)
        cdp = await self._get_cdp_session()
        await cdp.send("Page.setDownloadBehavior", params)
        self._log_action("set_download_behavior", params)

    async def current_url(self) -> Optional[str]:
        """Return the page URL, used as the gallery position indicator."""
        page = self.session_manager.get_active_page(self.run_state)
        if page is None:
            return None
        url = page.url or None
        self.run_state.current_url = url or self.run_state.current_url
        return url

    def _timeout_ms(self) -> int:
        try:
            return int((self.run_state.metadata or {}).get("timeout_ms", 30000))
        except Exception:
            return 30000

    async def _get_or_create_page(self):
        page = self.session_manager.get_active_page(self.run_state)
        if page is None and getattr(self.run_state, "browser_context", None) is not None:
            page = await self.session_manager.new_page(self.run_state)
        if page is None:
            raise SessionError("No active browser page. Start a browser session first.")
        return page

    async def _get_cdp_session(self):
        cdp = getattr(self.run_state, "cdp_session", None)
        if cdp is None:
            page = await self._get_or_create_page()
            cdp = await self.session_manager.open_cdp_session(self.run_state, page)
        return cdp

    def _log_action(self, action: str, payload: Dict[str, Any]) -> None:
        """Best-effort action event logging."""
        if self.event_logger is None:
            return
        try:
            self.event_logger.log_action_event(
                {
                    "run_id": self.run_state.run_id,
                    "event_type": action,
                    "ts": time.time(),
                    "payload": payload,
                }
            )
        except Exception:
            pass

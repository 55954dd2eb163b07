"""Session directories and Playwright browser lifecycle."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import time
from pathlib import Path
from typing import Any, List, Optional

from playwright.async_api import async_playwright

from .errors import SessionError
from .models import RunConfig, RunState, reuse_profile_dir

CHROMIUM_ARGS = [
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-networking",
    "--enable-features=NetworkService,NetworkServiceInProcess",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-client-side-phishing-detection",
    "--disable-default-apps",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-features=site-per-process,TranslateUI,BlinkGenPropertyTrees",
    "--disable-hang-monitor",
    "--disable-ipc-flooding-protection",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--disable-renderer-backgrounding",
    "--disable-sync",
    "--force-color-profile=srgb",
    "--metrics-recording-only",
    "--safebrowsing-disable-auto-update",
    "--password-store=basic",
    "--use-mock-keychain",
]


class BrowserSessionManager:
    """Own the profile and download directories and the browser they back."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def prepare(self, run_config: RunConfig) -> RunState:
        """Create the profile and download directories for one run."""
        remove_profile = False
        if run_config.profile_dir:
            profile_dir = Path(run_config.profile_dir).expanduser()
            profile_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        elif run_config.reuse_session:
            profile_dir = reuse_profile_dir()
            profile_dir.mkdir(mode=0o700, parents=True, exist_ok=True)
        else:
            profile_dir = Path(tempfile.mkdtemp(prefix="gphotos-cdp"))
            remove_profile = True

        download_dir = run_config.resolved_download_dir()
        download_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

        return RunState(
            run_id=run_config.run_id,
            profile_dir=str(profile_dir),
            download_dir=str(download_dir),
            current_url=run_config.start_url,
            metadata={
                "timeout_ms": int(run_config.timeout_ms),
                "remove_profile": remove_profile,
                "headless": bool(run_config.headless),
            },
        )

    def clean_download_dir(self, run_state: RunState) -> List[str]:
        """Remove leftover files so the first watch cycle starts from an empty directory.

        Subdirectories hold earlier relocated items and are left alone.
        """
        removed: List[str] = []
        with os.scandir(run_state.download_dir) as entries:
            for entry in entries:
                if entry.is_dir():
                    continue
                os.remove(entry.path)
                removed.append(entry.name)
        if removed:
            self.logger.info("Removed %d leftover file(s) from %s", len(removed), run_state.download_dir)
        return sorted(removed)

    async def start(self, run_config: RunConfig) -> RunState:
        state = self.prepare(run_config)
        self.logger.info("Session Dir: %s", state.profile_dir)

        pw = await async_playwright().start()
        context = None
        try:
            context = await pw.chromium.launch_persistent_context(
                state.profile_dir,
                channel=run_config.channel or None,
                headless=bool(run_config.headless),
                accept_downloads=True,
                args=list(CHROMIUM_ARGS),
            )
            context.set_default_timeout(float(run_config.timeout_ms))
            context.set_default_navigation_timeout(float(run_config.timeout_ms))

            page = context.pages[0] if context.pages else await context.new_page()
            page.set_default_timeout(float(run_config.timeout_ms))
            page.set_default_navigation_timeout(float(run_config.timeout_ms))

            state.playwright = pw
            state.browser_context = context
            state.page = page
            state.started_at = time.time()
            await self.open_cdp_session(state, page)
        except Exception as e:
            await self._abort_start(state, pw, context)
            raise SessionError(f"could not start browser: {e}") from e

        state.active = True
        return state

    async def _abort_start(self, run_state: RunState, pw: Any, context: Any) -> None:
        if context is not None:
            try:
                await context.close()
            except Exception:
                self.logger.debug("Closing browser context after failed start raised", exc_info=True)
        try:
            await pw.stop()
        except Exception:
            self.logger.debug("Stopping Playwright after failed start raised", exc_info=True)
        run_state.playwright = None
        run_state.browser_context = None
        run_state.page = None
        run_state.cdp_session = None
        self._remove_profile(run_state)

    def get_active_page(self, run_state: RunState):
        if run_state is None:
            return None

        page = getattr(run_state, "page", None)
        if page is not None:
            try:
                if not page.is_closed():
                    return page
            except Exception:
                pass

        context = getattr(run_state, "browser_context", None)
        if context is None:
            return None

        try:
            for candidate in context.pages:
                if not candidate.is_closed():
                    run_state.page = candidate
                    run_state.cdp_session = None
                    return candidate
        except Exception:
            return None
        return None

    async def new_page(self, run_state: RunState):
        context = getattr(run_state, "browser_context", None)
        if context is None:
            raise SessionError("Browser context is not initialized")

        page = await context.new_page()
        timeout_ms = int((run_state.metadata or {}).get("timeout_ms", 30000))
        page.set_default_timeout(float(timeout_ms))
        page.set_default_navigation_timeout(float(timeout_ms))
        run_state.page = page
        run_state.cdp_session = None
        run_state.current_url = page.url or run_state.current_url
        return page

    async def open_cdp_session(self, run_state: RunState, page: Any):
        context = getattr(run_state, "browser_context", None)
        if context is None:
            raise SessionError("Browser context is not initialized")
        run_state.cdp_session = await context.new_cdp_session(page)
        return run_state.cdp_session

    async def shutdown(self, run_state: Optional[RunState]) -> None:
        if run_state is None:
            return

        try:
            cdp = getattr(run_state, "cdp_session", None)
            if cdp is not None:
                await cdp.detach()
        except Exception:
            pass

        try:
            context = getattr(run_state, "browser_context", None)
            if context is not None:
                await context.close()
        except Exception:
            pass

        try:
            pw = getattr(run_state, "playwright", None)
            if pw is not None:
                await pw.stop()
        except Exception:
            pass

        self._remove_profile(run_state)
        run_state.active = False
        run_state.ended_at = time.time()

    def _remove_profile(self, run_state: RunState) -> None:
        if not (run_state.metadata or {}).get("remove_profile"):
            return
        shutil.rmtree(run_state.profile_dir, ignore_errors=True)
        run_state.metadata["remove_profile"] = False

"""Key descriptors and the keyDown/keyUp dispatcher for gallery navigation."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import UnknownKeyError
from .models import Direction

# Input.dispatchKeyEvent modifier bit field.
MODIFIER_ALT = 1
MODIFIER_CTRL = 2
MODIFIER_META = 4
MODIFIER_SHIFT = 8


@dataclass(frozen=True)
class KeyDescriptor:
    key: str
    code: str
    windows: int
    native: int
    text: str = ""


KEYS: Dict[str, KeyDescriptor] = {
    "ArrowLeft": KeyDescriptor("ArrowLeft", "ArrowLeft", 37, 37),
    "ArrowRight": KeyDescriptor("ArrowRight", "ArrowRight", 39, 39),
    "End": KeyDescriptor("End", "End", 35, 35),
    "PageDown": KeyDescriptor("PageDown", "PageDown", 34, 34),
    "Enter": KeyDescriptor("Enter", "Enter", 13, 13, text="\r"),
    "D": KeyDescriptor("D", "KeyD", 68, 68),
}

DIRECTION_KEYS = {
    Direction.LEFT: "ArrowLeft",
    Direction.RIGHT: "ArrowRight",
}


def resolve_key(name: str, table: Optional[Dict[str, KeyDescriptor]] = None) -> KeyDescriptor:
    """Return the descriptor for a key name, or raise UnknownKeyError."""
    keys = KEYS if table is None else table
    descriptor = keys.get(str(name or ""))
    if descriptor is None:
        raise UnknownKeyError(str(name))
    return descriptor


def normalize_key_event(params: Dict[str, Any], platform: Optional[str] = None) -> Dict[str, Any]:
    """Apply per-platform fixups to dispatchKeyEvent params.

    On macOS the native virtual key code is zeroed as a compatibility shim.
    Other platforms get the params back unchanged.
    """
    system = sys.platform if platform is None else platform
    normalized = dict(params)
    if system == "darwin":
        normalized["nativeVirtualKeyCode"] = 0
    return normalized


def build_key_events(
    descriptor: KeyDescriptor,
    modifiers: int = 0,
    platform: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Build the ordered keyDown/keyUp parameter pair for one key press."""
    down: Dict[str, Any] = {
        "type": "keyDown",
        "key": descriptor.key,
        "code": descriptor.code,
        "windowsVirtualKeyCode": descriptor.windows,
        "nativeVirtualKeyCode": descriptor.native,
        "modifiers": int(modifiers),
    }
    if descriptor.text and not modifiers:
        down["text"] = descriptor.text
    down = normalize_key_event(down, platform)
    up = dict(down)
    up["type"] = "keyUp"
    up.pop("text", None)
    return [down, up]


class KeyDispatcher:
    """Translate logical gallery actions into key event pairs.

    The dispatcher does not wait for any UI effect; callers own the settle
    delays that follow each action.
    """

    def __init__(
        self,
        capability: Any,
        *,
        platform: Optional[str] = None,
        key_table: Optional[Dict[str, KeyDescriptor]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.capability = capability
        self.platform = platform
        self.key_table = dict(KEYS if key_table is None else key_table)
        self.logger = logger or logging.getLogger(__name__)

    async def press(self, key: str, modifiers: int = 0) -> List[Dict[str, Any]]:
        descriptor = resolve_key(key, self.key_table)
        events = build_key_events(descriptor, modifiers=modifiers, platform=self.platform)
        for event in events:
            self.logger.debug("Event: %s", event)
            await self.capability.dispatch_key_event(event)
        return events

    async def advance(self, direction: Any) -> List[Dict[str, Any]]:
        return await self.press(DIRECTION_KEYS[Direction.parse(direction)])

    async def jump_to_end(self) -> List[Dict[str, Any]]:
        return await self.press("End")

    async def trigger_download(self) -> List[Dict[str, Any]]:
        """Send Shift+D, the gallery's download shortcut for the open item."""
        return await self.press("D", modifiers=MODIFIER_SHIFT)

    async def page_down(self) -> List[Dict[str, Any]]:
        return await self.press("PageDown")

    async def open_item(self) -> List[Dict[str, Any]]:
        return await self.press("Enter")

"""Move completed downloads out of the watched directory."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .errors import RelocationError


class FileRelocator:
    """Move each completed file into its own freshly created directory.

    Targets are created with ``tempfile.mkdtemp`` so two items with the same
    file name never collide, and the file is moved with a single rename so the
    download directory is empty again before the next download starts.
    """

    def __init__(
        self,
        holding_dir: Optional[str] = None,
        *,
        prefix: str = "",
        logger: Optional[logging.Logger] = None,
    ):
        self.holding_dir = str(holding_dir) if holding_dir else None
        self.prefix = prefix
        self.logger = logger or logging.getLogger(__name__)

    def relocate(self, directory: str, filename: str) -> Path:
        source = Path(directory) / filename
        holding = Path(self.holding_dir) if self.holding_dir else Path(directory)
        try:
            target_dir = Path(tempfile.mkdtemp(prefix=self.prefix, dir=str(holding)))
        except OSError as e:
            raise RelocationError(f"cannot create relocation target in {str(holding)!r}: {e}", str(source)) from e

        destination = target_dir / filename
        try:
            os.rename(source, destination)
        except OSError as e:
            try:
                target_dir.rmdir()
            except OSError:
                self.logger.warning("Could not remove unused relocation target %s", target_dir)
            raise RelocationError(f"cannot move {str(source)!r} to {str(destination)!r}: {e}", str(source)) from e

        self.logger.debug("Moved %s to %s", source, destination)
        return destination

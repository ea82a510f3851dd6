from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class MemoryDownloadSink:
    """Keeps the delivered file so a web response can stream it back."""

    def __init__(self) -> None:
        self.filename: Optional[str] = None
        self.content: Optional[bytes] = None

    def deliver(self, filename: str, content: bytes) -> None:
        self.filename = filename
        self.content = content


@dataclass
class DirectoryDownloadSink:
    """Writes delivered files into a directory. Files appear whole or not at all."""
    downloads_dir: Path

    def deliver(self, filename: str, content: bytes) -> None:
        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        target = self.downloads_dir / Path(filename).name

        fd, tmp = tempfile.mkstemp(dir=str(self.downloads_dir), prefix=".", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(content)
            os.replace(tmp, target)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def path_for(self, filename: str) -> Path:
        return self.downloads_dir / Path(filename).name

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Optional


class JsonlReader:
    """Iterate records of a JSON-lines journal, optionally filtered by ``type``.

    A torn trailing line (writer killed mid-append) is skipped and counted.
    """

    def __init__(self, path: str | Path, types: Optional[set[str]] = None):
        self.path = Path(path)
        self.types = types
        self.skipped = 0

    def __iter__(self) -> Iterator[dict[str, Any]]:
        with self.path.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if not line:
                    continue
                try:
                    rec = json.loads(line)
                except json.JSONDecodeError:
                    self.skipped += 1
                    continue
                if self.types is not None and rec.get("type") not in self.types:
                    continue
                yield rec

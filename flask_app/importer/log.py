"""Call-scoped trace log returned to the operator after each import step."""

from __future__ import annotations

import logging
from typing import Iterable, List

logger = logging.getLogger("flask_app.importer")


class ImportLog:
    """
    Ordered list of human-readable lines.

    Every line is mirrored to the ``flask_app.importer`` logger; ``debug`` lines
    only reach the operator-facing list when verbose logging is enabled.
    """

    def __init__(self, *, verbose: bool = False, uid: str | None = None):
        self.verbose = verbose
        self.uid = uid
        self.lines: List[str] = []

    def add(self, message: str) -> None:
        self.lines.append(message)
        logger.info(message, extra={"hostfully_uid": self.uid} if self.uid else None)

    def debug(self, message: str) -> None:
        logger.debug(message, extra={"hostfully_uid": self.uid} if self.uid else None)
        if self.verbose:
            self.lines.append(message)

    def extend(self, messages: Iterable[str]) -> None:
        for message in messages:
            self.add(message)

    def __iter__(self):
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    def text(self) -> str:
        return "\n".join(self.lines)

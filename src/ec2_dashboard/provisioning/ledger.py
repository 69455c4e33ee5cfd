from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ec2_dashboard.util.logging import get_logger, log_event


@dataclass
class LedgerEntry:
    kind: str
    identifier: str
    undo: Callable[[], object] = field(repr=False, compare=False)


class ResourceLedger:
    """Resources created by one run, in creation order."""

    def __init__(self) -> None:
        self.entries: List[LedgerEntry] = []
        self.logger = get_logger(self.__class__.__name__)

    def record(self, kind: str, identifier: str, undo: Callable[[], object]) -> None:
        self.entries.append(LedgerEntry(kind=kind, identifier=identifier, undo=undo))
        log_event(self.logger, "resource_created", kind=kind, identifier=identifier)

    def identifiers(self) -> List[Tuple[str, str]]:
        return [(entry.kind, entry.identifier) for entry in self.entries]

    def compensate(self) -> List[LedgerEntry]:
        """Undo entries newest first; returns those whose undo failed and need manual cleanup."""
        failed: List[LedgerEntry] = []
        for entry in reversed(self.entries):
            try:
                entry.undo()
            except (BotoCoreError, ClientError) as exc:
                failed.append(entry)
                log_event(
                    self.logger,
                    "compensation_failed",
                    kind=entry.kind,
                    identifier=entry.identifier,
                    error=str(exc),
                )
                continue
            log_event(self.logger, "resource_compensated", kind=entry.kind, identifier=entry.identifier)
        self.entries = list(failed)
        return failed

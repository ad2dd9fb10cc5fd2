from __future__ import annotations

from pathlib import Path

from agentbuddy.event_bus import BuddyEvent, EventBus


class AuditLogger:
    """
    Subscribes to an EventBus and appends every event to a JSONL file.
    """

    def __init__(self, file_path: Path | str, event_bus: EventBus):
        self.file_path = Path(file_path).expanduser().resolve()
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        event_bus.subscribe(self.log_event)

    def log_event(self, event: BuddyEvent) -> None:
        with open(self.file_path, "a", encoding="utf-8") as f:
            f.write(event.model_dump_json() + "\n")

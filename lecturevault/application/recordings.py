"""Recording use cases - folders, recordings, transcripts, summaries"""
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

logger = logging.getLogger(__name__)


@dataclass
class RecordingDetails:
    recording: Any
    transcripts: list = field(default_factory=list)
    summaries: list = field(default_factory=list)


class RecordingService:

    def __init__(self, store):
        self.store = store

    def create_folder(self, name: str) -> int:
        return self.store.insert("folders", {"name": name})

    def rename_folder(self, folder_id: int, name: str) -> None:
        self.store.update("folders", folder_id, {"name": name})

    def create_recording(self, name: str, **fields) -> int:
        """
        Args:
            name: display name
            fields: folder_id, calendar_event_id, audio_file_path, duration (s), file_size (bytes)
        """
        recording_id = self.store.insert("recordings", dict(fields, name=name))
        logger.info("Created recording #%d", recording_id)
        return recording_id

    def attach_to_event(self, recording_id: int, event_id: int | None) -> None:
        """Link a recording to a calendar event (None unlinks)."""
        self.store.update("recordings", recording_id, {"calendar_event_id": event_id})

    def move_to_folder(self, recording_id: int, folder_id: int | None) -> None:
        self.store.update("recordings", recording_id, {"folder_id": folder_id})

    def add_transcript(self, recording_id: int, text: str) -> int:
        return self._add_text("transcripts", recording_id, text)

    def add_summary(self, recording_id: int, text: str) -> int:
        return self._add_text("summaries", recording_id, text)

    def _add_text(self, table: str, recording_id: int, text: str) -> int:
        # the recording's updated_at moves with its transcripts/summaries
        with self.store.transaction() as uow:
            row_id = uow.insert(table, {"recording_id": recording_id, "text": text})
            uow.update("recordings", recording_id, {})
        return row_id

    def recording_details(self, recording_id: int) -> RecordingDetails:
        """Recording with its transcripts and summaries, newest first."""
        return RecordingDetails(
            recording=self.store.find_by_id("recordings", recording_id),
            transcripts=self.store.find_many("transcripts", {"recording_id": recording_id}, ("-created_at", "-id")),
            summaries=self.store.find_many("summaries", {"recording_id": recording_id}, ("-created_at", "-id")),
        )

    def list_recordings(self, filters: Mapping[str, Any] | None = None) -> list:
        return self.store.find_many("recordings", filters, ("-created_at", "-id"))

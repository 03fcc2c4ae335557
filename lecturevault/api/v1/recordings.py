"""
Folder / recording / transcript / summary API endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from lecturevault.api.deps import get_recording_service, get_store
from lecturevault.application.recordings import RecordingService
from lecturevault.application.store import LocalStore


router = APIRouter(prefix="/api/v1", tags=["recordings"])


# === Request/Response models ===

class FolderRequest(BaseModel):
    name: str


class FolderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    created_at: datetime
    updated_at: datetime


class CreateRecordingRequest(BaseModel):
    name: str
    folder_id: int | None = None
    calendar_event_id: int | None = None
    audio_file_path: str | None = None
    duration: int | None = None  # seconds
    file_size: int | None = None  # bytes


class UpdateRecordingRequest(BaseModel):
    name: str | None = None
    folder_id: int | None = None
    calendar_event_id: int | None = None


class RecordingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    folder_id: int | None
    calendar_event_id: int | None
    audio_file_path: str | None
    duration: int | None
    file_size: int | None
    created_at: datetime
    updated_at: datetime


class MoveRecordingRequest(BaseModel):
    folder_id: int | None  # None takes it out of any folder


class TextRequest(BaseModel):
    text: str


class TextResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    recording_id: int
    text: str
    created_at: datetime


class RecordingDetailsResponse(BaseModel):
    recording: RecordingResponse
    transcripts: list[TextResponse]
    summaries: list[TextResponse]


class DeleteResponse(BaseModel):
    deleted: list[tuple[str, int]]
    nullified: list[tuple[str, int, str]]


# === Folders ===

@router.post("/folders/", response_model=FolderResponse, status_code=201)
def create_folder(
    req: FolderRequest,
    service: RecordingService = Depends(get_recording_service),
    store: LocalStore = Depends(get_store),
):
    folder_id = service.create_folder(req.name)
    return store.find_by_id("folders", folder_id)


@router.get("/folders/", response_model=list[FolderResponse])
def list_folders(store: LocalStore = Depends(get_store)):
    return store.find_many("folders", order_by=("name",))


@router.patch("/folders/{folder_id}", response_model=FolderResponse)
def rename_folder(
    folder_id: int,
    req: FolderRequest,
    service: RecordingService = Depends(get_recording_service),
    store: LocalStore = Depends(get_store),
):
    service.rename_folder(folder_id, req.name)
    return store.find_by_id("folders", folder_id)


@router.delete("/folders/{folder_id}", response_model=DeleteResponse)
def delete_folder(folder_id: int, store: LocalStore = Depends(get_store)):
    """Removes the folder with its recordings, transcripts and summaries"""
    plan = store.delete("folders", folder_id)
    return DeleteResponse(deleted=plan.deletes, nullified=plan.nullifies)


# === Recordings ===

@router.post("/recordings/", response_model=RecordingResponse, status_code=201)
def create_recording(
    req: CreateRecordingRequest,
    service: RecordingService = Depends(get_recording_service),
    store: LocalStore = Depends(get_store),
):
    fields = req.model_dump(exclude={"name"}, exclude_none=True)
    recording_id = service.create_recording(req.name, **fields)
    return store.find_by_id("recordings", recording_id)


@router.get("/recordings/", response_model=list[RecordingResponse])
def list_recordings(
    folder_id: int | None = None,
    calendar_event_id: int | None = None,
    service: RecordingService = Depends(get_recording_service),
):
    """Newest first, optionally limited to one folder or event"""
    filters = {}
    if folder_id is not None:
        filters["folder_id"] = folder_id
    if calendar_event_id is not None:
        filters["calendar_event_id"] = calendar_event_id
    return service.list_recordings(filters)


@router.get("/recordings/{recording_id}", response_model=RecordingDetailsResponse)
def get_recording(recording_id: int, service: RecordingService = Depends(get_recording_service)):
    details = service.recording_details(recording_id)
    return RecordingDetailsResponse(
        recording=RecordingResponse.model_validate(details.recording),
        transcripts=[TextResponse.model_validate(t) for t in details.transcripts],
        summaries=[TextResponse.model_validate(s) for s in details.summaries],
    )


@router.patch("/recordings/{recording_id}", response_model=RecordingResponse)
def update_recording(
    recording_id: int,
    req: UpdateRecordingRequest,
    store: LocalStore = Depends(get_store),
):
    store.update("recordings", recording_id, req.model_dump(exclude_unset=True))
    return store.find_by_id("recordings", recording_id)


@router.post("/recordings/{recording_id}/move", response_model=RecordingResponse)
def move_recording(
    recording_id: int,
    req: MoveRecordingRequest,
    service: RecordingService = Depends(get_recording_service),
    store: LocalStore = Depends(get_store),
):
    service.move_to_folder(recording_id, req.folder_id)
    return store.find_by_id("recordings", recording_id)


@router.delete("/recordings/{recording_id}", response_model=DeleteResponse)
def delete_recording(recording_id: int, store: LocalStore = Depends(get_store)):
    plan = store.delete("recordings", recording_id)
    return DeleteResponse(deleted=plan.deletes, nullified=plan.nullifies)


@router.post("/recordings/{recording_id}/transcripts", response_model=TextResponse, status_code=201)
def add_transcript(
    recording_id: int,
    req: TextRequest,
    service: RecordingService = Depends(get_recording_service),
    store: LocalStore = Depends(get_store),
):
    transcript_id = service.add_transcript(recording_id, req.text)
    return store.find_by_id("transcripts", transcript_id)


@router.post("/recordings/{recording_id}/summaries", response_model=TextResponse, status_code=201)
def add_summary(
    recording_id: int,
    req: TextRequest,
    service: RecordingService = Depends(get_recording_service),
    store: LocalStore = Depends(get_store),
):
    summary_id = service.add_summary(recording_id, req.text)
    return store.find_by_id("summaries", summary_id)

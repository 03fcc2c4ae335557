"""
Event category API endpoints
"""
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, field_validator

from lecturevault.api.deps import get_calendar_service, get_store
from lecturevault.application.calendar import CalendarService
from lecturevault.application.store import LocalStore
from lecturevault.utils.validation import validate_hex_color


router = APIRouter(prefix="/api/v1/categories", tags=["categories"])


# === Request/Response models ===

class CreateCategoryRequest(BaseModel):
    name: str
    color: str  # #RRGGBB
    icon: str | None = None

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: str) -> str:
        ok, error = validate_hex_color(v)
        if not ok:
            raise ValueError(error)
        return v


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: str
    icon: str | None
    is_default: bool
    created_at: datetime


# === Endpoints ===

@router.post("/", response_model=CategoryResponse, status_code=201)
def create_category(req: CreateCategoryRequest, store: LocalStore = Depends(get_store)):
    category_id = store.insert("event_categories", req.model_dump())
    return store.find_by_id("event_categories", category_id)


@router.get("/", response_model=list[CategoryResponse])
def list_categories(store: LocalStore = Depends(get_store)):
    """Built-in categories first, then by name"""
    return store.find_many("event_categories", order_by=("-is_default", "name"))


@router.post("/defaults", response_model=list[CategoryResponse])
def seed_default_categories(
    service: CalendarService = Depends(get_calendar_service),
    store: LocalStore = Depends(get_store),
):
    service.ensure_default_categories()
    return store.find_many("event_categories", {"is_default": True})


@router.delete("/{category_id}", status_code=204)
def delete_category(category_id: int, store: LocalStore = Depends(get_store)):
    """Events keep existing with category_id cleared"""
    store.delete("event_categories", category_id)

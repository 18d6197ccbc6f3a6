"""FastAPI application exposing the planner engine and the checklist library."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Literal

from fastapi import Body, FastAPI, HTTPException, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from race_planner.adapters.dataset_loader import Dataset, load_dataset
from race_planner.adapters.sqlite_checklist_store import SQLiteChecklistStore, StoredChecklist
from race_planner.api.contracts import (
    ChecklistImportResponse,
    ChecklistMoveRequest,
    ChecklistRenameRequest,
    ChecklistSnapshot,
    ChecklistSortRequest,
    ChecklistSummaryResponse,
    CompletionRequest,
    CompletionResponse,
    EventResponse,
    MandatoryResponse,
    OptimizeResponse,
    PlanSummaryResponse,
    ProfileSummaryResponse,
    SnapshotError,
    TurnCellResponse,
    WarningsResponse,
    dump_snapshot_json,
    import_checklists,
    parse_snapshot_json,
)
from race_planner.application.session import SchedulingSession
from race_planner.core.roster import resolve_mandatory, unresolved_objectives
from race_planner.core.turns import is_summer_slot
from race_planner.domain.models import MAX_TURN

DEFAULT_DB_PATH = Path("work/local/race_planner.db")

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Simple health payload for liveness checks."""

    status: Literal["ok"] = "ok"
    service: str = "race_planner"


class ApiRootResponse(BaseModel):
    """Describes currently available API capabilities."""

    name: str = "race_planner"
    persistence: Literal["sqlite"] = "sqlite"
    endpoints: list[str] = Field(
        default_factory=lambda: [
            "/healthz",
            "/api/v1",
            "/api/v1/calendar",
            "/api/v1/calendar/grid",
            "/api/v1/calendar/turns/{turn}",
            "/api/v1/profiles",
            "/api/v1/profiles/{name}/mandatory",
            "/api/v1/plan/summary",
            "/api/v1/plan/warnings",
            "/api/v1/plan/optimize",
            "/api/v1/plan/completion",
            "/api/v1/checklists",
            "/api/v1/checklists/{name}",
            "/api/v1/checklists/{name}/rename",
            "/api/v1/checklists/{name}/move",
            "/api/v1/checklists/sort",
            "/api/v1/checklists/import",
        ]
    )


def _resolve_db_path(db_path: Path | None) -> Path:
    """Resolve DB path from explicit arg, env var, then default path."""
    if db_path is not None:
        return db_path
    env_value = os.environ.get("RACE_PLANNER_DB_PATH", "").strip()
    if env_value:
        return Path(env_value)
    return DEFAULT_DB_PATH


def _cors_origins() -> list[str]:
    raw = os.environ.get("RACE_PLANNER_CORS_ORIGINS", "").strip()
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return ["http://127.0.0.1:5173", "http://localhost:5173"]


def _summary_response(checklist: StoredChecklist) -> ChecklistSummaryResponse:
    snapshot = parse_snapshot_json(checklist.payload_json)
    return ChecklistSummaryResponse(
        name=checklist.name,
        profile_name=checklist.profile_name,
        event_count=len(snapshot.selected_event_ids),
        position=checklist.position,
        saved_at=checklist.saved_at_utc,
    )


def create_app(
    db_path: Path | None = None,
    *,
    data_dir: Path | None = None,
    dataset: Dataset | None = None,
) -> FastAPI:
    """Create the API application."""
    effective_db_path = _resolve_db_path(db_path)
    loaded = dataset or load_dataset(data_dir)
    store = SQLiteChecklistStore(db_path=effective_db_path)
    known_event_ids = frozenset(event.event_id for event in loaded.calendar)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        logger.info("api.ready checklists=%s", len(store.list_checklists()))
        yield

    app = FastAPI(
        title="race_planner API",
        version="0.1.0",
        description="Race calendar planning, schedule checks and the saved checklist library.",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {"name": "system", "description": "Service health and runtime metadata."},
            {"name": "api", "description": "API discovery and root-level capability listing."},
            {"name": "calendar", "description": "Static race calendar and profile data."},
            {"name": "plan", "description": "Stateless checks over a posted checklist."},
            {"name": "checklists", "description": "Saved checklist library."},
        ],
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger.info(
        "api.start db_path=%s events=%s profiles=%s",
        effective_db_path,
        len(loaded.calendar),
        len(loaded.profiles),
    )

    def session_for(snapshot: ChecklistSnapshot) -> SchedulingSession:
        session = SchedulingSession(
            loaded.calendar,
            loaded.profiles,
            epithet_definitions=loaded.epithets,
        )
        session.restore(snapshot.to_memento())
        return session

    def snapshot_of(session: SchedulingSession, template: ChecklistSnapshot) -> ChecklistSnapshot:
        return ChecklistSnapshot.from_memento(
            template.name, session.snapshot(), saved_at=template.saved_at
        )

    def stored_or_404(name: str) -> StoredChecklist:
        stored = store.get(name=name)
        if stored is None:
            raise HTTPException(status_code=404, detail="Checklist not found")
        return stored

    def summaries() -> list[ChecklistSummaryResponse]:
        return [_summary_response(checklist) for checklist in store.list_checklists()]

    def replace_library(
        parsed: list[tuple[ChecklistSnapshot, int]],
    ) -> ChecklistImportResponse:
        kept: dict[str, ChecklistSnapshot] = {}
        skipped: list[str] = []
        removed_total = 0
        for snapshot, removed in parsed:
            if snapshot.name in kept:
                skipped.append(snapshot.name)
                continue
            kept[snapshot.name] = snapshot
            removed_total += removed
        store.replace_all(
            [
                StoredChecklist(
                    name=snapshot.name,
                    profile_name=snapshot.profile_name,
                    position=position,
                    payload_json=dump_snapshot_json(snapshot),
                    saved_at_utc=snapshot.saved_at,
                )
                for position, snapshot in enumerate(kept.values())
            ]
        )
        return ChecklistImportResponse(
            imported=list(kept), skipped=skipped, removed_event_ids=removed_total
        )

    @app.get("/healthz", response_model=HealthResponse, tags=["system"])
    def healthz() -> HealthResponse:
        return HealthResponse()

    @app.get("/api/v1", response_model=ApiRootResponse, tags=["api"])
    def api_v1_root() -> ApiRootResponse:
        return ApiRootResponse()

    @app.get("/api/v1/calendar", response_model=list[EventResponse], tags=["calendar"])
    def list_events() -> list[EventResponse]:
        return [EventResponse.from_event(event) for event in loaded.calendar]

    @app.get("/api/v1/calendar/grid", response_model=list[TurnCellResponse], tags=["calendar"])
    def calendar_grid() -> list[TurnCellResponse]:
        return [
            TurnCellResponse(
                turn=cell.turn,
                date=cell.slot.label,
                summer=is_summer_slot(cell.slot),
                event_ids=[event.event_id for event in cell.events],
            )
            for cell in loaded.calendar.grid()
        ]

    @app.get(
        "/api/v1/calendar/turns/{turn}", response_model=list[EventResponse], tags=["calendar"]
    )
    def events_on_turn(turn: int) -> list[EventResponse]:
        if not 1 <= turn <= MAX_TURN:
            raise HTTPException(status_code=404, detail=f"Turn must be within 1..{MAX_TURN}")
        return [EventResponse.from_event(event) for event in loaded.calendar.events_on_turn(turn)]

    @app.get(
        "/api/v1/profiles", response_model=list[ProfileSummaryResponse], tags=["calendar"]
    )
    def list_profiles() -> list[ProfileSummaryResponse]:
        return [
            ProfileSummaryResponse(
                name=profile.name,
                aptitudes=dict(profile.aptitudes),
                objective_count=len(profile.objectives),
            )
            for profile in loaded.profiles
        ]

    @app.get(
        "/api/v1/profiles/{name}/mandatory", response_model=MandatoryResponse, tags=["calendar"]
    )
    def mandatory_events(name: str) -> MandatoryResponse:
        profile = loaded.profile(name)
        if profile is None:
            raise HTTPException(status_code=404, detail="Profile not found")
        mandatory = resolve_mandatory(profile, loaded.calendar)
        return MandatoryResponse(
            profile_name=profile.name,
            event_ids=[event.event_id for event in loaded.calendar.events_for(mandatory)],
            unresolved=[
                objective.description
                for objective in unresolved_objectives(profile, loaded.calendar)
            ],
        )

    @app.post("/api/v1/plan/summary", response_model=PlanSummaryResponse, tags=["plan"])
    def plan_summary(payload: ChecklistSnapshot) -> PlanSummaryResponse:
        session = session_for(payload)
        base, estimated = session.estimated_reward()
        counts = session.counts()
        next_view = session.next_event()
        return PlanSummaryResponse(
            schedule=[EventResponse.from_event(event) for event in session.schedule()],
            warning_ids=sorted(session.warnings()),
            next_event_id=next_view.event.event_id if next_view is not None else None,
            status_text=session.status_text(),
            base_reward=base,
            estimated_reward=estimated,
            won=counts.won,
            total=counts.total,
        )

    @app.post("/api/v1/plan/warnings", response_model=WarningsResponse, tags=["plan"])
    def plan_warnings(payload: ChecklistSnapshot) -> WarningsResponse:
        return WarningsResponse(warning_ids=sorted(session_for(payload).warnings()))

    @app.post("/api/v1/plan/optimize", response_model=OptimizeResponse, tags=["plan"])
    def plan_optimize(payload: ChecklistSnapshot) -> OptimizeResponse:
        session = session_for(payload)
        result = session.maximize_reward()
        return OptimizeResponse(
            event_ids=list(result.event_ids),
            total_reward=result.total_reward,
            snapshot=snapshot_of(session, payload),
        )

    @app.post("/api/v1/plan/completion", response_model=CompletionResponse, tags=["plan"])
    def plan_completion(payload: CompletionRequest) -> CompletionResponse:
        session = session_for(payload.snapshot)
        if payload.event_id not in known_event_ids:
            raise HTTPException(status_code=404, detail="Event not found")
        outcome = session.set_completion(payload.event_id, payload.field, payload.value)
        return CompletionResponse(
            snapshot=snapshot_of(session, payload.snapshot),
            substituted_id=outcome.substituted_id,
            reverted_id=outcome.reverted_id,
            skipped_reason=outcome.skipped_reason,
        )

    @app.get(
        "/api/v1/checklists",
        response_model=list[ChecklistSummaryResponse],
        tags=["checklists"],
    )
    def list_checklists() -> list[ChecklistSummaryResponse]:
        return summaries()

    @app.put(
        "/api/v1/checklists",
        response_model=ChecklistSummaryResponse,
        tags=["checklists"],
    )
    def save_checklist(payload: ChecklistSnapshot) -> ChecklistSummaryResponse:
        snapshot, removed = payload.sanitized(known_event_ids)
        if removed:
            logger.warning("checklist.unknown_events name=%s removed=%s", snapshot.name, removed)
        stored = store.save(
            name=snapshot.name,
            profile_name=snapshot.profile_name,
            payload_json=dump_snapshot_json(snapshot),
            saved_at_utc=snapshot.saved_at,
        )
        return _summary_response(stored)

    @app.post(
        "/api/v1/checklists/sort",
        response_model=list[ChecklistSummaryResponse],
        tags=["checklists"],
    )
    def sort_checklists(payload: ChecklistSortRequest) -> list[ChecklistSummaryResponse]:
        store.sort(key=payload.key)
        return summaries()

    @app.post(
        "/api/v1/checklists/import",
        response_model=ChecklistImportResponse,
        tags=["checklists"],
    )
    def import_checklist_file(
        payload: Any = Body(...), overwrite: bool = False, replace: bool = False
    ) -> ChecklistImportResponse:
        try:
            parsed = import_checklists(payload, known_event_ids)
        except SnapshotError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if replace:
            return replace_library(parsed)
        imported: list[str] = []
        skipped: list[str] = []
        removed_total = 0
        for snapshot, removed in parsed:
            if store.exists(name=snapshot.name) and not overwrite:
                skipped.append(snapshot.name)
                continue
            store.save(
                name=snapshot.name,
                profile_name=snapshot.profile_name,
                payload_json=dump_snapshot_json(snapshot),
                saved_at_utc=snapshot.saved_at,
            )
            imported.append(snapshot.name)
            removed_total += removed
        return ChecklistImportResponse(
            imported=imported, skipped=skipped, removed_event_ids=removed_total
        )

    @app.get(
        "/api/v1/checklists/{name}",
        response_model=ChecklistSnapshot,
        response_model_by_alias=True,
        tags=["checklists"],
    )
    def get_checklist(name: str) -> ChecklistSnapshot:
        return parse_snapshot_json(stored_or_404(name).payload_json)

    @app.delete("/api/v1/checklists/{name}", status_code=204, tags=["checklists"])
    def delete_checklist(name: str) -> Response:
        if not store.delete(name=name):
            raise HTTPException(status_code=404, detail="Checklist not found")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.post(
        "/api/v1/checklists/{name}/rename",
        response_model=ChecklistSummaryResponse,
        tags=["checklists"],
    )
    def rename_checklist(name: str, payload: ChecklistRenameRequest) -> ChecklistSummaryResponse:
        stored = stored_or_404(name)
        snapshot = parse_snapshot_json(stored.payload_json).model_copy(
            update={"name": payload.new_name}
        )
        if not store.rename(
            name=name, new_name=payload.new_name, payload_json=dump_snapshot_json(snapshot)
        ):
            raise HTTPException(status_code=409, detail="Checklist name already in use")
        return _summary_response(stored_or_404(payload.new_name))

    @app.post(
        "/api/v1/checklists/{name}/move",
        response_model=list[ChecklistSummaryResponse],
        tags=["checklists"],
    )
    def move_checklist(name: str, payload: ChecklistMoveRequest) -> list[ChecklistSummaryResponse]:
        stored_or_404(name)
        store.move(name=name, direction=payload.direction)
        return summaries()

    return app


app = create_app()

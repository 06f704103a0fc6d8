from collections.abc import Callable, Generator
from datetime import date

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from weekplan.core.config import Settings, get_settings
from weekplan.db.session import SessionLocal
from weekplan.db.store import SqlTimetableStore
from weekplan.services.coordinator import SchedulingCoordinator
from weekplan.services.scheduling import SchedulingContext


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_coordinator(request: Request) -> SchedulingCoordinator:
    return request.app.state.coordinator


def get_clock() -> Callable[[], date] | None:
    """School-local "today" provider; ``None`` uses the wall clock."""
    return None


def get_actor_id(x_actor_id: str | None = Header(default=None, max_length=36)) -> str | None:
    if x_actor_id is None:
        return None
    return x_actor_id.strip() or None


def get_context(
    db: Session = Depends(get_db),
    coordinator: SchedulingCoordinator = Depends(get_coordinator),
    clock: Callable[[], date] | None = Depends(get_clock),
    settings: Settings = Depends(get_settings),
) -> SchedulingContext:
    return SchedulingContext(
        store=SqlTimetableStore(db, settings),
        coordinator=coordinator,
        settings=settings,
        clock=clock,
    )

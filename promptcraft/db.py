# promptcraft/db.py
import json
import uuid
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from promptcraft import errors
from promptcraft.config import get_settings
from promptcraft.monitoring import logger
from promptcraft.schemas import Enhancement, EnhancementStyle

# Default dev DB; on Vercel api/index.py points DATABASE_URL at /tmp before import
DATABASE_URL = get_settings().database_url

DEFAULT_HISTORY_LIMIT = 10


def _make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args)


engine = _make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def reconfigure(url: str):
    """Reconfigure the DB engine and session factory at runtime (for tests)."""
    global engine, SessionLocal
    engine = _make_engine(url)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db():
    # Create tables if they don't exist
    try:
        import promptcraft.models as models  # noqa: F401
        Base.metadata.create_all(bind=engine)
    except Exception:
        # surface in logs; don't crash the app at import time
        logger.exception("DB init failed")


def _dump(value: Any) -> Optional[str]:
    """Serialize a pydantic model (or list of them) into a JSON text column."""
    if value is None:
        return None
    if isinstance(value, list):
        value = [v.model_dump(mode="json", by_alias=True) if hasattr(v, "model_dump") else v for v in value]
    elif hasattr(value, "model_dump"):
        value = value.model_dump(mode="json", by_alias=True)
    return json.dumps(value)


def _load(raw: Optional[str]) -> Any:
    return json.loads(raw) if raw else None


# mutable field -> (column, serializer)
_MUTABLE_FIELDS: Dict[str, tuple] = {
    "analysis_results": ("analysis_json", _dump),
    "follow_up_questions": ("questions_json", _dump),
    "answers": ("answers_json", _dump),
    "enhanced_prompt": ("enhanced_prompt", None),
    "improvement_summary": ("improvement_json", _dump),
    "completed": ("completed", None),
    "saved": ("saved", None),
    "title": ("title", None),
    "style": ("style", lambda s: s.value if isinstance(s, EnhancementStyle) else s),
}


def _to_enhancement(row) -> Enhancement:
    return Enhancement(
        id=row.id,
        original_prompt=row.original_prompt,
        analysis_results=_load(row.analysis_json),
        follow_up_questions=_load(row.questions_json),
        answers=_load(row.answers_json),
        enhanced_prompt=row.enhanced_prompt,
        improvement_summary=_load(row.improvement_json),
        completed=bool(row.completed),
        saved=bool(row.saved),
        title=row.title,
        style=row.style or EnhancementStyle.detailed,
        created_at=row.created_at,
    )


class EnhancementStore:
    """
    Persistence for enhancement records.

    Every operation opens its own session and hands back a detached pydantic
    Enhancement, so callers never share ORM state between requests.
    Lookups that miss return None; backend failures raise StorageError.
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory

    def _session(self) -> Session:
        # resolve lazily so db.reconfigure() is honoured
        factory = self._session_factory or SessionLocal
        return factory()

    def _run(self, action: str, fn: Callable[[Session], Any]) -> Any:
        db = self._session()
        try:
            return fn(db)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("DB error", extra={"action": action})
            raise errors.StorageError(f"Failed to {action}") from e
        finally:
            db.close()

    def create(self, original_prompt: str, style=EnhancementStyle.detailed) -> Enhancement:
        from promptcraft import models

        def _create(db: Session) -> Enhancement:
            row = models.EnhancementRecord(
                id=str(uuid.uuid4()),
                original_prompt=original_prompt,
                created_at=models.utcnow(),
                completed=False,
                saved=False,
                style=EnhancementStyle(style or EnhancementStyle.detailed).value,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_enhancement(row)

        return self._run("create enhancement", _create)

    def get(self, enhancement_id: str) -> Optional[Enhancement]:
        from promptcraft.models import EnhancementRecord

        def _get(db: Session) -> Optional[Enhancement]:
            row = db.get(EnhancementRecord, enhancement_id)
            return _to_enhancement(row) if row else None

        return self._run("fetch enhancement", _get)

    def update(self, enhancement_id: str, **fields) -> Optional[Enhancement]:
        """Merge a sparse set of mutable fields into the record."""
        from promptcraft.models import EnhancementRecord

        unknown = set(fields) - set(_MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        def _update(db: Session) -> Optional[Enhancement]:
            row = db.get(EnhancementRecord, enhancement_id)
            if not row:
                return None
            for name, value in fields.items():
                column, serialize = _MUTABLE_FIELDS[name]
                setattr(row, column, serialize(value) if serialize else value)
            db.commit()
            db.refresh(row)
            return _to_enhancement(row)

        return self._run("update enhancement", _update)

    def list_recent(self, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Enhancement]:
        from promptcraft.models import EnhancementRecord

        def _list(db: Session) -> List[Enhancement]:
            rows = (
                db.query(EnhancementRecord)
                .filter(EnhancementRecord.completed.is_(True))
                .order_by(EnhancementRecord.created_at.desc(), EnhancementRecord.id.desc())
                .limit(limit)
                .all()
            )
            return [_to_enhancement(r) for r in rows]

        return self._run("fetch history", _list)

    def list_saved(self) -> List[Enhancement]:
        from promptcraft.models import EnhancementRecord

        def _list(db: Session) -> List[Enhancement]:
            rows = (
                db.query(EnhancementRecord)
                .filter(EnhancementRecord.saved.is_(True))
                .order_by(EnhancementRecord.created_at.desc(), EnhancementRecord.id.desc())
                .all()
            )
            return [_to_enhancement(r) for r in rows]

        return self._run("fetch saved prompts", _list)

    def set_saved(self, enhancement_id: str, title: Optional[str] = None) -> Optional[Enhancement]:
        return self.update(enhancement_id, saved=True, title=title)

    def set_unsaved(self, enhancement_id: str) -> Optional[Enhancement]:
        return self.update(enhancement_id, saved=False, title=None)

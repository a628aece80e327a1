"""
JSON storage backend (file-based persistence).

This module provides:
- Events, invite codes and results stored as JSON lists under `STORAGE_DIR`
  (`events.json`, `invite_codes.json`, `results.json`; atomic writes)
- Append-only audit log in NDJSON format (`STORAGE_DIR/audit.ndjson`) with size-based rotation
- Admin user database stored in `STORAGE_DIR/users.json` (includes default admin bootstrap)

Concurrency model:
- One asyncio.Lock per collection file serializes read-modify-write cycles
- A global audit lock serializes appends/rotations of the NDJSON audit log
"""

# -------------------- Standard library imports --------------------
import asyncio
import json
import logging
import os
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

# -------------------- Local application imports --------------------
from typearena.errors import ResultAlreadySubmitted, ServerError

STORAGE_DIR = os.getenv("STORAGE_DIR", "data")
MAX_AUDIT_FILE_SIZE_MB = int(os.getenv("MAX_AUDIT_FILE_SIZE_MB", "50"))

EVENTS = "events"
INVITE_CODES = "invite_codes"
RESULTS = "results"

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _storage_dir() -> Path:
    return Path(STORAGE_DIR)


def _users_path() -> Path:
    return _storage_dir() / "users.json"


def _atomic_write_json(path: Path, payload: Any) -> None:
    # Write to `*.tmp` then replace the target in one filesystem operation,
    # so readers never see a partial file.
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp_path, path)


def generate_code() -> str:
    """Invite codes are 8 upper-case hex characters."""
    return uuid.uuid4().hex[:8].upper()


def result_sort_key(row: dict):
    # wpm desc, accuracy desc, then insertion order
    return (-float(row.get("wpm") or 0), -float(row.get("accuracy") or 0), int(row.get("id") or 0))


class JsonStore:
    """Async store facade over JSON files in `base_dir`."""

    def __init__(self, base_dir: str | Path | None = None):
        self.base_dir = Path(base_dir) if base_dir is not None else _storage_dir()
        self._locks: Dict[str, asyncio.Lock] = {
            EVENTS: asyncio.Lock(),
            INVITE_CODES: asyncio.Lock(),
            RESULTS: asyncio.Lock(),
        }
        self._audit_lock = asyncio.Lock()

    # -------------------- file helpers --------------------

    def _path(self, collection: str) -> Path:
        return self.base_dir / f"{collection}.json"

    def _audit_path(self) -> Path:
        return self.base_dir / "audit.ndjson"

    def ensure_dirs(self) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _load(self, collection: str) -> List[dict]:
        path = self._path(collection)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("Corrupt JSON in %s: %s", path.name, exc, exc_info=True)
            raise ServerError("storage_corrupt") from exc
        except OSError as exc:
            logger.error("Failed to read %s: %s", path.name, exc, exc_info=True)
            raise ServerError("storage_unavailable") from exc
        if not isinstance(data, list):
            logger.warning("Invalid format in %s (not a list), treating as empty", path.name)
            return []
        return [row for row in data if isinstance(row, dict)]

    def _save(self, collection: str, rows: List[dict]) -> None:
        try:
            self.ensure_dirs()
            _atomic_write_json(self._path(collection), rows)
        except OSError as exc:
            logger.error("Failed to write %s: %s", collection, exc, exc_info=True)
            raise ServerError("storage_unavailable") from exc

    @staticmethod
    def _next_id(rows: Iterable[dict]) -> int:
        return max((int(row.get("id") or 0) for row in rows), default=0) + 1

    # -------------------- events --------------------

    async def list_events(self) -> List[dict]:
        async with self._locks[EVENTS]:
            rows = self._load(EVENTS)
        return sorted(rows, key=lambda row: row.get("created_at") or "", reverse=True)

    async def get_event(self, event_id: int) -> Optional[dict]:
        async with self._locks[EVENTS]:
            rows = self._load(EVENTS)
        for row in rows:
            if int(row.get("id") or 0) == int(event_id):
                return row
        return None

    async def create_event(self, data: dict) -> dict:
        async with self._locks[EVENTS]:
            rows = self._load(EVENTS)
            event = dict(data)
            event["id"] = self._next_id(rows)
            event.setdefault("status", "upcoming")
            event["created_at"] = _now()
            rows.append(event)
            self._save(EVENTS, rows)
        return event

    async def update_event_status(self, event_id: int, status: str) -> Optional[dict]:
        async with self._locks[EVENTS]:
            rows = self._load(EVENTS)
            for row in rows:
                if int(row.get("id") or 0) == int(event_id):
                    row["status"] = status
                    self._save(EVENTS, rows)
                    return row
        return None

    async def delete_event(self, event_id: int) -> bool:
        """Delete an event together with its invite codes and results."""
        event_id = int(event_id)
        async with self._locks[EVENTS]:
            rows = self._load(EVENTS)
            kept = [row for row in rows if int(row.get("id") or 0) != event_id]
            if len(kept) == len(rows):
                return False
            self._save(EVENTS, kept)
        async with self._locks[INVITE_CODES]:
            codes = self._load(INVITE_CODES)
            self._save(INVITE_CODES, [c for c in codes if int(c.get("event_id") or 0) != event_id])
        async with self._locks[RESULTS]:
            results = self._load(RESULTS)
            self._save(RESULTS, [r for r in results if int(r.get("event_id") or 0) != event_id])
        return True

    # -------------------- invite codes --------------------

    async def create_invite_codes(self, event_id: int, participants: List[dict]) -> List[dict]:
        async with self._locks[INVITE_CODES]:
            rows = self._load(INVITE_CODES)
            taken = {row.get("code") for row in rows}
            created = []
            next_id = self._next_id(rows)
            for participant in participants:
                code = generate_code()
                while code in taken:
                    code = generate_code()
                taken.add(code)
                record = {
                    "id": next_id,
                    "code": code,
                    "event_id": int(event_id),
                    "name": participant.get("name") or "",
                    "class_name": participant.get("class_name") or "",
                    "is_used": False,
                    "created_at": _now(),
                }
                next_id += 1
                rows.append(record)
                created.append(record)
            self._save(INVITE_CODES, rows)
        return created

    async def list_invite_codes(self, event_id: int) -> List[dict]:
        async with self._locks[INVITE_CODES]:
            rows = self._load(INVITE_CODES)
        return [row for row in rows if int(row.get("event_id") or 0) == int(event_id)]

    async def find_invite_code(self, code: str) -> Optional[dict]:
        async with self._locks[INVITE_CODES]:
            rows = self._load(INVITE_CODES)
        for row in rows:
            if row.get("code") == code:
                return row
        return None

    async def get_invite_code(self, code_id: int) -> Optional[dict]:
        async with self._locks[INVITE_CODES]:
            rows = self._load(INVITE_CODES)
        for row in rows:
            if int(row.get("id") or 0) == int(code_id):
                return row
        return None

    async def delete_invite_code(self, code_id: int) -> bool:
        async with self._locks[INVITE_CODES]:
            rows = self._load(INVITE_CODES)
            kept = [row for row in rows if int(row.get("id") or 0) != int(code_id)]
            if len(kept) == len(rows):
                return False
            self._save(INVITE_CODES, kept)
        return True

    async def _mark_code_used(self, code_id: int) -> None:
        async with self._locks[INVITE_CODES]:
            rows = self._load(INVITE_CODES)
            for row in rows:
                if int(row.get("id") or 0) == int(code_id):
                    row["is_used"] = True
            self._save(INVITE_CODES, rows)

    # -------------------- results --------------------

    async def add_result(self, record: dict, *, single_use: bool = True) -> dict:
        """
        Persist a result row and mark its invite code as used.

        Under the single-use policy a second row for the same invite code is rejected
        with `ResultAlreadySubmitted`; the check and insert share the results lock.
        """
        code_id = int(record["invite_code_id"])
        async with self._locks[RESULTS]:
            rows = self._load(RESULTS)
            if single_use and any(int(r.get("invite_code_id") or 0) == code_id for r in rows):
                raise ResultAlreadySubmitted()
            row = dict(record)
            row["id"] = self._next_id(rows)
            row["completed_at"] = _now()
            rows.append(row)
            self._save(RESULTS, rows)
        await self._mark_code_used(code_id)
        return row

    async def list_results(self, event_id: int) -> List[dict]:
        async with self._locks[RESULTS]:
            rows = self._load(RESULTS)
        matching = [row for row in rows if int(row.get("event_id") or 0) == int(event_id)]
        return sorted(matching, key=result_sort_key)

    # -------------------- audit --------------------

    def _rotate_audit_file_if_needed(self) -> None:
        path = self._audit_path()
        if not path.exists():
            return
        try:
            size_mb = path.stat().st_size / (1024 * 1024)
            if size_mb >= MAX_AUDIT_FILE_SIZE_MB:
                timestamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
                archive_path = path.parent / f"audit.{timestamp}.ndjson"
                path.rename(archive_path)
                logger.info("Rotated audit file to %s (was %.2f MB)", archive_path.name, size_mb)
        except OSError as exc:
            logger.warning("Failed to rotate audit file: %s", exc)

    async def append_audit(self, action: str, payload: dict, actor: Optional[dict] = None) -> None:
        """Append one audit record; failures are logged, never raised."""
        event = build_audit_event(action=action, payload=payload, actor=actor)
        line = json.dumps(event, ensure_ascii=False)
        async with self._audit_lock:
            try:
                self.ensure_dirs()
                self._rotate_audit_file_if_needed()
                with self._audit_path().open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
            except OSError as exc:
                logger.warning("Failed to append audit event: %s", exc)

    def read_audit(self, limit: int = 200) -> List[dict]:
        path = self._audit_path()
        if not path.exists():
            return []
        events = []
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        return list(reversed(events[-limit:]))


def build_audit_event(*, action: str, payload: dict, actor: Optional[dict]) -> dict:
    return {
        "id": str(uuid.uuid4()),
        "createdAt": _now(),
        "action": action,
        "eventId": payload.get("event_id") if isinstance(payload, dict) else None,
        "actorUsername": (actor or {}).get("username"),
        "actorRole": (actor or {}).get("role"),
        "actorIp": (actor or {}).get("ip"),
        "payload": payload if isinstance(payload, dict) else {},
    }


# -------------------- admin users --------------------


def load_users() -> Dict[str, dict]:
    path = _users_path()
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to load users: %s", exc)
        return {}
    return data if isinstance(data, dict) else {}


def save_users(users: Dict[str, dict]) -> None:
    _storage_dir().mkdir(parents=True, exist_ok=True)
    _atomic_write_json(_users_path(), users)


def get_users_with_default_admin() -> Dict[str, dict]:
    """Load users, bootstrapping an `admin` account on first use."""
    users = load_users()
    if "admin" in users and not os.getenv("RESET_ADMIN_PASSWORD"):
        return users

    from typearena.auth.service import hash_password

    now = _now()
    password = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")
    if "admin" in users:
        users["admin"]["password_hash"] = hash_password(password)
        users["admin"]["updated_at"] = now
        logger.warning("Admin password was reset via RESET_ADMIN_PASSWORD")
    else:
        users["admin"] = {
            "username": "admin",
            "password_hash": hash_password(password),
            "role": "admin",
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
    save_users(users)
    return users

"""
SQLite-backed storage for call intake.

Holds the contact allowlist and homeowner records (both read-only to the
pipeline), call records and claims. Every correctness guarantee that has to
survive concurrent webhook deliveries lives here, not in application memory:

- call records are upserted on a UNIQUE external_call_id
- claim numbers come from a per-homeowner counter bumped with one atomic
  INSERT ... ON CONFLICT DO UPDATE ... RETURNING
- the duplicate check, number allocation and claim insert share one
  BEGIN IMMEDIATE transaction
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Optional

from ..errors import StoreError
from ..intake.schema import OPEN_CLAIM_STATUSES, CallRecord, Claim, ClaimStatus, Contact, Homeowner

logger = logging.getLogger(__name__)

# Database file location
DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "data" / "intake.db"

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS contacts (
    phone_number        TEXT PRIMARY KEY,
    owner_id            TEXT NOT NULL,
    display_name        TEXT,
    updated_at          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS homeowners (
    id                  TEXT PRIMARY KEY,
    name                TEXT NOT NULL,
    address             TEXT NOT NULL DEFAULT '',
    email               TEXT,
    phone               TEXT,
    last_active_at      TEXT
);

CREATE TABLE IF NOT EXISTS calls (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    external_call_id    TEXT NOT NULL UNIQUE,
    caller_phone        TEXT,
    homeowner_name      TEXT,
    property_address    TEXT,
    issue_description   TEXT,
    call_intent         TEXT,
    extracted_fields    TEXT NOT NULL DEFAULT '{}',
    homeowner_id        TEXT,
    similarity          REAL CHECK (similarity IS NULL OR (similarity >= 0 AND similarity <= 1)),
    is_verified         INTEGER NOT NULL DEFAULT 0,
    is_urgent           INTEGER NOT NULL DEFAULT 0,
    transcript          TEXT,
    recording_url       TEXT,
    claim_id            TEXT,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_calls_homeowner ON calls(homeowner_id);
CREATE INDEX IF NOT EXISTS idx_calls_verified ON calls(is_verified);

CREATE TABLE IF NOT EXISTS claims (
    id                  TEXT PRIMARY KEY,
    homeowner_id        TEXT NOT NULL,
    claim_number        INTEGER NOT NULL,
    status              TEXT NOT NULL,
    classification      TEXT NOT NULL DEFAULT 'unclassified',
    title               TEXT NOT NULL,
    description         TEXT,
    source_call_id      TEXT,
    is_urgent           INTEGER NOT NULL DEFAULT 0,
    created_at          TEXT NOT NULL,
    UNIQUE (homeowner_id, claim_number)
);
CREATE INDEX IF NOT EXISTS idx_claims_homeowner_created ON claims(homeowner_id, created_at);

CREATE TABLE IF NOT EXISTS claim_counters (
    homeowner_id        TEXT PRIMARY KEY,
    last_number         INTEGER NOT NULL
);
"""

# First allocation seeds from claims created elsewhere; later ones never fall behind them
_NEXT_CLAIM_NUMBER = """
INSERT INTO claim_counters (homeowner_id, last_number)
VALUES (?, (SELECT COALESCE(MAX(claim_number), 0) FROM claims WHERE homeowner_id = ?) + 1)
ON CONFLICT(homeowner_id) DO UPDATE SET
    last_number = MAX(
        claim_counters.last_number,
        (SELECT COALESCE(MAX(claim_number), 0) FROM claims WHERE homeowner_id = excluded.homeowner_id)
    ) + 1
RETURNING last_number
"""

# A re-delivered call never loses data it already had, and keeps its first homeowner
_UPSERT_CALL = """
INSERT INTO calls (
    external_call_id, caller_phone, homeowner_name, property_address,
    issue_description, call_intent, extracted_fields, homeowner_id,
    similarity, is_verified, is_urgent, transcript, recording_url,
    claim_id, created_at, updated_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(external_call_id) DO UPDATE SET
    caller_phone = COALESCE(excluded.caller_phone, calls.caller_phone),
    homeowner_name = COALESCE(excluded.homeowner_name, calls.homeowner_name),
    property_address = COALESCE(excluded.property_address, calls.property_address),
    issue_description = COALESCE(excluded.issue_description, calls.issue_description),
    call_intent = COALESCE(excluded.call_intent, calls.call_intent),
    extracted_fields = excluded.extracted_fields,
    similarity = CASE WHEN calls.homeowner_id IS NULL THEN excluded.similarity ELSE calls.similarity END,
    is_verified = CASE WHEN calls.homeowner_id IS NULL THEN excluded.is_verified ELSE calls.is_verified END,
    homeowner_id = COALESCE(calls.homeowner_id, excluded.homeowner_id),
    is_urgent = MAX(calls.is_urgent, excluded.is_urgent),
    transcript = COALESCE(excluded.transcript, calls.transcript),
    recording_url = COALESCE(excluded.recording_url, calls.recording_url),
    claim_id = COALESCE(calls.claim_id, excluded.claim_id),
    updated_at = excluded.updated_at
RETURNING *
"""


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    """UTC ISO-8601 with fixed precision so stored timestamps sort as text."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now_iso() -> str:
    return _to_iso(datetime.now(timezone.utc))


class CallStore:
    """
    SQLite storage for contacts, homeowners, call records and claims.

    Usage:
        store = CallStore(Path("data/intake.db"))

        contact = store.find_contact_by_phone("+15551234567")
        record = store.upsert_call(CallRecord(external_call_id="call-1"))
        claim = store.create_claim("ho-1", dedup_since=yesterday)
    """

    def __init__(self, db_path: Optional[Path] = None, busy_timeout: float = 10.0):
        """Initialize the store and create tables if needed."""
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout = busy_timeout
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(_CREATE_TABLES)

    @contextmanager
    def _get_connection(self):
        """Open a connection in autocommit mode; sqlite errors surface as StoreError."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout, isolation_level=None)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open database {self.db_path}: {e}", original_error=e) from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            raise StoreError(f"Database error: {e}", original_error=e) from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self):
        """Write transaction that takes the database write lock up front."""
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    # =========================================================================
    # Contacts (allowlist)
    # =========================================================================

    def find_contact_by_phone(self, phone_number: str) -> Optional[Contact]:
        """Exact lookup of an E.164 number in the allowlist."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM contacts WHERE phone_number = ? LIMIT 1",
                (phone_number,),
            ).fetchone()
        if row is None:
            return None
        return Contact(
            phone_number=row["phone_number"],
            owner_id=row["owner_id"],
            display_name=row["display_name"],
        )

    def upsert_contacts(self, contacts: Iterable[Contact]) -> int:
        """Insert or refresh allowlist entries. Used by the contact sync surface."""
        now = _now_iso()
        rows = [(c.phone_number, c.owner_id, c.display_name, now) for c in contacts]
        with self._transaction() as conn:
            conn.executemany(
                """
                INSERT INTO contacts (phone_number, owner_id, display_name, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(phone_number) DO UPDATE SET
                    owner_id = excluded.owner_id,
                    display_name = excluded.display_name,
                    updated_at = excluded.updated_at
                """,
                rows,
            )
        return len(rows)

    # =========================================================================
    # Homeowners
    # =========================================================================

    def upsert_homeowner(self, homeowner: Homeowner) -> None:
        """Insert or refresh a homeowner. The CRM owns these; this is for seeding."""
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO homeowners (id, name, address, email, phone, last_active_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    address = excluded.address,
                    email = excluded.email,
                    phone = excluded.phone,
                    last_active_at = excluded.last_active_at
                """,
                (
                    homeowner.id,
                    homeowner.name,
                    homeowner.address or "",
                    homeowner.email,
                    homeowner.phone,
                    _to_iso(homeowner.last_active_at),
                ),
            )

    def get_homeowner(self, homeowner_id: str) -> Optional[Homeowner]:
        """Retrieve a homeowner by id."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM homeowners WHERE id = ?",
                (homeowner_id,),
            ).fetchone()
        return self._row_to_homeowner(row) if row else None

    def list_homeowner_candidates(self, zip_code: Optional[str] = None) -> list[Homeowner]:
        """
        Homeowners with an address on file.

        Args:
            zip_code: If given, only addresses containing this ZIP code
        """
        query = "SELECT * FROM homeowners WHERE TRIM(address) != ''"
        params: list = []
        if zip_code:
            query += " AND address LIKE ?"
            params.append(f"%{zip_code}%")
        query += " ORDER BY id"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_homeowner(row) for row in rows]

    # =========================================================================
    # Call records
    # =========================================================================

    def upsert_call(self, record: CallRecord) -> CallRecord:
        """
        Create or update the call record for record.external_call_id.

        Repeated deliveries of one call always land on the same row.
        """
        now = _now_iso()
        with self._get_connection() as conn:
            rows = conn.execute(
                _UPSERT_CALL,
                (
                    record.external_call_id,
                    record.caller_phone,
                    record.homeowner_name,
                    record.property_address,
                    record.issue_description,
                    record.call_intent.value if record.call_intent else None,
                    json.dumps(record.extracted_fields),
                    record.homeowner_id,
                    record.similarity,
                    int(record.is_verified),
                    int(record.is_urgent),
                    record.transcript,
                    record.recording_url,
                    record.claim_id,
                    _to_iso(record.created_at) or now,
                    now,
                ),
            ).fetchall()
        return self._row_to_call(rows[0])

    def get_call(self, external_call_id: str) -> Optional[CallRecord]:
        """Retrieve a call record by vendor call id."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM calls WHERE external_call_id = ?",
                (external_call_id,),
            ).fetchone()
        return self._row_to_call(row) if row else None

    def attach_claim_to_call(self, external_call_id: str, claim_id: str) -> bool:
        """
        Link a claim to its source call.

        Returns:
            True if updated, False if the call was missing or already linked
        """
        with self._get_connection() as conn:
            result = conn.execute(
                """
                UPDATE calls SET claim_id = ?, updated_at = ?
                WHERE external_call_id = ? AND claim_id IS NULL
                """,
                (claim_id, _now_iso(), external_call_id),
            )
            return result.rowcount > 0

    def list_calls(
        self,
        verified: Optional[bool] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[CallRecord]:
        """
        List call records, newest first.

        Args:
            verified: Filter on is_verified (None for all)
            limit: Max results
            offset: Pagination offset
        """
        query = "SELECT * FROM calls WHERE 1=1"
        params: list = []

        if verified is not None:
            query += " AND is_verified = ?"
            params.append(int(verified))

        query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_call(row) for row in rows]

    def count_calls(self, verified: Optional[bool] = None) -> int:
        """Count call records, optionally by verification state."""
        with self._get_connection() as conn:
            if verified is None:
                row = conn.execute("SELECT COUNT(*) FROM calls").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM calls WHERE is_verified = ?",
                    (int(verified),),
                ).fetchone()
        return row[0]

    # =========================================================================
    # Claims
    # =========================================================================

    def allocate_claim_number(self, homeowner_id: str) -> int:
        """Atomically reserve the next claim number for a homeowner."""
        with self._transaction() as conn:
            return self._next_claim_number(conn, homeowner_id)

    def _next_claim_number(self, conn: sqlite3.Connection, homeowner_id: str) -> int:
        rows = conn.execute(_NEXT_CLAIM_NUMBER, (homeowner_id, homeowner_id)).fetchall()
        return int(rows[0][0])

    def create_claim(
        self,
        homeowner_id: str,
        title: str = "Call in",
        description: Optional[str] = None,
        source_call_id: Optional[str] = None,
        is_urgent: bool = False,
        created_at: Optional[datetime] = None,
        dedup_since: Optional[datetime] = None,
    ) -> Optional[Claim]:
        """
        Create a claim with the next sequential number for the homeowner.

        Args:
            dedup_since: If given, skip creation when the homeowner already has
                an open claim created at or after this instant

        Returns:
            The new Claim, or None when an open claim already exists
        """
        created_iso = _to_iso(created_at) or _now_iso()
        open_statuses = [status.value for status in OPEN_CLAIM_STATUSES]

        with self._transaction() as conn:
            if dedup_since is not None:
                existing = conn.execute(
                    f"""
                    SELECT id, claim_number FROM claims
                    WHERE homeowner_id = ?
                      AND created_at >= ?
                      AND status IN ({", ".join("?" * len(open_statuses))})
                    LIMIT 1
                    """,
                    (homeowner_id, _to_iso(dedup_since), *open_statuses),
                ).fetchone()
                if existing is not None:
                    logger.info(
                        f"Open claim #{existing['claim_number']} already exists for "
                        f"homeowner {homeowner_id}"
                    )
                    return None

            claim_number = self._next_claim_number(conn, homeowner_id)
            claim_id = str(uuid.uuid4())
            conn.execute(
                """
                INSERT INTO claims (
                    id, homeowner_id, claim_number, status, classification,
                    title, description, source_call_id, is_urgent, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    claim_id,
                    homeowner_id,
                    claim_number,
                    ClaimStatus.SUBMITTED.value,
                    "unclassified",
                    title,
                    description,
                    source_call_id,
                    int(is_urgent),
                    created_iso,
                ),
            )

        return Claim(
            id=claim_id,
            homeowner_id=homeowner_id,
            claim_number=claim_number,
            status=ClaimStatus.SUBMITTED,
            title=title,
            description=description,
            source_call_id=source_call_id,
            is_urgent=is_urgent,
            created_at=datetime.fromisoformat(created_iso),
        )

    def get_claim(self, claim_id: str) -> Optional[Claim]:
        """Retrieve a claim by id."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM claims WHERE id = ?", (claim_id,)).fetchone()
        return self._row_to_claim(row) if row else None

    def list_claims(self, homeowner_id: Optional[str] = None, limit: int = 100) -> list[Claim]:
        """List claims by claim number, optionally for one homeowner."""
        query = "SELECT * FROM claims"
        params: list = []
        if homeowner_id:
            query += " WHERE homeowner_id = ?"
            params.append(homeowner_id)
        query += " ORDER BY homeowner_id, claim_number LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_claim(row) for row in rows]

    # =========================================================================
    # Row conversion
    # =========================================================================

    def _row_to_homeowner(self, row: sqlite3.Row) -> Homeowner:
        return Homeowner(
            id=row["id"],
            name=row["name"],
            address=row["address"] or "",
            email=row["email"],
            phone=row["phone"],
            last_active_at=row["last_active_at"],
        )

    def _row_to_call(self, row: sqlite3.Row) -> CallRecord:
        return CallRecord(
            external_call_id=row["external_call_id"],
            caller_phone=row["caller_phone"],
            homeowner_name=row["homeowner_name"],
            property_address=row["property_address"],
            issue_description=row["issue_description"],
            call_intent=row["call_intent"],
            extracted_fields=json.loads(row["extracted_fields"]) if row["extracted_fields"] else {},
            homeowner_id=row["homeowner_id"],
            similarity=row["similarity"],
            is_verified=bool(row["is_verified"]),
            is_urgent=bool(row["is_urgent"]),
            transcript=row["transcript"],
            recording_url=row["recording_url"],
            claim_id=row["claim_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_claim(self, row: sqlite3.Row) -> Claim:
        return Claim(
            id=row["id"],
            homeowner_id=row["homeowner_id"],
            claim_number=row["claim_number"],
            status=row["status"],
            classification=row["classification"],
            title=row["title"],
            description=row["description"],
            source_call_id=row["source_call_id"],
            is_urgent=bool(row["is_urgent"]),
            created_at=row["created_at"],
        )


# =============================================================================
# Convenience Functions
# =============================================================================

@lru_cache
def get_call_store() -> CallStore:
    """Get the default call store (singleton), configured from settings."""
    from ..utils.config import get_settings

    settings = get_settings()
    store = CallStore(settings.database_path, busy_timeout=settings.database_busy_timeout_seconds)
    logger.info(f"Using intake database: {store.db_path.resolve()}")
    return store

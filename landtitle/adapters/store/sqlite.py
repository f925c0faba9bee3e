"""SQLite repository adapters.

Implements the parcel, titling request, and citizen repository ports using
SQLite with aiosqlite for async access. All three repositories share one
SQLiteDatabase, which owns the connection pool and the schema.

Saves use an optimistic version check: an insert for version 0, otherwise
an update guarded by the expected version.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import aiosqlite

from landtitle.core.errors import ConflictError
from landtitle.core.geo import ParcelLocation, bounding_box
from landtitle.core.identifiers import IdentityNumber, ParcelCode, RequestCode
from landtitle.core.models import (
    Citizen,
    Parcel,
    ParcelStatus,
    RequestStatus,
    RequestType,
    TitlingRequest,
    VerificationStatus,
)
from landtitle.core.ports import (
    CitizenRepositoryPort,
    ParcelRepositoryPort,
    TitlingRequestRepositoryPort,
)

from .rows import (
    CASE_FILE_SEQUENCE,
    REQUEST_SEQUENCE,
    row_to_citizen,
    row_to_parcel,
    row_to_request,
)

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS parcels (
        code TEXT PRIMARY KEY,
        owner TEXT NOT NULL,
        latitude TEXT NOT NULL,
        longitude TEXT NOT NULL,
        area TEXT NOT NULL,
        address TEXT NOT NULL,
        status TEXT NOT NULL,
        registered_at TEXT NOT NULL,
        updated_at TEXT,
        notes TEXT,
        version INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_parcels_owner ON parcels(owner)",
    "CREATE INDEX IF NOT EXISTS idx_parcels_status ON parcels(status)",
    """
    CREATE TABLE IF NOT EXISTS titling_requests (
        code TEXT PRIMARY KEY,
        requester_id TEXT NOT NULL,
        requester_name TEXT NOT NULL,
        parcel_address TEXT NOT NULL,
        request_type TEXT NOT NULL,
        status TEXT NOT NULL,
        priority INTEGER NOT NULL,
        documents TEXT NOT NULL DEFAULT '[]',
        case_file_number TEXT UNIQUE,
        registered_at TEXT NOT NULL,
        updated_at TEXT,
        notes TEXT,
        version INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_requests_requester ON titling_requests(requester_id)",
    "CREATE INDEX IF NOT EXISTS idx_requests_status ON titling_requests(status)",
    """
    CREATE TABLE IF NOT EXISTS citizens (
        identity TEXT PRIMARY KEY,
        given_names TEXT NOT NULL,
        surnames TEXT NOT NULL,
        birth_date TEXT NOT NULL,
        marital_status TEXT NOT NULL,
        sex TEXT NOT NULL,
        verification_status TEXT NOT NULL,
        registered_at TEXT NOT NULL,
        address TEXT,
        phone TEXT,
        email TEXT,
        updated_at TEXT,
        last_verified_at TEXT,
        notes TEXT,
        version INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sequences (
        name TEXT NOT NULL,
        year INTEGER NOT NULL,
        value INTEGER NOT NULL,
        PRIMARY KEY (name, year)
    )
    """,
)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SQLiteDatabase:
    """Connection pool and schema shared by the SQLite repositories."""

    def __init__(self, db_path: str, pool_size: int = 5):
        """Initialize SQLite database with connection pooling.

        Args:
            db_path: Path to SQLite database file.
            pool_size: Number of connections to maintain in the pool.
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._pool: list[aiosqlite.Connection] = []
        self._pool_lock = asyncio.Lock()
        self._schema_lock = asyncio.Lock()
        self._pool_size = pool_size
        self._schema_initialized = False

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get a connection from the pool or create a new one."""
        async with self._pool_lock:
            if self._pool:
                return self._pool.pop()
        conn = await aiosqlite.connect(str(self.db_path))
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA busy_timeout = 5000")
        return conn

    async def _return_connection(self, conn: aiosqlite.Connection) -> None:
        """Return a connection to the pool."""
        async with self._pool_lock:
            if len(self._pool) < self._pool_size:
                self._pool.append(conn)
                return
        await conn.close()

    async def close_pool(self) -> None:
        """Close all pooled connections."""
        async with self._pool_lock:
            for conn in self._pool:
                await conn.close()
            self._pool.clear()

    async def _init_schema(self) -> None:
        """Initialize database schema on first use.

        Only runs once per instance. Subsequent calls are no-ops.
        """
        if self._schema_initialized:
            return

        async with self._schema_lock:
            if self._schema_initialized:
                return

            conn = await self._get_connection()
            try:
                for statement in _SCHEMA:
                    await conn.execute(statement)
                await conn.commit()
                self._schema_initialized = True
                logger.debug(f"SQLite schema ready at {self.db_path}")
            finally:
                await self._return_connection(conn)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Borrow a pooled connection; uncommitted work is rolled back on error."""
        await self._init_schema()
        conn = await self._get_connection()
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        finally:
            await self._return_connection(conn)

    async def next_sequence_value(self, name: str, year: int) -> int:
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO sequences (name, year, value) VALUES (?, ?, 1)
                ON CONFLICT (name, year) DO UPDATE SET value = value + 1
                """,
                (name, year),
            )
            cursor = await conn.execute(
                "SELECT value FROM sequences WHERE name = ? AND year = ?",
                (name, year),
            )
            value = (await cursor.fetchone())[0]
            await conn.commit()
            return value


class SQLiteParcelRepository(ParcelRepositoryPort):
    """SQLite-backed parcel repository."""

    def __init__(self, database: SQLiteDatabase):
        self.database = database

    async def save(self, parcel: Parcel) -> Parcel:
        values = (
            parcel.owner,
            str(parcel.location.latitude),
            str(parcel.location.longitude),
            str(parcel.area),
            parcel.address,
            parcel.status.value,
            _ts(parcel.registered_at),
            _ts(parcel.updated_at),
            parcel.notes,
        )
        async with self.database.connection() as conn:
            if parcel.version == 0:
                try:
                    await conn.execute(
                        """
                        INSERT INTO parcels
                        (owner, latitude, longitude, area, address, status,
                         registered_at, updated_at, notes, code, version)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                        """,
                        (*values, parcel.code.value),
                    )
                except aiosqlite.IntegrityError as e:
                    raise ConflictError(
                        f"Parcel {parcel.code} already exists",
                        details={"code": parcel.code.value},
                    ) from e
            else:
                cursor = await conn.execute(
                    """
                    UPDATE parcels SET
                        owner = ?, latitude = ?, longitude = ?, area = ?,
                        address = ?, status = ?, registered_at = ?,
                        updated_at = ?, notes = ?, version = version + 1
                    WHERE code = ? AND version = ?
                    """,
                    (*values, parcel.code.value, parcel.version),
                )
                if cursor.rowcount == 0:
                    raise ConflictError(
                        f"Parcel {parcel.code} was modified concurrently "
                        f"(expected version {parcel.version})",
                        details={"code": parcel.code.value, "version": parcel.version},
                    )
            await conn.commit()
        return replace(parcel, version=parcel.version + 1)

    async def get_by_code(self, code: ParcelCode) -> Parcel | None:
        async with self.database.connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM parcels WHERE code = ?", (code.value,)
            )
            row = await cursor.fetchone()
            return row_to_parcel(row) if row is not None else None

    async def exists(self, code: ParcelCode) -> bool:
        async with self.database.connection() as conn:
            cursor = await conn.execute(
                "SELECT 1 FROM parcels WHERE code = ?", (code.value,)
            )
            return await cursor.fetchone() is not None

    async def find_by_owner(self, owner: str) -> list[Parcel]:
        return await self._select(
            "SELECT * FROM parcels WHERE owner = ? ORDER BY code", (owner,)
        )

    async def find_by_status(self, status: ParcelStatus) -> list[Parcel]:
        return await self._select(
            "SELECT * FROM parcels WHERE status = ? ORDER BY code", (status.value,)
        )

    async def find_nearby(
        self, location: ParcelLocation, radius_m: float
    ) -> list[Parcel]:
        min_lat, max_lat, min_lon, max_lon = bounding_box(location, radius_m)
        candidates = await self._select(
            """
            SELECT * FROM parcels
            WHERE CAST(latitude AS REAL) BETWEEN ? AND ?
              AND CAST(longitude AS REAL) BETWEEN ? AND ?
            """,
            (min_lat, max_lat, min_lon, max_lon),
        )
        nearby = [p for p in candidates if location.is_within(p.location, radius_m)]
        return sorted(nearby, key=lambda p: location.distance_to(p.location))

    async def find_by_district(
        self,
        department: str,
        province: str | None = None,
        district: str | None = None,
    ) -> list[Parcel]:
        prefix = department + (province or "") + ((district or "") if province else "")
        return await self._select(
            "SELECT * FROM parcels WHERE code LIKE ? ORDER BY code", (f"{prefix}%",)
        )

    async def list_all(self, limit: int = 100, offset: int = 0) -> list[Parcel]:
        return await self._select(
            "SELECT * FROM parcels ORDER BY code LIMIT ? OFFSET ?", (limit, offset)
        )

    async def count(self) -> int:
        async with self.database.connection() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM parcels")
            return (await cursor.fetchone())[0]

    async def count_by_status(self) -> dict[ParcelStatus, int]:
        async with self.database.connection() as conn:
            cursor = await conn.execute(
                "SELECT status, COUNT(*) FROM parcels GROUP BY status"
            )
            return {ParcelStatus(row[0]): row[1] for row in await cursor.fetchall()}

    async def _select(self, query: str, params: tuple) -> list[Parcel]:
        async with self.database.connection() as conn:
            cursor = await conn.execute(query, params)
            return [row_to_parcel(row) for row in await cursor.fetchall()]


class SQLiteTitlingRequestRepository(TitlingRequestRepositoryPort):
    """SQLite-backed titling request repository."""

    def __init__(self, database: SQLiteDatabase):
        self.database = database

    async def save(self, request: TitlingRequest) -> TitlingRequest:
        values = (
            request.requester_id.value,
            request.requester_name,
            request.parcel_address,
            request.request_type.value,
            request.status.value,
            request.priority,
            json.dumps(list(request.documents)),
            request.case_file_number,
            _ts(request.registered_at),
            _ts(request.updated_at),
            request.notes,
        )
        async with self.database.connection() as conn:
            if request.version == 0:
                try:
                    await conn.execute(
                        """
                        INSERT INTO titling_requests
                        (requester_id, requester_name, parcel_address,
                         request_type, status, priority, documents,
                         case_file_number, registered_at, updated_at, notes,
                         code, version)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                        """,
                        (*values, request.code.value),
                    )
                except aiosqlite.IntegrityError as e:
                    raise ConflictError(
                        f"Titling request {request.code} already exists",
                        details={"code": request.code.value},
                    ) from e
            else:
                try:
                    cursor = await conn.execute(
                        """
                        UPDATE titling_requests SET
                            requester_id = ?, requester_name = ?,
                            parcel_address = ?, request_type = ?, status = ?,
                            priority = ?, documents = ?, case_file_number = ?,
                            registered_at = ?, updated_at = ?, notes = ?,
                            version = version + 1
                        WHERE code = ? AND version = ?
                        """,
                        (*values, request.code.value, request.version),
                    )
                except aiosqlite.IntegrityError as e:
                    raise ConflictError(
                        f"Case file {request.case_file_number} is already in use",
                        details={"case_file_number": request.case_file_number},
                    ) from e
                if cursor.rowcount == 0:
                    raise ConflictError(
                        f"Titling request {request.code} was modified concurrently "
                        f"(expected version {request.version})",
                        details={
                            "code": request.code.value,
                            "version": request.version,
                        },
                    )
            await conn.commit()
        return replace(request, version=request.version + 1)

    async def get_by_code(self, code: RequestCode) -> TitlingRequest | None:
        results = await self._select(
            "SELECT * FROM titling_requests WHERE code = ?", (code.value,)
        )
        return results[0] if results else None

    async def find_by_requester(
        self, requester_id: IdentityNumber
    ) -> list[TitlingRequest]:
        return await self._select(
            """
            SELECT * FROM titling_requests WHERE requester_id = ?
            ORDER BY registered_at DESC
            """,
            (requester_id.value,),
        )

    async def find_by_status(self, status: RequestStatus) -> list[TitlingRequest]:
        return await self._select(
            """
            SELECT * FROM titling_requests WHERE status = ?
            ORDER BY registered_at ASC
            """,
            (status.value,),
        )

    async def find_by_case_file(self, case_file_number: str) -> TitlingRequest | None:
        results = await self._select(
            "SELECT * FROM titling_requests WHERE case_file_number = ?",
            (case_file_number,),
        )
        return results[0] if results else None

    async def list_all(
        self, limit: int = 100, offset: int = 0
    ) -> list[TitlingRequest]:
        return await self._select(
            """
            SELECT * FROM titling_requests
            ORDER BY registered_at ASC LIMIT ? OFFSET ?
            """,
            (limit, offset),
        )

    async def count(self) -> int:
        async with self.database.connection() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM titling_requests")
            return (await cursor.fetchone())[0]

    async def count_by_status(self) -> dict[RequestStatus, int]:
        async with self.database.connection() as conn:
            cursor = await conn.execute(
                "SELECT status, COUNT(*) FROM titling_requests GROUP BY status"
            )
            return {RequestStatus(row[0]): row[1] for row in await cursor.fetchall()}

    async def count_by_type(self) -> dict[RequestType, int]:
        async with self.database.connection() as conn:
            cursor = await conn.execute(
                "SELECT request_type, COUNT(*) FROM titling_requests GROUP BY request_type"
            )
            return {RequestType(row[0]): row[1] for row in await cursor.fetchall()}

    async def next_request_number(self, year: int) -> int:
        return await self.database.next_sequence_value(REQUEST_SEQUENCE, year)

    async def next_case_file_number(self, year: int) -> int:
        return await self.database.next_sequence_value(CASE_FILE_SEQUENCE, year)

    async def _select(self, query: str, params: tuple) -> list[TitlingRequest]:
        async with self.database.connection() as conn:
            cursor = await conn.execute(query, params)
            return [row_to_request(row) for row in await cursor.fetchall()]


class SQLiteCitizenRepository(CitizenRepositoryPort):
    """SQLite-backed citizen repository."""

    def __init__(self, database: SQLiteDatabase):
        self.database = database

    async def save(self, citizen: Citizen) -> Citizen:
        values = (
            citizen.given_names,
            citizen.surnames,
            citizen.birth_date.isoformat(),
            citizen.marital_status.value,
            citizen.sex.value,
            citizen.verification_status.value,
            _ts(citizen.registered_at),
            citizen.address,
            citizen.phone,
            citizen.email,
            _ts(citizen.updated_at),
            _ts(citizen.last_verified_at),
            citizen.notes,
        )
        async with self.database.connection() as conn:
            if citizen.version == 0:
                try:
                    await conn.execute(
                        """
                        INSERT INTO citizens
                        (given_names, surnames, birth_date, marital_status, sex,
                         verification_status, registered_at, address, phone,
                         email, updated_at, last_verified_at, notes,
                         identity, version)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                        """,
                        (*values, citizen.identity.value),
                    )
                except aiosqlite.IntegrityError as e:
                    raise ConflictError(
                        f"Citizen {citizen.identity.masked} already exists",
                        details={"identity": citizen.identity.masked},
                    ) from e
            else:
                cursor = await conn.execute(
                    """
                    UPDATE citizens SET
                        given_names = ?, surnames = ?, birth_date = ?,
                        marital_status = ?, sex = ?, verification_status = ?,
                        registered_at = ?, address = ?, phone = ?, email = ?,
                        updated_at = ?, last_verified_at = ?, notes = ?,
                        version = version + 1
                    WHERE identity = ? AND version = ?
                    """,
                    (*values, citizen.identity.value, citizen.version),
                )
                if cursor.rowcount == 0:
                    raise ConflictError(
                        f"Citizen {citizen.identity.masked} was modified concurrently",
                        details={
                            "identity": citizen.identity.masked,
                            "version": citizen.version,
                        },
                    )
            await conn.commit()
        return replace(citizen, version=citizen.version + 1)

    async def get_by_identity(self, identity: IdentityNumber) -> Citizen | None:
        results = await self._select(
            "SELECT * FROM citizens WHERE identity = ?", (identity.value,)
        )
        return results[0] if results else None

    async def exists(self, identity: IdentityNumber) -> bool:
        async with self.database.connection() as conn:
            cursor = await conn.execute(
                "SELECT 1 FROM citizens WHERE identity = ?", (identity.value,)
            )
            return await cursor.fetchone() is not None

    async def find_by_verification_status(
        self, status: VerificationStatus
    ) -> list[Citizen]:
        return await self._select(
            "SELECT * FROM citizens WHERE verification_status = ? ORDER BY surnames",
            (status.value,),
        )

    async def list_all(self, limit: int = 100, offset: int = 0) -> list[Citizen]:
        return await self._select(
            "SELECT * FROM citizens ORDER BY surnames, given_names LIMIT ? OFFSET ?",
            (limit, offset),
        )

    async def count(self) -> int:
        async with self.database.connection() as conn:
            cursor = await conn.execute("SELECT COUNT(*) FROM citizens")
            return (await cursor.fetchone())[0]

    async def _select(self, query: str, params: tuple) -> list[Citizen]:
        async with self.database.connection() as conn:
            cursor = await conn.execute(query, params)
            return [row_to_citizen(row) for row in await cursor.fetchall()]

"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Sequence

from backend.domain.models import (
    CancelStatus,
    ChargeBreakdown,
    EntranceFeeType,
    EquipmentLine,
    Holiday,
    PaymentStatus,
    PriceType,
    RoomRateTable,
    SlotPrices,
    TimeSlot,
    UsageSelection,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


_SLOT_COLUMNS: dict[TimeSlot, str] = {
    TimeSlot.MORNING: "use_morning",
    TimeSlot.AFTERNOON: "use_afternoon",
    TimeSlot.EVENING: "use_evening",
}

_WEEKEND_COLUMNS = (
    "weekend_price_morning",
    "weekend_price_afternoon",
    "weekend_price_evening",
    "weekend_extension_price_midday",
    "weekend_extension_price_evening",
)


class SlotCapacityExceeded(Exception):
    """Raised inside the booking transaction when a recount finds a full slot."""

    def __init__(self, room_id: int, usage_date: date, slot: Optional[TimeSlot]) -> None:
        self.room_id = room_id
        self.usage_date = usage_date
        self.slot = slot
        where = slot.value if slot is not None else "any slot"
        super().__init__(f"Room {room_id} has no remaining capacity on {usage_date} ({where})")


@dataclass(frozen=True)
class EquipmentRecord:
    equipment_id: int
    name: str
    category: str
    price_type: PriceType
    unit_price: int
    max_quantity: int
    enabled: bool


@dataclass(frozen=True)
class UsageEquipmentRecord:
    equipment_id: int
    quantity: int
    slot_count: int
    line_amount: int
    price_type: PriceType
    unit_price: int

    def to_line(self) -> EquipmentLine:
        return EquipmentLine(
            equipment_id=self.equipment_id,
            price_type=self.price_type,
            unit_price=self.unit_price,
            quantity=self.quantity,
            slot_count=self.slot_count,
        )


@dataclass(frozen=True)
class UsageRecord:
    usage_id: int
    application_id: int
    selection: UsageSelection
    charges: ChargeBreakdown


@dataclass(frozen=True)
class ApplicationRecord:
    application_id: int
    applicant_representative: str
    applicant_email: str
    event_name: str
    entrance_fee_type: EntranceFeeType
    entrance_fee_amount: int
    ticket_multiplier: float
    total_amount: int
    payment_status: PaymentStatus
    cancel_status: CancelStatus
    cancelled_at: Optional[datetime]
    cancellation_fee: int


@dataclass(frozen=True)
class NewApplication:
    applicant_representative: str
    applicant_email: str
    event_name: str
    entrance_fee_type: EntranceFeeType
    entrance_fee_amount: int
    ticket_multiplier: float
    total_amount: int


@dataclass(frozen=True)
class NewUsage:
    selection: UsageSelection
    charges: ChargeBreakdown
    equipment: Sequence[tuple[EquipmentLine, int]] = field(default_factory=tuple)


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_timeout_seconds,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _immediate_transaction(self) -> Iterator[sqlite3.Cursor]:
        """Hold SQLite's reserved write lock from the first read to commit."""
        conn = self._connect()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn.cursor()
            except Exception:
                conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")
        finally:
            conn.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        base_price_morning INTEGER NOT NULL CHECK (base_price_morning >= 0),
                        base_price_afternoon INTEGER NOT NULL CHECK (base_price_afternoon >= 0),
                        base_price_evening INTEGER NOT NULL CHECK (base_price_evening >= 0),
                        extension_price_midday INTEGER NOT NULL CHECK (extension_price_midday >= 0),
                        extension_price_evening INTEGER NOT NULL CHECK (extension_price_evening >= 0),
                        weekend_price_morning INTEGER CHECK (weekend_price_morning >= 0),
                        weekend_price_afternoon INTEGER CHECK (weekend_price_afternoon >= 0),
                        weekend_price_evening INTEGER CHECK (weekend_price_evening >= 0),
                        weekend_extension_price_midday INTEGER
                            CHECK (weekend_extension_price_midday >= 0),
                        weekend_extension_price_evening INTEGER
                            CHECK (weekend_extension_price_evening >= 0),
                        ac_price_per_hour INTEGER NOT NULL DEFAULT 0 CHECK (ac_price_per_hour >= 0),
                        max_reservation_count INTEGER NOT NULL DEFAULT 1,
                        is_active INTEGER NOT NULL DEFAULT 1 CHECK (is_active IN (0,1)),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Equipment (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        category TEXT NOT NULL DEFAULT 'other',
                        name TEXT NOT NULL,
                        price_type TEXT NOT NULL CHECK (price_type IN ('per_slot','flat','free')),
                        unit_price INTEGER NOT NULL DEFAULT 0 CHECK (unit_price >= 0),
                        max_quantity INTEGER NOT NULL DEFAULT 1,
                        enabled INTEGER NOT NULL DEFAULT 1 CHECK (enabled IN (0,1))
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Holidays (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        date TEXT NOT NULL UNIQUE,
                        name TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ClosedDates (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        date TEXT NOT NULL UNIQUE,
                        reason TEXT
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Applications (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        applicant_representative TEXT NOT NULL,
                        applicant_email TEXT NOT NULL,
                        event_name TEXT NOT NULL,
                        entrance_fee_type TEXT NOT NULL CHECK (entrance_fee_type IN ('free','paid')),
                        entrance_fee_amount INTEGER NOT NULL DEFAULT 0,
                        ticket_multiplier REAL NOT NULL DEFAULT 1.0,
                        total_amount INTEGER NOT NULL DEFAULT 0,
                        payment_status TEXT NOT NULL DEFAULT 'unpaid',
                        cancel_status TEXT NOT NULL DEFAULT 'none',
                        cancelled_at TEXT,
                        cancellation_fee INTEGER NOT NULL DEFAULT 0,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Usages (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        application_id INTEGER NOT NULL,
                        room_id INTEGER NOT NULL,
                        date TEXT NOT NULL,
                        use_morning INTEGER NOT NULL DEFAULT 0,
                        use_afternoon INTEGER NOT NULL DEFAULT 0,
                        use_evening INTEGER NOT NULL DEFAULT 0,
                        use_midday_extension INTEGER NOT NULL DEFAULT 0,
                        use_evening_extension INTEGER NOT NULL DEFAULT 0,
                        ac_requested INTEGER NOT NULL DEFAULT 0,
                        ac_hours REAL,
                        room_base_charge_before_multiplier INTEGER NOT NULL DEFAULT 0,
                        room_charge_after_multiplier INTEGER NOT NULL DEFAULT 0,
                        equipment_charge INTEGER NOT NULL DEFAULT 0,
                        ac_charge INTEGER NOT NULL DEFAULT 0,
                        subtotal_amount INTEGER NOT NULL DEFAULT 0,
                        FOREIGN KEY (application_id) REFERENCES Applications(id),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS UsageEquipment (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        usage_id INTEGER NOT NULL,
                        equipment_id INTEGER NOT NULL,
                        quantity INTEGER NOT NULL,
                        slot_count INTEGER NOT NULL,
                        line_amount INTEGER NOT NULL,
                        FOREIGN KEY (usage_id) REFERENCES Usages(id),
                        FOREIGN KEY (equipment_id) REFERENCES Equipment(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_usages_room_date_slots
                    ON Usages(room_id, date, use_morning, use_afternoon, use_evening);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_usages_application
                    ON Usages(application_id);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Seed a small room and equipment catalogue only when tables are empty."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Rooms;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo data already present; skipping seed")
                    return
            self.create_room(
                name="Multipurpose Hall",
                weekday=SlotPrices(15000, 20000, 18000, 3000, 3000),
                weekend=SlotPrices(18000, 24000, 21600, 3600, 3600),
                ac_price_per_hour=1000,
            )
            self.create_room(
                name="Conference Room A",
                weekday=SlotPrices(5000, 6000, 5500, 1000, 1000),
                weekend=None,
                ac_price_per_hour=300,
                max_reservation_count=2,
            )
            self.create_room(
                name="Practice Studio",
                weekday=SlotPrices(3000, 4000, 3500, 800, 800),
                weekend=SlotPrices(3600, 4800, 4200, 900, 900),
                ac_price_per_hour=200,
            )
            self.create_equipment("Grand piano", PriceType.PER_SLOT, 5000, 1, category="stage")
            self.create_equipment("Wireless microphone", PriceType.PER_SLOT, 500, 4, category="sound")
            self.create_equipment("Spotlight set", PriceType.FLAT, 3000, 2, category="lighting")
            self.create_equipment("Folding chairs", PriceType.FREE, 0, 200, category="other")
            logger.info("Demo catalogue seeded")
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    # -- rooms -------------------------------------------------------------

    def create_room(
        self,
        name: str,
        weekday: SlotPrices,
        weekend: Optional[SlotPrices],
        ac_price_per_hour: int,
        max_reservation_count: int = 1,
        is_active: bool = True,
    ) -> int:
        weekend_values = (
            (
                weekend.morning,
                weekend.afternoon,
                weekend.evening,
                weekend.midday_extension,
                weekend.evening_extension,
            )
            if weekend is not None
            else (None, None, None, None, None)
        )
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Rooms (
                    name,
                    base_price_morning,
                    base_price_afternoon,
                    base_price_evening,
                    extension_price_midday,
                    extension_price_evening,
                    weekend_price_morning,
                    weekend_price_afternoon,
                    weekend_price_evening,
                    weekend_extension_price_midday,
                    weekend_extension_price_evening,
                    ac_price_per_hour,
                    max_reservation_count,
                    is_active
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    name,
                    weekday.morning,
                    weekday.afternoon,
                    weekday.evening,
                    weekday.midday_extension,
                    weekday.evening_extension,
                    *weekend_values,
                    ac_price_per_hour,
                    max_reservation_count,
                    int(is_active),
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def set_room_active(self, room_id: int, is_active: bool) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE Rooms SET is_active = ? WHERE id = ?;",
                (int(is_active), room_id),
            )
            conn.commit()

    @staticmethod
    def _row_to_rate_table(row: sqlite3.Row) -> RoomRateTable:
        weekday = SlotPrices(
            morning=int(row["base_price_morning"]),
            afternoon=int(row["base_price_afternoon"]),
            evening=int(row["base_price_evening"]),
            midday_extension=int(row["extension_price_midday"]),
            evening_extension=int(row["extension_price_evening"]),
        )
        weekend: Optional[SlotPrices] = None
        if any(row[column] is not None for column in _WEEKEND_COLUMNS):
            # Unset weekend columns fall back to the weekday value.
            fallback = (
                weekday.morning,
                weekday.afternoon,
                weekday.evening,
                weekday.midday_extension,
                weekday.evening_extension,
            )
            weekend = SlotPrices(
                *(
                    int(row[column]) if row[column] is not None else default
                    for column, default in zip(_WEEKEND_COLUMNS, fallback)
                )
            )
        return RoomRateTable(
            room_id=int(row["id"]),
            name=str(row["name"]),
            weekday=weekday,
            weekend=weekend,
            ac_price_per_hour=int(row["ac_price_per_hour"]),
            max_reservation_count=int(row["max_reservation_count"]),
            is_active=bool(row["is_active"]),
        )

    def get_room_rate_table(self, room_id: int) -> Optional[RoomRateTable]:
        with self._connect() as conn:
            return self._fetch_rate_table(conn.cursor(), room_id)

    def _fetch_rate_table(self, cursor: sqlite3.Cursor, room_id: int) -> Optional[RoomRateTable]:
        cursor.execute("SELECT * FROM Rooms WHERE id = ?;", (room_id,))
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_rate_table(row)

    def list_rooms(self) -> List[RoomRateTable]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Rooms ORDER BY id ASC;")
            return [self._row_to_rate_table(row) for row in cursor.fetchall()]

    # -- equipment ---------------------------------------------------------

    def create_equipment(
        self,
        name: str,
        price_type: PriceType,
        unit_price: int,
        max_quantity: int,
        category: str = "other",
        enabled: bool = True,
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Equipment (category, name, price_type, unit_price, max_quantity, enabled)
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (category, name, PriceType(price_type).value, unit_price, max_quantity, int(enabled)),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def get_equipment_by_ids(self, equipment_ids: Sequence[int]) -> dict[int, EquipmentRecord]:
        if not equipment_ids:
            return {}
        unique_ids = sorted(set(equipment_ids))
        placeholders = ",".join("?" for _ in unique_ids)
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT id, name, category, price_type, unit_price, max_quantity, enabled
                FROM Equipment
                WHERE id IN ({placeholders});
                """,
                tuple(unique_ids),
            )
            return {
                int(row["id"]): EquipmentRecord(
                    equipment_id=int(row["id"]),
                    name=str(row["name"]),
                    category=str(row["category"]),
                    price_type=PriceType(row["price_type"]),
                    unit_price=int(row["unit_price"]),
                    max_quantity=int(row["max_quantity"]),
                    enabled=bool(row["enabled"]),
                )
                for row in cursor.fetchall()
            }

    # -- calendar ----------------------------------------------------------

    def add_holiday(self, holiday_date: date, name: str) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO Holidays (date, name) VALUES (?, ?);",
                (holiday_date.isoformat(), name),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def get_holiday(self, holiday_date: date) -> Optional[Holiday]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT date, name FROM Holidays WHERE date = ?;",
                (holiday_date.isoformat(),),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return Holiday(date=date.fromisoformat(row["date"]), name=str(row["name"]))

    def list_holidays(self, year: int) -> List[Holiday]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT date, name FROM Holidays
                WHERE date BETWEEN ? AND ?
                ORDER BY date ASC;
                """,
                (f"{year:04d}-01-01", f"{year:04d}-12-31"),
            )
            return [
                Holiday(date=date.fromisoformat(row["date"]), name=str(row["name"]))
                for row in cursor.fetchall()
            ]

    def add_closed_date(self, closed_date: date, reason: Optional[str] = None) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO ClosedDates (date, reason) VALUES (?, ?);",
                (closed_date.isoformat(), reason),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def is_closed_date(self, target: date) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT COUNT(*) AS count FROM ClosedDates WHERE date = ?;",
                (target.isoformat(),),
            )
            return int(cursor.fetchone()["count"]) > 0

    def list_closed_dates(self, start: date, end: date) -> set[date]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT date FROM ClosedDates WHERE date BETWEEN ? AND ?;",
                (start.isoformat(), end.isoformat()),
            )
            return {date.fromisoformat(row["date"]) for row in cursor.fetchall()}

    # -- inventory ---------------------------------------------------------

    @staticmethod
    def _count_slot(
        cursor: sqlite3.Cursor,
        room_id: int,
        usage_date: date,
        slot: TimeSlot,
        exclude_application_id: Optional[int],
    ) -> int:
        column = _SLOT_COLUMNS[TimeSlot(slot)]
        query = f"""
            SELECT COUNT(DISTINCT u.application_id) AS count
            FROM Usages AS u
            INNER JOIN Applications AS a ON a.id = u.application_id
            WHERE u.room_id = ?
              AND u.date = ?
              AND u.{column} = 1
              AND a.cancel_status = 'none'
        """
        params: list[object] = [room_id, usage_date.isoformat()]
        if exclude_application_id is not None:
            query += " AND u.application_id != ?"
            params.append(exclude_application_id)
        cursor.execute(query, tuple(params))
        return int(cursor.fetchone()["count"])

    def count_bookings_by_slot(
        self,
        room_id: int,
        usage_date: date,
        slots: Sequence[TimeSlot],
        exclude_application_id: Optional[int] = None,
    ) -> dict[TimeSlot, int]:
        """Count distinct non-cancelled applications occupying each slot."""
        with self._connect() as conn:
            cursor = conn.cursor()
            return {
                TimeSlot(slot): self._count_slot(
                    cursor, room_id, usage_date, slot, exclude_application_id
                )
                for slot in slots
            }

    def count_bookings_for_range(
        self,
        room_id: int,
        start: date,
        end: date,
    ) -> dict[date, dict[TimeSlot, int]]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    u.date,
                    COUNT(DISTINCT CASE WHEN u.use_morning = 1 THEN u.application_id END) AS morning,
                    COUNT(DISTINCT CASE WHEN u.use_afternoon = 1 THEN u.application_id END) AS afternoon,
                    COUNT(DISTINCT CASE WHEN u.use_evening = 1 THEN u.application_id END) AS evening
                FROM Usages AS u
                INNER JOIN Applications AS a ON a.id = u.application_id
                WHERE u.room_id = ?
                  AND u.date BETWEEN ? AND ?
                  AND a.cancel_status = 'none'
                GROUP BY u.date;
                """,
                (room_id, start.isoformat(), end.isoformat()),
            )
            return {
                date.fromisoformat(row["date"]): {
                    TimeSlot.MORNING: int(row["morning"]),
                    TimeSlot.AFTERNOON: int(row["afternoon"]),
                    TimeSlot.EVENING: int(row["evening"]),
                }
                for row in cursor.fetchall()
            }

    # -- applications ------------------------------------------------------

    def create_application_with_usages(
        self,
        application: NewApplication,
        usages: Sequence[NewUsage],
        default_max_reservation_count: int = 1,
    ) -> int:
        """Insert an application and its usages atomically.

        Capacity is recounted for every usage while the write lock is held, so
        two concurrent requests cannot both take the last unit of a slot. A
        full slot aborts the whole application with `SlotCapacityExceeded`.
        """
        with self._immediate_transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO Applications (
                    applicant_representative,
                    applicant_email,
                    event_name,
                    entrance_fee_type,
                    entrance_fee_amount,
                    ticket_multiplier,
                    total_amount
                )
                VALUES (?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    application.applicant_representative,
                    application.applicant_email,
                    application.event_name,
                    EntranceFeeType(application.entrance_fee_type).value,
                    application.entrance_fee_amount,
                    application.ticket_multiplier,
                    application.total_amount,
                ),
            )
            application_id = int(cursor.lastrowid)

            for usage in usages:
                selection = usage.selection
                self._assert_capacity(
                    cursor,
                    selection,
                    application_id,
                    default_max_reservation_count,
                )
                usage_id = self._insert_usage(cursor, application_id, usage)
                if usage.equipment:
                    cursor.executemany(
                        """
                        INSERT INTO UsageEquipment (
                            usage_id, equipment_id, quantity, slot_count, line_amount
                        )
                        VALUES (?, ?, ?, ?, ?);
                        """,
                        [
                            (usage_id, line.equipment_id, line.quantity, line.slot_count, amount)
                            for line, amount in usage.equipment
                        ],
                    )
        return application_id

    def _assert_capacity(
        self,
        cursor: sqlite3.Cursor,
        selection: UsageSelection,
        application_id: int,
        default_max_reservation_count: int,
    ) -> None:
        rate_table = self._fetch_rate_table(cursor, selection.room_id)
        if rate_table is None or not rate_table.is_active:
            raise SlotCapacityExceeded(selection.room_id, selection.date, None)
        max_count = rate_table.max_reservation_count or default_max_reservation_count
        for slot in selection.requested_slots():
            # Usages of this same application never compete with each other.
            current = self._count_slot(
                cursor, selection.room_id, selection.date, slot, application_id
            )
            if current >= max_count:
                raise SlotCapacityExceeded(selection.room_id, selection.date, slot)

    @staticmethod
    def _insert_usage(cursor: sqlite3.Cursor, application_id: int, usage: NewUsage) -> int:
        selection = usage.selection
        charges = usage.charges
        cursor.execute(
            """
            INSERT INTO Usages (
                application_id,
                room_id,
                date,
                use_morning,
                use_afternoon,
                use_evening,
                use_midday_extension,
                use_evening_extension,
                ac_requested,
                ac_hours,
                room_base_charge_before_multiplier,
                room_charge_after_multiplier,
                equipment_charge,
                ac_charge,
                subtotal_amount
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                application_id,
                selection.room_id,
                selection.date.isoformat(),
                int(selection.use_morning),
                int(selection.use_afternoon),
                int(selection.use_evening),
                int(selection.use_midday_extension),
                int(selection.use_evening_extension),
                int(selection.ac_requested),
                selection.ac_hours,
                charges.room_charge_before_multiplier,
                charges.room_charge_after_multiplier,
                charges.equipment_charge,
                charges.ac_charge,
                charges.subtotal,
            ),
        )
        return int(cursor.lastrowid)

    @staticmethod
    def _row_to_application(row: sqlite3.Row) -> ApplicationRecord:
        cancelled_at = row["cancelled_at"]
        return ApplicationRecord(
            application_id=int(row["id"]),
            applicant_representative=str(row["applicant_representative"]),
            applicant_email=str(row["applicant_email"]),
            event_name=str(row["event_name"]),
            entrance_fee_type=EntranceFeeType(row["entrance_fee_type"]),
            entrance_fee_amount=int(row["entrance_fee_amount"]),
            ticket_multiplier=float(row["ticket_multiplier"]),
            total_amount=int(row["total_amount"]),
            payment_status=PaymentStatus(row["payment_status"]),
            cancel_status=CancelStatus(row["cancel_status"]),
            cancelled_at=datetime.fromisoformat(cancelled_at) if cancelled_at else None,
            cancellation_fee=int(row["cancellation_fee"]),
        )

    def get_application(self, application_id: int) -> Optional[ApplicationRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Applications WHERE id = ?;", (application_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return self._row_to_application(row)

    @staticmethod
    def _row_to_usage(row: sqlite3.Row) -> UsageRecord:
        ac_hours = row["ac_hours"]
        return UsageRecord(
            usage_id=int(row["id"]),
            application_id=int(row["application_id"]),
            selection=UsageSelection(
                room_id=int(row["room_id"]),
                date=date.fromisoformat(row["date"]),
                use_morning=bool(row["use_morning"]),
                use_afternoon=bool(row["use_afternoon"]),
                use_evening=bool(row["use_evening"]),
                use_midday_extension=bool(row["use_midday_extension"]),
                use_evening_extension=bool(row["use_evening_extension"]),
                ac_requested=bool(row["ac_requested"]),
                ac_hours=float(ac_hours) if ac_hours is not None else None,
            ),
            charges=ChargeBreakdown(
                room_charge_before_multiplier=int(row["room_base_charge_before_multiplier"]),
                room_charge_after_multiplier=int(row["room_charge_after_multiplier"]),
                equipment_charge=int(row["equipment_charge"]),
                ac_charge=int(row["ac_charge"]),
                subtotal=int(row["subtotal_amount"]),
            ),
        )

    def list_usages(self, application_id: int) -> List[UsageRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM Usages WHERE application_id = ? ORDER BY date ASC, id ASC;",
                (application_id,),
            )
            return [self._row_to_usage(row) for row in cursor.fetchall()]

    def get_usage(self, usage_id: int) -> Optional[UsageRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM Usages WHERE id = ?;", (usage_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return self._row_to_usage(row)

    def list_usage_equipment(self, usage_id: int) -> List[UsageEquipmentRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT ue.equipment_id, ue.quantity, ue.slot_count, ue.line_amount,
                       e.price_type, e.unit_price
                FROM UsageEquipment AS ue
                INNER JOIN Equipment AS e ON e.id = ue.equipment_id
                WHERE ue.usage_id = ?
                ORDER BY ue.id ASC;
                """,
                (usage_id,),
            )
            return [
                UsageEquipmentRecord(
                    equipment_id=int(row["equipment_id"]),
                    quantity=int(row["quantity"]),
                    slot_count=int(row["slot_count"]),
                    line_amount=int(row["line_amount"]),
                    price_type=PriceType(row["price_type"]),
                    unit_price=int(row["unit_price"]),
                )
                for row in cursor.fetchall()
            ]

    @staticmethod
    def _write_charges(
        cursor: sqlite3.Cursor,
        application_id: int,
        charges_by_usage: Mapping[int, ChargeBreakdown],
        total_amount: int,
    ) -> None:
        cursor.executemany(
            """
            UPDATE Usages
            SET room_base_charge_before_multiplier = ?,
                room_charge_after_multiplier = ?,
                equipment_charge = ?,
                ac_charge = ?,
                subtotal_amount = ?
            WHERE id = ? AND application_id = ?;
            """,
            [
                (
                    charges.room_charge_before_multiplier,
                    charges.room_charge_after_multiplier,
                    charges.equipment_charge,
                    charges.ac_charge,
                    charges.subtotal,
                    usage_id,
                    application_id,
                )
                for usage_id, charges in charges_by_usage.items()
            ],
        )
        cursor.execute(
            "UPDATE Applications SET total_amount = ? WHERE id = ?;",
            (total_amount, application_id),
        )

    def update_usage_ac_hours(
        self,
        usage_id: int,
        ac_hours: Optional[float],
        application_id: int,
        charges_by_usage: Mapping[int, ChargeBreakdown],
        total_amount: int,
    ) -> None:
        """Store recorded AC hours with the charges they produce, atomically."""
        with self._immediate_transaction() as cursor:
            cursor.execute(
                "UPDATE Usages SET ac_hours = ? WHERE id = ? AND application_id = ?;",
                (ac_hours, usage_id, application_id),
            )
            self._write_charges(cursor, application_id, charges_by_usage, total_amount)

    def save_recalculated_charges(
        self,
        application_id: int,
        charges_by_usage: Mapping[int, ChargeBreakdown],
        total_amount: int,
    ) -> None:
        """Persist per-usage breakdowns and the application total together."""
        with self._immediate_transaction() as cursor:
            self._write_charges(cursor, application_id, charges_by_usage, total_amount)

    def update_payment_status(self, application_id: int, payment_status: PaymentStatus) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE Applications SET payment_status = ? WHERE id = ?;",
                (PaymentStatus(payment_status).value, application_id),
            )
            conn.commit()

    def mark_application_cancelled(
        self,
        application_id: int,
        cancelled_at: datetime,
        cancellation_fee: int,
        payment_status: PaymentStatus,
    ) -> bool:
        """Flip an active application to cancelled; False if it already was."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE Applications
                SET cancel_status = 'cancelled',
                    cancelled_at = ?,
                    cancellation_fee = ?,
                    payment_status = ?
                WHERE id = ? AND cancel_status = 'none';
                """,
                (
                    cancelled_at.isoformat(),
                    cancellation_fee,
                    PaymentStatus(payment_status).value,
                    application_id,
                ),
            )
            conn.commit()
            return cursor.rowcount == 1

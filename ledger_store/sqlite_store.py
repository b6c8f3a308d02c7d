"""
SQLite ledger store.

Creates and manages the ledger tables:
- customers: customer reference data
- memos: trip charge records keyed by memo_no
- invoices: invoice headers (derived totals are stored as the last-saved snapshot)
- invoice_memos: memo_no (PRIMARY KEY) -> invoice_id link, one row per linked memo
- invoice_sequence: last invoice number handed out per year

Unlike the mock and HTTP stores, linkage is enforced at write time: invoice_memos
is keyed by memo_no, so a second invoice claiming a memo fails with
MemoAlreadyInvoiced even when both editors believed the memo was free.
"""

import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Iterator, List, Optional, Union

from core.observability.logging import get_logger
from ledger_store.base import LedgerStore, current_year, format_invoice_number
from ledger_store.errors import (
    MemoAlreadyInvoiced,
    MemoLockedError,
    NotFound,
    StoreFailure,
)
from models.ledger import Customer, Invoice, InvoiceStatus, Memo, normalize_name


logger = get_logger(__name__)


class SqliteLedgerStore(LedgerStore):
    """Ledger store backed by a local SQLite file."""

    name = "sqlite"

    def __init__(self, db_path: Union[str, Path], invoice_prefix: str = "INV"):
        self.db_path = Path(db_path)
        self.invoice_prefix = invoice_prefix

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Connection with row factory; commits on success, rolls back on error."""
        try:
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise StoreFailure(f"Cannot open ledger database {self.db_path}: {e}")
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create the ledger tables if they do not exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS customers (
                    name TEXT PRIMARY KEY,
                    code TEXT,
                    phone TEXT,
                    address TEXT
                );

                CREATE TABLE IF NOT EXISTS memos (
                    memo_no TEXT PRIMARY KEY,
                    customer_name TEXT NOT NULL DEFAULT '',
                    customer_key TEXT NOT NULL DEFAULT '',
                    vehicle_no TEXT NOT NULL DEFAULT '',
                    operated_date TEXT,
                    total_amount TEXT NOT NULL DEFAULT '0.00',
                    balance TEXT NOT NULL DEFAULT '0.00'
                );

                CREATE INDEX IF NOT EXISTS idx_memos_customer
                ON memos(customer_key);

                CREATE TABLE IF NOT EXISTS invoices (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    invoice_no TEXT NOT NULL UNIQUE,
                    invoice_date TEXT,
                    customer_name TEXT NOT NULL DEFAULT '',
                    total_amount TEXT NOT NULL DEFAULT '0.00',
                    amount_paid TEXT NOT NULL DEFAULT '0.00',
                    balance TEXT NOT NULL DEFAULT '0.00',
                    status TEXT NOT NULL DEFAULT 'Draft',
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );

                CREATE TABLE IF NOT EXISTS invoice_memos (
                    memo_no TEXT PRIMARY KEY,
                    invoice_id INTEGER NOT NULL REFERENCES invoices(id) ON DELETE CASCADE,
                    position INTEGER NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_invoice_memos_invoice
                ON invoice_memos(invoice_id, position);

                CREATE TABLE IF NOT EXISTS invoice_sequence (
                    year INTEGER PRIMARY KEY,
                    last_value INTEGER NOT NULL
                );
            """)
        logger.info(f"Ledger database initialized: {self.db_path}")

    def seed_demo_data(self) -> None:
        """Insert the mock customers, memos and invoices unless memos already exist."""
        from ledger_store.mock_data import build_customers, build_invoices, build_memos

        with self._connect() as conn:
            if conn.execute("SELECT COUNT(*) FROM memos").fetchone()[0]:
                return
            memos = build_memos()
            for customer in build_customers():
                self._insert_customer(conn, customer)
            for memo in memos:
                self._insert_memo(conn, memo)
            for invoice in build_invoices(memos):
                self._insert_invoice(conn, invoice)

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _insert_customer(conn: sqlite3.Connection, customer: Customer) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO customers (name, code, phone, address) VALUES (?, ?, ?, ?)",
            (customer.name, customer.code, customer.phone, customer.address),
        )

    @staticmethod
    def _insert_memo(conn: sqlite3.Connection, memo: Memo) -> None:
        conn.execute(
            """
            INSERT OR REPLACE INTO memos
                (memo_no, customer_name, customer_key, vehicle_no, operated_date, total_amount, balance)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                memo.memo_no,
                memo.customer_name,
                normalize_name(memo.customer_name),
                memo.vehicle_no,
                memo.operated_date.isoformat() if memo.operated_date else None,
                str(memo.total_amount),
                str(memo.balance),
            ),
        )

    def _insert_invoice(self, conn: sqlite3.Connection, invoice: Invoice) -> int:
        try:
            cur = conn.execute(
                """
                INSERT INTO invoices
                    (invoice_no, invoice_date, customer_name, total_amount, amount_paid, balance, status)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    invoice.invoice_no,
                    invoice.invoice_date.isoformat() if invoice.invoice_date else None,
                    invoice.customer_name,
                    str(invoice.total_amount),
                    str(invoice.amount_paid),
                    str(invoice.balance),
                    invoice.status.value,
                ),
            )
        except sqlite3.IntegrityError:
            raise StoreFailure(f"Invoice number {invoice.invoice_no} already exists", 409)
        invoice_id = cur.lastrowid
        self._link_memos(conn, invoice_id, invoice.memo_nos)
        return invoice_id

    @staticmethod
    def _link_memos(conn: sqlite3.Connection, invoice_id: int, memo_nos: List[str]) -> None:
        for position, memo_no in enumerate(memo_nos):
            try:
                conn.execute(
                    "INSERT INTO invoice_memos (memo_no, invoice_id, position) VALUES (?, ?, ?)",
                    (memo_no, invoice_id, position),
                )
            except sqlite3.IntegrityError:
                owner = conn.execute(
                    """
                    SELECT i.invoice_no FROM invoice_memos im
                    JOIN invoices i ON i.id = im.invoice_id
                    WHERE im.memo_no = ?
                    """,
                    (memo_no,),
                ).fetchone()
                raise MemoAlreadyInvoiced([memo_no], owner["invoice_no"] if owner else None)

    @staticmethod
    def _row_to_memo(row: sqlite3.Row) -> Memo:
        return Memo(
            memo_no=row["memo_no"],
            customer_name=row["customer_name"],
            vehicle_no=row["vehicle_no"],
            operated_date=row["operated_date"],
            total_amount=Decimal(row["total_amount"]),
            balance=Decimal(row["balance"]),
        )

    @staticmethod
    def _row_to_invoice(conn: sqlite3.Connection, row: sqlite3.Row) -> Invoice:
        memo_nos = [
            r["memo_no"] for r in conn.execute(
                "SELECT memo_no FROM invoice_memos WHERE invoice_id = ? ORDER BY position",
                (row["id"],),
            )
        ]
        return Invoice(
            id=row["id"],
            invoice_no=row["invoice_no"],
            invoice_date=row["invoice_date"],
            customer_name=row["customer_name"],
            memo_nos=memo_nos,
            total_amount=Decimal(row["total_amount"]),
            amount_paid=Decimal(row["amount_paid"]),
            balance=Decimal(row["balance"]),
            status=InvoiceStatus(row["status"]),
        )

    def _run(self, operation: str, fn):
        """Run ``fn(conn)`` in one transaction, mapping sqlite errors to StoreFailure."""
        try:
            with self._connect() as conn:
                return fn(conn)
        except sqlite3.Error as e:
            logger.error(f"Ledger database error during {operation}: {e}")
            raise StoreFailure(f"Ledger database error during {operation}: {e}")

    # =========================================================================
    # Memos
    # =========================================================================

    async def list_memos(self) -> List[Memo]:
        return self._run("list_memos", lambda conn: [
            self._row_to_memo(r) for r in conn.execute("SELECT * FROM memos ORDER BY memo_no")
        ])

    async def get_memo(self, memo_no: str) -> Optional[Memo]:
        def fetch(conn):
            row = conn.execute("SELECT * FROM memos WHERE memo_no = ?", (memo_no,)).fetchone()
            return self._row_to_memo(row) if row else None
        return self._run("get_memo", fetch)

    async def delete_memo(self, memo_no: str) -> None:
        def delete(conn):
            if not conn.execute("SELECT 1 FROM memos WHERE memo_no = ?", (memo_no,)).fetchone():
                raise NotFound("Memo", memo_no)
            owner = conn.execute(
                """
                SELECT i.invoice_no FROM invoice_memos im
                JOIN invoices i ON i.id = im.invoice_id
                WHERE im.memo_no = ?
                """,
                (memo_no,),
            ).fetchone()
            if owner:
                raise MemoLockedError(memo_no, owner["invoice_no"], "delete")
            conn.execute("DELETE FROM memos WHERE memo_no = ?", (memo_no,))
        self._run("delete_memo", delete)
        logger.info(f"Memo deleted: {memo_no}")

    def add_memo(self, memo: Memo) -> None:
        """Seed helper for the out-of-scope trip-entry side."""
        self._run("add_memo", lambda conn: self._insert_memo(conn, memo))

    async def list_uninvoiced_memos_for_customer(self, customer_name: str) -> List[Memo]:
        return self._run("list_uninvoiced_memos_for_customer", lambda conn: [
            self._row_to_memo(r) for r in conn.execute(
                """
                SELECT m.* FROM memos m
                LEFT JOIN invoice_memos im ON im.memo_no = m.memo_no
                WHERE m.customer_key = ? AND im.memo_no IS NULL
                ORDER BY m.memo_no
                """,
                (normalize_name(customer_name),),
            )
        ])

    # =========================================================================
    # Invoices
    # =========================================================================

    async def list_invoices(self) -> List[Invoice]:
        return self._run("list_invoices", lambda conn: [
            self._row_to_invoice(conn, r) for r in conn.execute("SELECT * FROM invoices ORDER BY id")
        ])

    async def get_invoice_by_id(self, invoice_id: int) -> Optional[Invoice]:
        def fetch(conn):
            row = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
            return self._row_to_invoice(conn, row) if row else None
        return self._run("get_invoice_by_id", fetch)

    async def create_invoice(self, draft: Invoice) -> Invoice:
        def create(conn):
            invoice_id = self._insert_invoice(conn, draft)
            row = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
            return self._row_to_invoice(conn, row)
        stored = self._run("create_invoice", create)
        logger.info(
            f"Invoice created: {stored.invoice_no}",
            extra_fields={"invoice_id": stored.id, "memo_count": len(stored.memo_nos)},
        )
        return stored

    async def update_invoice(self, invoice: Invoice) -> Invoice:
        def update(conn):
            row = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice.id,)).fetchone()
            if row is None:
                raise NotFound("Invoice", invoice.id)
            conn.execute(
                """
                UPDATE invoices SET
                    invoice_date = ?, customer_name = ?, total_amount = ?,
                    amount_paid = ?, balance = ?, status = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (
                    invoice.invoice_date.isoformat() if invoice.invoice_date else None,
                    invoice.customer_name,
                    str(invoice.total_amount),
                    str(invoice.amount_paid),
                    str(invoice.balance),
                    invoice.status.value,
                    invoice.id,
                ),
            )
            conn.execute("DELETE FROM invoice_memos WHERE invoice_id = ?", (invoice.id,))
            self._link_memos(conn, invoice.id, invoice.memo_nos)
            row = conn.execute("SELECT * FROM invoices WHERE id = ?", (invoice.id,)).fetchone()
            return self._row_to_invoice(conn, row)
        stored = self._run("update_invoice", update)
        logger.info(
            f"Invoice updated: {stored.invoice_no}",
            extra_fields={"invoice_id": stored.id, "memo_count": len(stored.memo_nos)},
        )
        return stored

    async def delete_invoice(self, invoice_id: int) -> None:
        def delete(conn):
            cur = conn.execute("DELETE FROM invoices WHERE id = ?", (invoice_id,))
            if cur.rowcount == 0:
                raise NotFound("Invoice", invoice_id)
        self._run("delete_invoice", delete)
        logger.info(f"Invoice deleted: #{invoice_id}")

    async def generate_invoice_number(self) -> str:
        year = current_year()

        def next_number(conn):
            row = conn.execute(
                "SELECT last_value FROM invoice_sequence WHERE year = ?", (year,)
            ).fetchone()
            value = (row["last_value"] if row else 0) + 1
            while conn.execute(
                "SELECT 1 FROM invoices WHERE invoice_no = ?",
                (format_invoice_number(self.invoice_prefix, year, value),),
            ).fetchone():
                value += 1
            conn.execute(
                "INSERT OR REPLACE INTO invoice_sequence (year, last_value) VALUES (?, ?)",
                (year, value),
            )
            return format_invoice_number(self.invoice_prefix, year, value)

        return self._run("generate_invoice_number", next_number)

    # =========================================================================
    # Customers
    # =========================================================================

    async def list_customers(self) -> List[Customer]:
        return self._run("list_customers", lambda conn: [
            Customer(name=r["name"], code=r["code"], phone=r["phone"], address=r["address"])
            for r in conn.execute("SELECT * FROM customers ORDER BY name")
        ])

"""Application settings.

Reads configuration from environment variables, loading a repo-root ``.env``
file first when one exists.

Environment variables:
- LEDGER_BACKEND: "memory" (mock data service), "sqlite" or "http"
- LEDGER_DB_PATH: SQLite file for the sqlite backend
- LEDGER_HTTP_URL / LEDGER_HTTP_TIMEOUT: remote ledger web app for the http backend
- LEDGER_SEED_DEMO: seed the memory/sqlite backend with demo memos ("1"/"0")
- LEDGER_LATENCY_MS: simulated latency of the memory backend
- INVOICE_NUMBER_PREFIX: prefix of generated invoice numbers (default "INV")
- PRINT_DELAY_MS / PRINT_RETURN_DELAY_MS: print-on-load timings
- PRINT_OUTPUT_DIR: where downloaded PDFs are written
- LOG_LEVEL / LOG_JSON: logging setup
- COMPANY_* / BANK_*: letterhead printed on invoices and memos
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


REPO_ROOT = Path(__file__).resolve().parent

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class Letterhead:
    """Company details printed on invoices and memos."""
    company_name: str = "SRI BALAJI TRANSPORT"
    address: str = "NO:3/96, Kumaran Kudil Annex 3rd Street, Thuraipakkam, Chennai-97"
    phone: str = "87789-92624, 97907-24160"
    email: str = "sbttransport.75@gmail.com"
    bank_name: str = "STATE BANK OF INDIA"
    bank_branch: str = "ELDAMS ROAD BRANCH ALWARPET"
    bank_account: str = "42804313699"
    bank_ifsc: str = "SBIN0002209"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration."""
    ledger_backend: str = "memory"
    ledger_db_path: Path = REPO_ROOT / "ledger.db"
    ledger_http_url: Optional[str] = None
    ledger_http_timeout: int = 30
    ledger_seed_demo: bool = True
    ledger_latency_ms: int = 0

    invoice_number_prefix: str = "INV"

    print_delay_ms: int = 300
    print_return_delay_ms: int = 100
    print_output_dir: Path = REPO_ROOT / "downloads"

    log_level: int = logging.INFO
    log_json: bool = False

    letterhead: Letterhead = field(default_factory=Letterhead)

    @property
    def print_delay(self) -> float:
        return self.print_delay_ms / 1000

    @property
    def print_return_delay(self) -> float:
        return self.print_return_delay_ms / 1000

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ValueError: If a variable is malformed or the backend is unknown
        """
        backend = os.getenv("LEDGER_BACKEND", "memory").strip().lower()
        if backend not in ("memory", "sqlite", "http"):
            raise ValueError(
                f"LEDGER_BACKEND must be one of memory, sqlite, http (got {backend!r})"
            )

        http_url = os.getenv("LEDGER_HTTP_URL") or None
        if backend == "http" and not http_url:
            raise ValueError(
                "LEDGER_HTTP_URL environment variable not set. "
                "Set it to the ledger web app endpoint when LEDGER_BACKEND=http"
            )

        level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ValueError(f"LOG_LEVEL {level_name!r} is not a logging level")

        defaults = Letterhead()
        letterhead = Letterhead(
            company_name=os.getenv("COMPANY_NAME", defaults.company_name),
            address=os.getenv("COMPANY_ADDRESS", defaults.address),
            phone=os.getenv("COMPANY_PHONE", defaults.phone),
            email=os.getenv("COMPANY_EMAIL", defaults.email),
            bank_name=os.getenv("BANK_NAME", defaults.bank_name),
            bank_branch=os.getenv("BANK_BRANCH", defaults.bank_branch),
            bank_account=os.getenv("BANK_ACCOUNT", defaults.bank_account),
            bank_ifsc=os.getenv("BANK_IFSC", defaults.bank_ifsc),
        )

        return cls(
            ledger_backend=backend,
            ledger_db_path=Path(os.getenv("LEDGER_DB_PATH", str(REPO_ROOT / "ledger.db"))),
            ledger_http_url=http_url,
            ledger_http_timeout=_env_int("LEDGER_HTTP_TIMEOUT", 30),
            ledger_seed_demo=_env_bool("LEDGER_SEED_DEMO", True),
            ledger_latency_ms=_env_int("LEDGER_LATENCY_MS", 0),
            invoice_number_prefix=os.getenv("INVOICE_NUMBER_PREFIX", "INV").strip() or "INV",
            print_delay_ms=_env_int("PRINT_DELAY_MS", 300),
            print_return_delay_ms=_env_int("PRINT_RETURN_DELAY_MS", 100),
            print_output_dir=Path(os.getenv("PRINT_OUTPUT_DIR", str(REPO_ROOT / "downloads"))),
            log_level=level,
            log_json=_env_bool("LOG_JSON", False),
            letterhead=letterhead,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings for the running process."""
    return Settings.from_env()


def build_store(settings: Optional[Settings] = None):
    """Create the ledger store selected by ``LEDGER_BACKEND``."""
    settings = settings or get_settings()

    if settings.ledger_backend == "sqlite":
        from ledger_store.sqlite_store import SqliteLedgerStore
        store = SqliteLedgerStore(settings.ledger_db_path, invoice_prefix=settings.invoice_number_prefix)
        store.init_db()
        if settings.ledger_seed_demo:
            store.seed_demo_data()
        return store

    if settings.ledger_backend == "http":
        from ledger_store.http_store import HttpLedgerStore, HttpStoreConfig
        return HttpLedgerStore(HttpStoreConfig(
            base_url=settings.ledger_http_url,
            timeout_seconds=settings.ledger_http_timeout,
        ))

    from ledger_store.memory import InMemoryLedgerStore
    return InMemoryLedgerStore.with_demo_data(
        seed=settings.ledger_seed_demo,
        invoice_prefix=settings.invoice_number_prefix,
        latency=settings.ledger_latency_ms / 1000,
    )

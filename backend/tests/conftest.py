"""
Shared pytest fixtures.

Settings are read once at import time, so the environment is pointed at a
throw-away SQLite file here, before any test module imports the app.
Every test starts from freshly created tables.
"""
import os
import sys
import tempfile
from decimal import Decimal

import pytest

# Ensure app package is importable when running pytest from project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

_tmp_db = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp_db.close()

os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_db.name}"
os.environ["DB_LOCK_TIMEOUT"] = "30"
os.environ["LOG_FILE"] = ""
os.environ["AUTH_ENABLED"] = "false"
os.environ["AUTH_TOKEN"] = "test-token"
os.environ["AUTH_EMAIL"] = "admin@example.com"
os.environ["TIMEZONE"] = "Asia/Kolkata"
os.environ["INVOICE_PREFIX"] = "INV"
os.environ["SL_INVOICE_PREFIX"] = "SL"
os.environ["SL_CATEGORIES"] = '{"sl_swasthik": true, "sl_laxmi": false}'
os.environ["ALLOWED_CATEGORY_NAMES"] = "laxmi_bookstore,swasthik_enterprises"
os.environ["LOW_STOCK_THRESHOLD"] = "10"

from sqlmodel import Session, SQLModel  # noqa: E402 – must import after env set

from backoffice.core.database import engine  # noqa: E402
from backoffice.core.security import ensure_default_admin, hash_token  # noqa: E402
from backoffice.models.admin import Admin  # noqa: E402
from backoffice.services import catalog  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    try:
        os.unlink(_tmp_db.name)
    except OSError:
        pass


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def admin_id(session) -> int:
    admin = ensure_default_admin(session)
    return admin.id


def make_admin(session: Session, username: str, token: str) -> int:
    admin = Admin(username=username, email=f"{username}@example.com", token_hash=hash_token(token))
    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin.id


@pytest.fixture
def other_admin_id(session) -> int:
    return make_admin(session, "cashier", "cashier-token")


@pytest.fixture
def store(session):
    """
    Two categories with one subcategory each, and a few products:

      laxmi_bookstore / notebooks:     notebook (100.00, 18 %, stock 5)
                                       pen      (10.00, 5 %, stock 50)
      swasthik_enterprises / oils:     oil      (250.00, 12 %, stock 20)
                                       + variants 500ml (140.00, stock 4), 1l (250.00, stock 2)
    """
    books = catalog.create_category(session, "laxmi_bookstore")
    goods = catalog.create_category(session, "swasthik_enterprises")
    notebooks = catalog.create_subcategory(session, books.id, "notebooks")
    oils = catalog.create_subcategory(session, goods.id, "oils")

    notebook = catalog.create_product(
        session, books.id, notebooks.id, "Notebook", "NB-001", Decimal("100.00"),
        gst_rate=Decimal("18"), stock=5, hsn="4820",
    )
    pen = catalog.create_product(
        session, books.id, notebooks.id, "Pen", "PEN-001", Decimal("10.00"),
        gst_rate=Decimal("5"), stock=50,
    )
    oil = catalog.create_product(
        session, goods.id, oils.id, "Coconut Oil", "OIL-001", Decimal("250.00"),
        gst_rate=Decimal("12"), stock=20, unit="bottle",
    )
    small = catalog.create_variant(session, oil.id, "Volume", "500ml", Decimal("140.00"), "OIL-500", stock=4)
    large = catalog.create_variant(session, oil.id, "Volume", "1l", Decimal("250.00"), "OIL-1L", stock=2)

    return {
        "books": books.id,
        "goods": goods.id,
        "notebooks": notebooks.id,
        "oils": oils.id,
        "notebook": notebook.id,
        "pen": pen.id,
        "oil": oil.id,
        "oil_500": small.id,
        "oil_1l": large.id,
    }

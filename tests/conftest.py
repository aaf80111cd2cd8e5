import pytest
import os
import tempfile
from concurrent.futures import Future
from datetime import date, datetime, timedelta
from database.session import make_engine
from sqlalchemy.orm import sessionmaker
from database.models import Base, Auction, AuctionItem, AuctionStatus, Bidder, Item
from cli.view import BidEntryView
import jwt

# Set test secret key before any imports of the app
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("ADMIN_PASSWORD", None)


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    # Use a unique database file per test to avoid conflicts
    test_db = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
    test_db.close()
    test_db_url = f"sqlite:///{test_db.name}"

    engine = make_engine(test_db_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.unlink(test_db.name)
    except OSError:
        pass


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
        session.rollback()
    finally:
        session.close()


@pytest.fixture(scope="function")
def override_get_db(db_engine, db_session):
    """Override get_db dependency for FastAPI tests."""
    from server.api import app
    from database.session import get_db

    def _get_test_db():
        yield db_session

    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = _get_test_db
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def sample_auction(db_session):
    """Auction 80 with three items; item 99 exists but belongs to no auction."""
    auction = Auction(
        id=80,
        description="Spring Gala",
        auction_date=date(2025, 4, 12),
        status=AuctionStatus.ACTIVE.value,
    )
    db_session.add(auction)
    db_session.add_all([
        Item(id=57, name="Gift Basket", description="Local jams and honey", quantity=1),
        Item(id=58, name="Wine Tasting for Two", description="Vineyard tour", quantity=3),
        Item(id=102, name="Handmade Quilt", description="Queen size", quantity=1),
        Item(id=99, name="Spare Raffle Prize", description="Not in any auction", quantity=1),
    ])
    db_session.flush()
    db_session.add_all([
        AuctionItem(auction_id=80, item_id=57),
        AuctionItem(auction_id=80, item_id=58),
        AuctionItem(auction_id=80, item_id=102),
    ])
    db_session.commit()
    db_session.refresh(auction)
    return auction


@pytest.fixture
def sample_bidders(db_session):
    bidders = [
        Bidder(id=1, first_name="John", last_name="Smith", phone="5551234567", email="john@example.com",
               address1="1 Main St", city="Springfield", state="IL", postal_code="62701"),
        Bidder(id=2, first_name="Jane", last_name="Smith", phone="5559876543", email="jane@example.com"),
        Bidder(id=15, first_name="Bob", last_name="Jones", phone="555-222-3333", email=None),
        Bidder(id=105, first_name="Alice", last_name="Brown", phone=None, email="alice@example.com"),
    ]
    db_session.add_all(bidders)
    db_session.commit()
    return bidders


@pytest.fixture
def auth_token():
    """Generate a test JWT token."""
    secret_key = os.getenv("SECRET_KEY", "test-secret-key")
    payload = {"sub": "testuser", "exp": datetime.utcnow() + timedelta(days=30)}
    return jwt.encode(payload, secret_key, algorithm="HS256")


@pytest.fixture
def auth_headers(auth_token):
    """Get authorization headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def client(override_get_db):
    """Create a test client with database override."""
    from fastapi.testclient import TestClient
    from server.api import app
    return TestClient(app)


@pytest.fixture
def api_client(client, auth_token):
    """AuctionClient talking to the app through the TestClient."""
    from cli.client import AuctionClient
    return AuctionClient(server_url="http://testserver", token=auth_token, http=client, timezone="UTC")


# Fakes for the bid entry controller


class FakeTimer:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Deterministic stand-in for ThreadingScheduler; time only moves on advance()."""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds):
        """Run every timer that falls due, earliest first. Returns the callbacks' results."""
        target = self.now + seconds
        results = []
        while True:
            due = [t for t in self.timers if not t.cancelled and t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.now = max(self.now, timer.due)
            results.append(timer.callback())
        self.now = target
        return results


class InlineExecutor:
    """Executor that runs submitted work on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class ManualExecutor:
    """Executor that holds submitted work until the test runs it, in any order."""

    def __init__(self):
        self.queue = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    def run(self, index=0):
        future, fn, args, kwargs = self.queue.pop(index)
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def run_all(self):
        while self.queue:
            self.run(0)

    def shutdown(self, wait=True):
        pass


class RecordingView(BidEntryView):
    """Keeps whatever the controller last showed, plus histories for assertions."""

    def __init__(self):
        self.values = {}
        self.focused = None
        self.focus_selected = False
        self.errors = {}
        self.results = {}
        self.highlighted = {}
        self.no_results = {}
        self.alerts = []
        self.toasts = []
        self.confirmations = []
        self.confirm_answer = True
        self.save_label = "SAVE BID"
        self.delete_visible = False
        self.winners = []
        self.item_info = None
        self.inventory = None
        self.progress = None
        self.totals = []
        self.recent = []
        self.cards = []

    def show_results(self, field, results, highlighted):
        self.results[field] = results
        self.highlighted[field] = highlighted
        self.no_results.pop(field, None)

    def show_no_results(self, field, term):
        self.no_results[field] = term
        self.results.pop(field, None)

    def hide_results(self, field):
        self.results.pop(field, None)
        self.highlighted.pop(field, None)
        self.no_results.pop(field, None)

    def set_value(self, field, value):
        self.values[field] = value

    def focus(self, field, select=False):
        self.focused = field
        self.focus_selected = select

    def show_field_error(self, field, message):
        self.errors[field] = message

    def clear_field_error(self, field):
        self.errors.pop(field, None)

    def show_item_info(self, item, inventory):
        self.item_info = item
        self.inventory = inventory

    def set_save_label(self, label):
        self.save_label = label

    def show_delete(self, visible):
        self.delete_visible = visible

    def show_winners(self, winners):
        self.winners = winners

    def alert(self, message):
        self.alerts.append(message)

    def confirm(self, message):
        self.confirmations.append(message)
        return self.confirm_answer

    def toast(self, message):
        self.toasts.append(message)

    def render_progress(self, processed, total, percent):
        self.progress = (processed, total, percent)

    def render_running_total(self, total):
        self.totals.append(total)

    def render_recent(self, entries):
        self.recent = list(entries)

    def render_status_grid(self, cards):
        self.cards = cards


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def manual_executor():
    return ManualExecutor()


@pytest.fixture
def view():
    return RecordingView()


@pytest.fixture
def make_controller(fake_scheduler, view):
    """Build a controller for auction 80 on the fake scheduler and recording view."""
    from cli.controller import BidEntryController

    controllers = []

    def _make(client, executor=None, auction_id=80, **kwargs):
        controller = BidEntryController(
            client,
            auction_id,
            view=view,
            scheduler=fake_scheduler,
            executor=executor or InlineExecutor(),
            **kwargs
        )
        controllers.append(controller)
        return controller

    yield _make
    for controller in controllers:
        controller.close()

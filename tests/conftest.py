from collections.abc import Callable, Iterator
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storefront_service import card_gateway_client, insights_client, models
from storefront_service.auth import hash_secret
from storefront_service.database import Base, get_db
from storefront_service.main import app

PASSWORD = "Password123!"


def mock_http_client(base_url: str, handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(base_url=base_url, transport=httpx.MockTransport(handler))


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine) -> Iterator[Session]:
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def quiet_upstreams(monkeypatch):
    """Outbound clients answer with empty payloads unless a test installs its own handler."""

    def _empty(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"products": []})

    monkeypatch.setattr(insights_client, "client", mock_http_client("http://fake-insights", _empty))
    insights_client.insights_breaker.close()
    card_gateway_client.card_gateway_breaker.close()
    yield
    insights_client.insights_breaker.close()
    card_gateway_client.card_gateway_breaker.close()


@pytest.fixture
def client(db) -> Iterator[TestClient]:
    def _get_db_override() -> Iterator[Session]:
        yield db

    app.dependency_overrides[get_db] = _get_db_override
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def catalog(db) -> SimpleNamespace:
    electronics = models.Category(name="Electronics", slug="electronics")
    books = models.Category(name="Books", slug="books")
    apex = models.Brand(name="Apex", slug="apex")
    page_turner = models.Brand(name="PageTurner", slug="pageturner")

    speaker = models.Product(
        name="Apex Echo Smart Speaker",
        slug="apex-echo-smart-speaker",
        description="Voice-controlled smart speaker with spatial audio.",
        sku="APX-ECHO-01",
        price_cents=14999,
        inventory=5,
        rating=4.6,
        category=electronics,
        brand=apex,
        images=[
            models.ProductImage(url="https://img.test/speaker-side.jpg", alt="Side", position=1),
            models.ProductImage(url="https://img.test/speaker.jpg", alt="Front", is_primary=True, position=0),
        ],
    )
    headphones = models.Product(
        name="Apex Studio Headphones",
        slug="apex-studio-headphones",
        description="Closed-back headphones with active noise cancelling.",
        sku="APX-HP-02",
        price_cents=19999,
        inventory=1,
        rating=4.2,
        category=electronics,
        brand=apex,
    )
    classics = models.Product(
        name="PageTurner Hardcover Classics Bundle",
        slug="pageturner-hardcover-classics-bundle",
        description="Five literary classics on archival paper.",
        sku="PAGE-CLSC-05",
        price_cents=8999,
        inventory=45,
        rating=4.9,
        category=books,
        brand=page_turner,
    )
    db.add_all([speaker, headphones, classics])
    db.commit()
    return SimpleNamespace(speaker=speaker, headphones=headphones, classics=classics)


def make_user(db: Session, email: str = "shopper@example.com", name: str = "Demo Shopper") -> models.User:
    user = models.User(email=email, name=name, password_hash=hash_secret(PASSWORD))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db) -> models.User:
    return make_user(db)


@pytest.fixture
def address(db, user) -> models.Address:
    address = models.Address(
        user_id=user.id,
        label="Home",
        full_name="Demo Shopper",
        line1="123 Innovation Way",
        city="San Francisco",
        state="CA",
        postal_code="94107",
        country="USA",
        is_default=True,
    )
    db.add(address)
    db.commit()
    db.refresh(address)
    return address


@pytest.fixture
def auth_client(client, user) -> TestClient:
    response = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
    assert response.status_code == 200
    return client

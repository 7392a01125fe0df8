import os
import tempfile

# Point the service at a throwaway database before config is imported
_TMP = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["LOCAL_STORE_PATH"] = os.path.join(_TMP, "local_store.db")

import httpx
import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from main import app
from models.product import Product
from services.cart_backends import AuthBackend, GuestBackend
from services.cart_store import CartStore
from services.session import Session as CredentialSession
from utils.local_store import LocalStore
from utils.seed_demo import seed_customer, seed_products, seed_shipping
from utils.storefront_client import StorefrontClient

CUSTOMER = {"email": "customer@storefront.io", "password": "password123"}

ADDRESS = {
    "fullName": "Asha Rao",
    "email": "asha@storefront.io",
    "phone": "9876543210",
    "street": "12 MG Road",
    "city": "New Delhi",
    "state": "Delhi",
    "pincode": "110001",
    "country": "India",
}


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_products(session)
    seed_shipping(session)
    seed_customer(session, **CUSTOMER)
    yield session
    session.close()


@pytest.fixture
def products(db):
    return {p.code: p.id for p in db.query(Product).all()}


@pytest.fixture
def api(db):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def auth_headers(api):
    res = api.post("/login", json=CUSTOMER)
    assert res.status_code == 200, res.text
    return {"Authorization": f"Bearer {res.json()['access_token']}"}


@pytest.fixture
def local_store(tmp_path):
    return LocalStore(str(tmp_path / "local_store.db"))


@pytest.fixture
def session(local_store):
    return CredentialSession(local_store)


@pytest.fixture
async def storefront(db, session):
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
    client = StorefrontClient(base_url="http://test", session=session, http=http)
    yield client
    await client.aclose()


@pytest.fixture
async def logged_in(storefront, session):
    res = await storefront._client().post("http://test/login", json=CUSTOMER)
    assert res.status_code == 200, res.text
    body = res.json()
    session.login(body["access_token"], body["user"])
    return session


@pytest.fixture
def cart(session, local_store, storefront):
    return CartStore(session, GuestBackend(local_store), AuthBackend(storefront))

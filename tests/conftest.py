import os
from datetime import date

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CSRF_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.pop("REDIS_URL", None)

from types import SimpleNamespace  # noqa: E402

import fakeredis  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from quoteflow.auth import get_current_user  # noqa: E402
from quoteflow.cache import KVCache, get_kv, set_kv  # noqa: E402
from quoteflow.database import Base, get_db  # noqa: E402
from quoteflow.domain.billing.plans import seed_subscription_plans  # noqa: E402
from quoteflow.main import app  # noqa: E402
from quoteflow.models import Company, CompanyMember, Customer, Quotation, User  # noqa: E402
from quoteflow.permissions import assign_role, seed_rbac  # noqa: E402
from quoteflow.rate_limiter import reset_rate_limits  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    seed_rbac(session)
    seed_subscription_plans(session)
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def kv(redis_client):
    cache = KVCache(redis_client)
    set_kv(cache)
    yield cache
    set_kv(None)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


def make_user(db, email: str, role: str = None, kv: KVCache = None) -> User:
    user = User(supabase_uid=f"uid-{email}", email=email, full_name=email.split("@")[0])
    db.add(user)
    db.commit()
    db.refresh(user)
    if role:
        assign_role(db, kv or KVCache(fakeredis.FakeRedis(decode_responses=True)), user.id, role)
    return user


def make_company(db, owner: User, name: str = "測試股份有限公司") -> Company:
    company = Company(name=name, owner_id=owner.id)
    db.add(company)
    db.flush()
    db.add(CompanyMember(company_id=company.id, user_id=owner.id, role_name="company_owner"))
    db.commit()
    db.refresh(company)
    return company


@pytest.fixture
def tenant(db, kv):
    """An owner with a company and one customer"""
    owner = make_user(db, "owner@example.com", "company_owner", kv)
    company = make_company(db, owner)
    customer = Customer(
        company_id=company.id,
        user_id=owner.id,
        name_zh="大同商行",
        email="buyer@example.com",
        address="台北市中山區民生東路一段 1 號",
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return SimpleNamespace(user=owner, company=company, customer=customer)


@pytest.fixture
def client(db, kv, tenant):
    """TestClient authenticated as the tenant owner"""
    current = {"user": tenant.user}

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_kv] = lambda: kv
    app.dependency_overrides[get_current_user] = lambda: current["user"]

    test_client = TestClient(app)
    test_client.current = current
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()


def make_quotation(db, tenant, number: str = "Q202601-0001", total: float = 105000, **fields) -> Quotation:
    values = dict(
        company_id=tenant.company.id,
        user_id=tenant.user.id,
        customer_id=tenant.customer.id,
        quotation_number=number,
        status="accepted",
        issue_date=date(2026, 1, 10),
        subtotal=round(total / 1.05, 2),
        tax_amount=round(total - total / 1.05, 2),
        total_amount=total,
    )
    values.update(fields)
    quotation = Quotation(**values)
    db.add(quotation)
    db.commit()
    db.refresh(quotation)
    return quotation

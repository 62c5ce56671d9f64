"""Shared fixtures: in-memory database, API client and fake AI clients."""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ANTHROPIC_API_KEY"] = "test-anthropic-key"
os.environ["DLOCAL_SECRET_KEY"] = "test-dlocal-secret"
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from praxis import dependencies
from praxis.auth import auth_rate_limiter, create_lawyer, create_lawyer_token
from praxis.database import SessionLocal, engine, get_db
from praxis.main import app
from praxis.models.database import Base
from praxis.services.agent_processor import AgentAIService
from praxis.services.copilot import CopilotService
from praxis.services.draft_service import DraftAutosaver

from fakes import FakeChains, FakeClaude


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test on the shared in-memory engine."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    auth_rate_limiter.attempts.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def fake_claude():
    return FakeClaude(
        enhance_agent_prompt="Eres un asistente que recopila los datos del contrato.",
        suggest_price="45000",
        improve_template="Contrato mejorado entre {{arrendador}} y {{arrendatario}}.",
        copilot_suggest="Revise la cláusula de terminación.",
        copilot_autocomplete=" dentro de los cinco primeros días de cada mes.",
        copilot_improve="Texto mejorado."
    )


@pytest.fixture
def fake_chains():
    return FakeChains(
        suggest_conversation_blocks={"suggestedBlocks": [], "overallStrategy": ""},
        detect_risks={"overallRisk": "bajo", "risks": [], "summary": "Sin riesgos."},
        analyze_inline={"suggestions": []}
    )


@pytest.fixture
def ai_service(client, fake_claude, fake_chains):
    service = AgentAIService(claude=fake_claude, chains=fake_chains)
    app.dependency_overrides[dependencies.get_ai_service] = lambda: service
    return service


@pytest.fixture
def copilot(monkeypatch, client, fake_claude, fake_chains):
    # installed as the global so the lifespan shutdown cancels its pending timers
    service = CopilotService(claude=fake_claude, chains=fake_chains, delay=60)
    monkeypatch.setattr(dependencies, "copilot_service", service)
    return service


@pytest.fixture
def autosaver(monkeypatch, client):
    saver = DraftAutosaver(delay=60)
    monkeypatch.setattr(dependencies, "draft_autosaver", saver)
    return saver


@pytest.fixture
def lawyer(db):
    return create_lawyer(
        db,
        email="laura@bufete.co",
        full_name="Laura Gómez",
        password="s3guraClave",
        can_create_agents=True,
        can_use_ai_tools=True
    )


@pytest.fixture
def other_lawyer(db):
    return create_lawyer(
        db,
        email="andres@bufete.co",
        full_name="Andrés Pérez",
        password="s3guraClave",
        can_create_agents=True,
        can_use_ai_tools=True
    )


@pytest.fixture
def basic_lawyer(db):
    """A lawyer without any permission flags."""
    return create_lawyer(db, email="nuevo@bufete.co", full_name="Nuevo Abogado", password="s3guraClave")


@pytest.fixture
def admin(db):
    return create_lawyer(
        db,
        email="root@praxis.legal",
        full_name="Admin Praxis",
        password="adminClave1",
        is_admin=True
    )


@pytest.fixture
def auth_headers():
    def make(lawyer):
        return {"Authorization": f"Bearer {create_lawyer_token(lawyer)}"}
    return make

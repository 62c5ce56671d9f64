from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
import logging
from .config import settings

logger = logging.getLogger(__name__)

_is_sqlite = settings.database_url.startswith("sqlite")

# Create SQLAlchemy engine
engine = create_engine(
    settings.database_url,
    poolclass=StaticPool if _is_sqlite else None,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    echo=False
)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

from .models.database import Base, LawyerProfile, SystemConfig

DEFAULT_SYSTEM_CONFIG = {
    "agent_creation_ai_model": (
        settings.claude_model,
        "Model used to enhance agent prompts and suggest prices"
    ),
    "agent_creation_system_prompt": (
        "Eres un asistente legal experto en Colombia. Ayudas a abogados a "
        "convertir plantillas de documentos en agentes conversacionales claros y profesionales.",
        "System prompt used when enhancing agent prompts"
    ),
}

def create_tables():
    """Create all database tables."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {str(e)}")
        raise

def get_db() -> Session:
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def seed_defaults(db: Session):
    """Insert the default admin lawyer and system configuration rows."""
    from .auth import get_password_hash

    admin = db.query(LawyerProfile).filter(
        LawyerProfile.email == settings.default_admin_email
    ).first()
    if not admin:
        db.add(LawyerProfile(
            email=settings.default_admin_email,
            full_name="Administrador Praxis",
            hashed_password=get_password_hash(settings.default_admin_password),
            is_admin=True,
            is_active=True,
            can_create_agents=True,
            can_create_blogs=True,
            can_use_ai_tools=True
        ))
        logger.info("Default admin lawyer created")

    for key, (value, description) in DEFAULT_SYSTEM_CONFIG.items():
        exists = db.query(SystemConfig).filter(SystemConfig.config_key == key).first()
        if not exists:
            db.add(SystemConfig(config_key=key, config_value=value, description=description))

    db.commit()

def init_db():
    """Initialize database with default data."""
    try:
        create_tables()

        db = SessionLocal()
        try:
            seed_defaults(db)
        finally:
            db.close()

    except Exception as e:
        logger.error(f"Error initializing database: {str(e)}")
        raise

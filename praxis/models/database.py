from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()

class LawyerProfile(Base):
    __tablename__ = "lawyer_profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(200), nullable=False)
    phone_number = Column(String(50))
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    is_admin = Column(Boolean, default=False)

    # Permission flags managed by admins
    can_create_agents = Column(Boolean, default=False)
    can_create_blogs = Column(Boolean, default=False)
    can_use_ai_tools = Column(Boolean, default=False)

    subscription_status = Column(String(30), default="free")

    # Public profile
    bio = Column(Text)
    specialties = Column(JSON)
    city = Column(String(100))

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    agents = relationship("LegalAgent", back_populates="creator")
    drafts = relationship("AgentDraft", back_populates="lawyer", cascade="all, delete-orphan")
    documents = relationship("LawyerDocument", back_populates="lawyer", cascade="all, delete-orphan")
    subscriptions = relationship("LawyerSubscription", back_populates="lawyer")

class LegalAgent(Base):
    __tablename__ = "legal_agents"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text)
    document_name = Column(String(200))
    document_description = Column(Text)
    category = Column(String(100))
    target_audience = Column(String(20), default="personas")
    template_content = Column(Text, nullable=False)
    ai_prompt = Column(Text)
    placeholder_fields = Column(JSON)  # [{field, label, type, required, description}]
    suggested_price = Column(Integer)
    final_price = Column(Integer)
    price_justification = Column(Text)
    sla_enabled = Column(Boolean, default=True)
    sla_hours = Column(Integer, default=4)
    button_cta = Column(String(100))
    frontend_icon = Column(String(50))
    status = Column(String(20), default="draft", index=True)
    created_by = Column(Integer, ForeignKey("lawyer_profiles.id"))
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # Relationships
    creator = relationship("LawyerProfile", back_populates="agents")
    conversation_blocks = relationship(
        "ConversationBlock",
        back_populates="agent",
        cascade="all, delete-orphan",
        order_by="ConversationBlock.block_order"
    )
    field_instructions = relationship(
        "FieldInstruction",
        back_populates="agent",
        cascade="all, delete-orphan"
    )

class ConversationBlock(Base):
    __tablename__ = "conversation_blocks"

    id = Column(Integer, primary_key=True, index=True)
    legal_agent_id = Column(Integer, ForeignKey("legal_agents.id"), nullable=False)
    block_name = Column(String(200), nullable=False)
    intro_phrase = Column(Text)
    placeholders = Column(JSON)  # ordered list of placeholder names
    block_order = Column(Integer, nullable=False)

    agent = relationship("LegalAgent", back_populates="conversation_blocks")

class FieldInstruction(Base):
    __tablename__ = "field_instructions"

    id = Column(Integer, primary_key=True, index=True)
    legal_agent_id = Column(Integer, ForeignKey("legal_agents.id"), nullable=False)
    field_name = Column(String(200), nullable=False)
    validation_rule = Column(Text)
    help_text = Column(Text)

    agent = relationship("LegalAgent", back_populates="field_instructions")

class AgentDraft(Base):
    __tablename__ = "agent_drafts"

    id = Column(Integer, primary_key=True, index=True)
    lawyer_id = Column(Integer, ForeignKey("lawyer_profiles.id"), nullable=False, index=True)
    draft_name = Column(String(200), nullable=False)
    step_completed = Column(Integer, default=1)
    max_step_reached = Column(Integer, default=1)
    doc_name = Column(String(200))
    doc_desc = Column(Text)
    doc_cat = Column(String(100))
    target_audience = Column(String(20), default="personas")
    doc_template = Column(Text)
    initial_prompt = Column(Text)
    sla_hours = Column(Integer, default=4)
    sla_enabled = Column(Boolean, default=True)
    lawyer_suggested_price = Column(String(50))
    ai_results = Column(JSON)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    lawyer = relationship("LawyerProfile", back_populates="drafts")

class DocumentToken(Base):
    __tablename__ = "document_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(12), unique=True, index=True, nullable=False)
    document_type = Column(String(200), nullable=False)
    document_content = Column(Text, nullable=False)
    user_email = Column(String(255), nullable=False, index=True)
    user_name = Column(String(200), nullable=False)
    price = Column(Integer)
    status = Column(String(30), default="solicitado", index=True)
    sla_hours = Column(Integer)
    sla_deadline = Column(DateTime)
    sla_status = Column(String(30), default="on_time")
    reviewed_by_lawyer_id = Column(Integer, ForeignKey("lawyer_profiles.id"))
    reviewed_by_lawyer_name = Column(String(200))
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

class LawyerSubscription(Base):
    __tablename__ = "lawyer_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    lawyer_id = Column(Integer, ForeignKey("lawyer_profiles.id"), nullable=False, index=True)
    plan_id = Column(String(100), nullable=False)
    status = Column(String(20), default="pending")
    billing_cycle = Column(String(10), default="monthly")
    current_period_start = Column(DateTime)
    current_period_end = Column(DateTime)
    dlocal_subscription_id = Column(String(100), index=True)
    cancel_at_period_end = Column(Boolean, default=False)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    lawyer = relationship("LawyerProfile", back_populates="subscriptions")

class LawyerDocument(Base):
    __tablename__ = "lawyer_documents"

    id = Column(Integer, primary_key=True, index=True)
    lawyer_id = Column(Integer, ForeignKey("lawyer_profiles.id"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    document_type = Column(String(100))
    content = Column(Text, default="")
    markdown_content = Column(Text)
    description = Column(Text)
    is_monetized = Column(Boolean, default=False)
    price = Column(Integer)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    lawyer = relationship("LawyerProfile", back_populates="documents")

class SystemConfig(Base):
    __tablename__ = "system_config"

    id = Column(Integer, primary_key=True, index=True)
    config_key = Column(String(100), unique=True, index=True, nullable=False)
    config_value = Column(Text)
    description = Column(Text)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

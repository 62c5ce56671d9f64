from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime
from enum import Enum

class TargetAudience(str, Enum):
    PERSONAS = "personas"
    EMPRESAS = "empresas"

class AgentStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    ACTIVE = "active"
    SUSPENDED = "suspended"

class DocumentStatus(str, Enum):
    SOLICITADO = "solicitado"
    EN_REVISION_ABOGADO = "en_revision_abogado"
    REVISADO = "revisado"
    REVISION_USUARIO = "revision_usuario"
    PAGADO = "pagado"
    DESCARGADO = "descargado"

class SlaStatus(str, Enum):
    ON_TIME = "on_time"
    AT_RISK = "at_risk"
    OVERDUE = "overdue"
    COMPLETED_ON_TIME = "completed_on_time"
    COMPLETED_LATE = "completed_late"

class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"

class SubscriptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

# Lawyer Schemas
class LawyerCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=8)
    phone_number: Optional[str] = None

class LawyerAdminCreate(LawyerCreate):
    can_create_agents: bool = False
    can_create_blogs: bool = False
    can_use_ai_tools: bool = False

class LawyerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    full_name: str
    phone_number: Optional[str] = None
    is_active: bool
    is_admin: bool
    can_create_agents: bool
    can_create_blogs: bool
    can_use_ai_tools: bool
    subscription_status: Optional[str] = None
    created_at: datetime

class LawyerPublicProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    bio: Optional[str] = None
    specialties: Optional[List[str]] = None
    city: Optional[str] = None

class LawyerProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=3, max_length=200)
    phone_number: Optional[str] = None
    bio: Optional[str] = None
    specialties: Optional[List[str]] = None
    city: Optional[str] = None

class LawyerPermissions(BaseModel):
    can_create_agents: bool
    can_create_blogs: bool
    can_use_ai_tools: bool

class LawyerLogin(BaseModel):
    email: EmailStr
    password: str

class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=8)

class Token(BaseModel):
    access_token: str
    token_type: str

# Placeholder Schemas
class PlaceholderField(BaseModel):
    field: str
    label: str
    type: str = "text"
    required: bool = True
    description: str

class DetectedPlaceholder(BaseModel):
    text: str
    kind: str
    start: int
    end: int

class PlaceholderScanRequest(BaseModel):
    text: str

# Agent Schemas
class ConversationBlockIn(BaseModel):
    block_name: str = Field(..., min_length=1, alias="blockName")
    intro_phrase: Optional[str] = Field("", alias="introPhrase")
    placeholders: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

class ConversationBlockOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    block_name: str
    intro_phrase: Optional[str] = None
    placeholders: List[str] = Field(default_factory=list)
    block_order: int

class FieldInstructionIn(BaseModel):
    field_name: str = Field(..., min_length=1, alias="fieldName")
    validation_rule: Optional[str] = Field(None, alias="validationRule")
    help_text: Optional[str] = Field(None, alias="helpText")

    model_config = ConfigDict(populate_by_name=True)

class FieldInstructionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    field_name: str
    validation_rule: Optional[str] = None
    help_text: Optional[str] = None

class AgentData(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    document_name: Optional[str] = None
    document_description: Optional[str] = None
    category: Optional[str] = None
    target_audience: TargetAudience = TargetAudience.PERSONAS
    template_content: str = Field(..., min_length=1)
    ai_prompt: Optional[str] = None
    placeholder_fields: Optional[List[PlaceholderField]] = None
    suggested_price: Optional[int] = Field(None, ge=0)
    price_justification: Optional[str] = None
    sla_enabled: bool = True
    sla_hours: Optional[int] = Field(4, ge=1)
    button_cta: Optional[str] = None
    frontend_icon: Optional[str] = None

class SaveAgentRequest(BaseModel):
    agent_data: AgentData
    conversation_blocks: List[ConversationBlockIn] = Field(default_factory=list)
    field_instructions: List[FieldInstructionIn] = Field(default_factory=list)

class AgentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    document_name: Optional[str] = None
    document_description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[int] = Field(None, ge=0)
    final_price: Optional[int] = Field(None, ge=0)
    price_justification: Optional[str] = None
    target_audience: Optional[TargetAudience] = None
    template_content: Optional[str] = Field(None, min_length=1)
    ai_prompt: Optional[str] = None
    sla_enabled: Optional[bool] = None
    sla_hours: Optional[int] = Field(None, ge=1)
    button_cta: Optional[str] = None
    placeholder_fields: Optional[List[PlaceholderField]] = None
    frontend_icon: Optional[str] = None
    status: Optional[AgentStatus] = None

class AgentStatusChange(BaseModel):
    status: AgentStatus

class AgentStructureUpdate(BaseModel):
    conversation_blocks: Optional[List[ConversationBlockIn]] = None
    field_instructions: Optional[List[FieldInstructionIn]] = None

class AgentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    document_name: Optional[str] = None
    document_description: Optional[str] = None
    category: Optional[str] = None
    target_audience: Optional[str] = None
    template_content: str
    ai_prompt: Optional[str] = None
    placeholder_fields: Optional[List[Dict[str, Any]]] = None
    suggested_price: Optional[int] = None
    final_price: Optional[int] = None
    price_justification: Optional[str] = None
    sla_enabled: Optional[bool] = None
    sla_hours: Optional[int] = None
    button_cta: Optional[str] = None
    frontend_icon: Optional[str] = None
    status: str
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

class AgentDetailResponse(AgentResponse):
    conversation_blocks: List[ConversationBlockOut] = Field(default_factory=list)
    field_instructions: List[FieldInstructionOut] = Field(default_factory=list)

class SaveAgentResponse(BaseModel):
    success: bool
    agent: AgentResponse
    blocks_saved: int
    instructions_saved: int
    warnings: List[str] = Field(default_factory=list)
    message: str

class PublicAgent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    target_audience: Optional[str] = None
    final_price: Optional[int] = None
    suggested_price: Optional[int] = None
    button_cta: Optional[str] = None
    frontend_icon: Optional[str] = None

# Agent AI Schemas
class ProcessAgentRequest(BaseModel):
    doc_name: str = Field(..., min_length=1)
    doc_desc: Optional[str] = None
    category: Optional[str] = "General"
    doc_template: str = Field(..., min_length=1)
    initial_prompt: Optional[str] = None
    target_audience: TargetAudience = TargetAudience.PERSONAS
    conversation_blocks: List[ConversationBlockIn] = Field(default_factory=list)
    field_instructions: List[FieldInstructionIn] = Field(default_factory=list)

class ProcessAgentResponse(BaseModel):
    success: bool = True
    enhanced_prompt: str
    placeholders: List[PlaceholderField]
    suggested_price: int
    suggested_price_display: str
    price_justification: str
    processing_details: Dict[str, Any]

class SuggestBlocksRequest(BaseModel):
    doc_name: str = Field(..., min_length=1)
    doc_description: Optional[str] = None
    target_audience: TargetAudience = TargetAudience.PERSONAS
    doc_template: str = Field(..., min_length=1)
    placeholders: Optional[List[str]] = None

class SuggestedBlock(BaseModel):
    name: str
    introduction: str = ""
    placeholders: List[str] = Field(default_factory=list)
    reasoning: Optional[str] = None

class SuggestBlocksResponse(BaseModel):
    success: bool = True
    conversation_blocks: List[SuggestedBlock]
    strategy: Optional[str] = None
    missing_placeholders: List[str] = Field(default_factory=list)

class ImproveTemplateRequest(BaseModel):
    template_content: str
    doc_name: Optional[str] = None
    doc_category: Optional[str] = None

class ImproveTemplateResponse(BaseModel):
    success: bool = True
    improved_template: str
    original_length: int
    improved_length: int
    lost_placeholders: List[str] = Field(default_factory=list)

# Draft Schemas
class DraftFormData(BaseModel):
    doc_name: Optional[str] = Field(None, alias="docName")
    doc_desc: Optional[str] = Field(None, alias="docDesc")
    doc_cat: Optional[str] = Field(None, alias="docCat")
    target_audience: Optional[TargetAudience] = Field(None, alias="targetAudience")
    doc_template: Optional[str] = Field(None, alias="docTemplate")
    initial_prompt: Optional[str] = Field(None, alias="initialPrompt")
    sla_hours: Optional[int] = Field(None, alias="slaHours", ge=1)
    sla_enabled: Optional[bool] = Field(None, alias="slaEnabled")
    lawyer_suggested_price: Optional[str] = Field(None, alias="lawyerSuggestedPrice")

    model_config = ConfigDict(populate_by_name=True)

class SaveDraftRequest(BaseModel):
    draft_id: Optional[int] = None
    draft_name: str = Field(..., min_length=1)
    step_completed: int = Field(1, ge=1)
    form_data: DraftFormData = Field(default_factory=DraftFormData)
    ai_results: Optional[Dict[str, Any]] = None

class SaveDraftResponse(BaseModel):
    success: bool = True
    draft_id: int
    max_step_reached: int
    message: str

class DraftResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    draft_name: str
    step_completed: int
    max_step_reached: int
    doc_name: Optional[str] = None
    doc_desc: Optional[str] = None
    doc_cat: Optional[str] = None
    target_audience: Optional[str] = None
    doc_template: Optional[str] = None
    initial_prompt: Optional[str] = None
    sla_hours: Optional[int] = None
    sla_enabled: Optional[bool] = None
    lawyer_suggested_price: Optional[str] = None
    ai_results: Optional[Dict[str, Any]] = None
    updated_at: Optional[datetime] = None

class PublishDraftRequest(BaseModel):
    conversation_blocks: List[ConversationBlockIn] = Field(default_factory=list)
    field_instructions: List[FieldInstructionIn] = Field(default_factory=list)

# Document Token Schemas
class DocumentTokenCreate(BaseModel):
    document_content: str = Field(..., min_length=1)
    document_type: str = Field(..., min_length=1)
    user_email: EmailStr
    user_name: str = Field(..., min_length=1)
    sla_hours: Optional[int] = Field(None, ge=1)

class DocumentTokenCreated(BaseModel):
    token: str
    message: str
    document_id: int
    price: int
    sla_deadline: datetime

class DocumentTokenResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    token: str
    document_type: str
    document_content: str
    user_email: str
    user_name: str
    price: Optional[int] = None
    status: str
    sla_hours: Optional[int] = None
    sla_deadline: Optional[datetime] = None
    sla_status: Optional[str] = None
    reviewed_by_lawyer_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

class DocumentReview(BaseModel):
    document_content: Optional[str] = None
    status: DocumentStatus

class DocumentStatusChange(BaseModel):
    status: DocumentStatus

class MonthlyTrend(BaseModel):
    month: str
    completion_rate: float
    total_documents: int
    on_time: int
    late: int

class SlaStats(BaseModel):
    total_documents: int
    on_time_completion: int
    late_completion: int
    overdue_documents: int
    at_risk_documents: int
    on_time_documents: int
    completion_rate: float
    average_completion_time: float
    monthly_trends: List[MonthlyTrend]
    status_distribution: Dict[str, int]

# Subscription Schemas
class PlanResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    monthly_price: int
    yearly_price: int
    features: List[str]
    currency: Optional[str] = None
    plan_token: Optional[str] = None
    active: bool = True

class CreateSubscriptionRequest(BaseModel):
    plan_id: str
    billing_cycle: BillingCycle = BillingCycle.MONTHLY

class CreateSubscriptionResponse(BaseModel):
    success: bool
    redirect_url: Optional[str] = None
    subscription_id: Optional[int] = None
    message: str

class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plan_id: str
    status: str
    billing_cycle: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool

class SubscriptionOverview(BaseModel):
    subscription: Optional[SubscriptionResponse] = None
    display_status: str
    days_remaining: Optional[int] = None
    renews_on: Optional[datetime] = None
    ends_on: Optional[datetime] = None

class ManageSubscriptionRequest(BaseModel):
    action: Literal["cancel", "reactivate"]

# Lawyer Document Schemas
class LawyerDocumentCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    document_type: Optional[str] = None
    content: str = ""
    description: Optional[str] = None
    is_monetized: bool = False
    price: Optional[int] = Field(None, ge=0)

class LawyerDocumentUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=300)
    document_type: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    is_monetized: Optional[bool] = None
    price: Optional[int] = Field(None, ge=0)

class LawyerDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    document_type: Optional[str] = None
    content: str
    description: Optional[str] = None
    is_monetized: bool
    price: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

# Copilot Schemas
class CopilotSessionOpen(BaseModel):
    document_type: str = "contrato"
    content: str = ""

class ChatMessage(BaseModel):
    role: str
    content: str

class CopilotSessionState(BaseModel):
    session_id: str
    document_type: str
    content: str
    messages: List[ChatMessage]
    pending_autocomplete: Optional[str] = None
    suggestions: List[Dict[str, Any]] = Field(default_factory=list)

class ContentChange(BaseModel):
    content: str
    cursor: int = Field(..., ge=0)

class AutocompleteAccept(BaseModel):
    cursor: int = Field(..., ge=0)

class AutocompleteAccepted(BaseModel):
    content: str
    cursor: int

class CopilotChatRequest(BaseModel):
    message: str = Field(..., min_length=1)

class CopilotChatResponse(BaseModel):
    reply: str
    messages: List[ChatMessage]

class CopilotTextRequest(BaseModel):
    text: str = Field(..., min_length=1)

class CopilotInsertText(BaseModel):
    text: str = Field(..., min_length=1)
    cursor: int = Field(..., ge=0)

class RiskItem(BaseModel):
    type: str
    severity: str
    description: str
    suggestion: Optional[str] = None
    affected_text: Optional[str] = Field(None, alias="affectedText")

    model_config = ConfigDict(populate_by_name=True)

class RiskAnalysis(BaseModel):
    overall_risk: str = Field("bajo", alias="overallRisk")
    risks: List[RiskItem] = Field(default_factory=list)
    summary: str = "No se detectaron riesgos significativos."

    model_config = ConfigDict(populate_by_name=True)

# System Config Schemas
class SystemConfigResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    config_key: str
    config_value: Optional[str] = None
    description: Optional[str] = None
    updated_at: Optional[datetime] = None

class SystemConfigUpdate(BaseModel):
    config_value: str = Field(..., min_length=1)
    description: Optional[str] = None

# Health Check Schema
class HealthCheck(BaseModel):
    status: str
    timestamp: datetime
    version: str
    services: Dict[str, str]

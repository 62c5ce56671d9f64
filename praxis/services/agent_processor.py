"""AI processing for the agent creation wizard.

Every AI step has a deterministic fallback so the wizard never blocks on the
model: a templated prompt when enhancement fails, and a per-field price
formula when the suggested price is missing or out of range.
"""
import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import settings
from ..exceptions import AIServiceError
from .claude_client import ClaudeClient
from .langchain_config import StructuredChains
from .placeholders import extract_placeholders, placeholder_names, missing_placeholders

logger = logging.getLogger(__name__)

MIN_PRICE = 15000
MAX_PRICE = 500000
BASE_PRICE = 25000
PRICE_PER_FIELD = 1500
DEFAULT_SYSTEM_PROMPT = "Eres un asistente legal experto en Colombia..."

def format_cop(amount: int) -> str:
    """45000 -> ``$45.000 COP``."""
    return f"${amount:,} COP".replace(",", ".")

def fallback_price(placeholder_count: int) -> int:
    price = BASE_PRICE + placeholder_count * PRICE_PER_FIELD
    return max(MIN_PRICE, min(price, MAX_PRICE))

def parse_price(text: Optional[str]) -> int:
    """Keep only the digits of the model's answer; 0 when there are none."""
    digits = re.sub(r"\D", "", text or "")
    return int(digits) if digits else 0

def fallback_prompt(doc_name: str, category: str, labels: List[str]) -> str:
    return (
        f"Eres Lexi, un asistente legal para crear documentos de {category} en Colombia. "
        f"Tu objetivo es generar: \"{doc_name}\". Recopilaré la siguiente información: "
        f"{', '.join(labels)}. Por favor, proporciona los datos de forma clara."
    )

class AgentAIService:
    def __init__(self, claude: Optional[ClaudeClient] = None, chains: Optional[StructuredChains] = None):
        self.claude = claude or ClaudeClient()
        self.chains = chains or StructuredChains()

    async def _price(
        self,
        doc_name: str,
        category: str,
        placeholder_count: int,
        target_audience: str,
        model: Optional[str]
    ) -> tuple:
        try:
            answer = await self.claude.suggest_price(doc_name, category, placeholder_count, target_audience, model=model)
            price = parse_price(answer)
            if MIN_PRICE <= price <= MAX_PRICE:
                logger.info(f"AI suggested price: {price}")
                return price, (
                    f"Precio sugerido por IA basado en la complejidad ({placeholder_count} campos), "
                    "categoría y audiencia."
                )
            logger.warning(f"AI price out of range or invalid: {answer!r}")
        except AIServiceError as e:
            logger.error(f"Price analysis failed: {str(e)}")

        return fallback_price(placeholder_count), (
            f"Precio calculado por algoritmo estándar basado en {placeholder_count} campos."
        )

    async def process_agent(
        self,
        doc_name: str,
        doc_template: str,
        doc_desc: Optional[str] = None,
        category: Optional[str] = None,
        initial_prompt: Optional[str] = None,
        target_audience: str = "personas",
        model: Optional[str] = None,
        system_prompt: Optional[str] = None
    ) -> Dict[str, Any]:
        """Extract placeholders, enhance the prompt and suggest a price.

        Never fails because of the AI provider: both steps fall back.
        """
        if not doc_name or not doc_template:
            raise ValueError("doc_name and doc_template are required")

        category = category or "General"
        model = model or settings.claude_model
        placeholders = extract_placeholders(doc_template)
        labels = [p["label"] for p in placeholders]

        enhanced_prompt = None
        try:
            enhanced_prompt = await self.claude.enhance_agent_prompt(
                system_prompt or DEFAULT_SYSTEM_PROMPT,
                doc_name,
                category,
                target_audience,
                initial_prompt,
                labels,
                doc_description=doc_desc,
                model=model
            )
        except AIServiceError as e:
            logger.error(f"Prompt enhancement failed: {str(e)}")

        if not enhanced_prompt:
            logger.info("Using fallback agent prompt")
            enhanced_prompt = fallback_prompt(doc_name, category, labels)

        price, justification = await self._price(doc_name, category, len(placeholders), target_audience, model)

        return {
            "success": True,
            "enhanced_prompt": enhanced_prompt,
            "placeholders": placeholders,
            "suggested_price": price,
            "suggested_price_display": format_cop(price),
            "price_justification": justification,
            "processing_details": {
                "model_used": model,
                "placeholders_found": len(placeholders),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        }

    async def process_agent_with_blocks(
        self,
        doc_name: str,
        doc_template: str,
        conversation_blocks: List[Dict[str, Any]],
        field_instructions: List[Dict[str, Any]],
        doc_desc: Optional[str] = None,
        category: Optional[str] = None,
        initial_prompt: Optional[str] = None,
        target_audience: str = "personas",
        model: Optional[str] = None,
        system_prompt: Optional[str] = None
    ) -> Dict[str, Any]:
        """Full processor that also feeds blocks and field instructions to the model.

        Unlike :meth:`process_agent` it raises when the model gives no prompt,
        leaving the fallback decision to :meth:`reprocess_with_fallback`.
        """
        if not doc_name or not doc_template:
            raise ValueError("doc_name and doc_template are required")

        category = category or "General"
        model = model or settings.claude_model
        placeholders = extract_placeholders(doc_template)

        enhanced_prompt = await self.claude.enhance_agent_prompt(
            system_prompt or DEFAULT_SYSTEM_PROMPT,
            doc_name,
            category,
            target_audience,
            initial_prompt,
            [p["label"] for p in placeholders],
            doc_description=doc_desc,
            conversation_blocks=conversation_blocks,
            field_instructions=field_instructions,
            model=model
        )
        if not enhanced_prompt:
            raise AIServiceError("AI did not return an enhanced prompt")

        price, justification = await self._price(doc_name, category, len(placeholders), target_audience, model)

        return {
            "success": True,
            "enhanced_prompt": enhanced_prompt,
            "placeholders": placeholders,
            "suggested_price": price,
            "suggested_price_display": format_cop(price),
            "price_justification": justification,
            "processing_details": {
                "model_used": model,
                "placeholders_found": len(placeholders),
                "conversation_blocks": len(conversation_blocks),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        }

    async def reprocess_with_fallback(
        self,
        payload: Dict[str, Any],
        timeout: Optional[float] = None,
        model: Optional[str] = None,
        system_prompt: Optional[str] = None
    ) -> Dict[str, Any]:
        """Run the full processor under a timeout, then fall back once to the simple one."""
        timeout = settings.ai_request_timeout_seconds if timeout is None else timeout
        result = None

        try:
            result = await asyncio.wait_for(
                self.process_agent_with_blocks(
                    doc_name=payload["doc_name"],
                    doc_template=payload["doc_template"],
                    conversation_blocks=payload.get("conversation_blocks") or [],
                    field_instructions=payload.get("field_instructions") or [],
                    doc_desc=payload.get("doc_desc"),
                    category=payload.get("category"),
                    initial_prompt=payload.get("initial_prompt"),
                    target_audience=payload.get("target_audience") or "personas",
                    model=model,
                    system_prompt=system_prompt
                ),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Primary agent processor timed out after {timeout}s, falling back")
        except AIServiceError as e:
            logger.warning(f"Primary agent processor failed ({str(e)}), falling back")

        needs_fallback = (
            not result
            or not result.get("enhanced_prompt")
            or not isinstance(result.get("placeholders"), list)
        )
        if not needs_fallback:
            return result

        audience = payload.get("target_audience") or "personas"
        return await self.process_agent(
            doc_name=payload["doc_name"],
            doc_template=payload["doc_template"],
            doc_desc=payload.get("doc_desc"),
            category=payload.get("category"),
            initial_prompt=(
                "Eres un asistente legal. Prepara un prompt óptimo para generar el documento "
                f"\"{payload['doc_name']}\" para \"{audience}\" usando la plantilla dada. "
                "Extrae placeholders y formula preguntas necesarias para completarlos."
            ),
            target_audience=audience,
            model=model,
            system_prompt=system_prompt
        )

    async def suggest_conversation_blocks(
        self,
        doc_name: str,
        doc_template: str,
        doc_description: Optional[str] = None,
        target_audience: str = "personas",
        placeholders: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        placeholders = placeholders or placeholder_names(doc_template)
        if not placeholders:
            raise ValueError("The template has no placeholders to group")

        parsed = await self.chains.suggest_conversation_blocks(
            doc_name, doc_description, target_audience, placeholders, doc_template
        )

        raw_blocks = parsed.get("suggestedBlocks")
        if not isinstance(raw_blocks, list):
            logger.error(f"Invalid block suggestion structure: {parsed}")
            raise AIServiceError("Invalid response structure from AI")

        blocks = []
        for index, block in enumerate(raw_blocks, 1):
            block = block if isinstance(block, dict) else {}
            names = block.get("placeholders")
            blocks.append({
                "name": block.get("blockName") or f"Bloque {index}",
                "introduction": block.get("introPhrase") or "",
                "placeholders": names if isinstance(names, list) else [],
                "reasoning": block.get("reasoning")
            })

        missing = missing_placeholders(placeholders, [b["placeholders"] for b in blocks])
        if missing:
            logger.warning(f"Placeholders not included in any block: {missing}")

        logger.info(f"Generated {len(blocks)} conversation blocks")
        return {
            "success": True,
            "conversation_blocks": blocks,
            "strategy": parsed.get("overallStrategy"),
            "missing_placeholders": missing
        }

    async def improve_template(
        self,
        template_content: str,
        doc_name: Optional[str] = None,
        doc_category: Optional[str] = None,
        model: Optional[str] = None
    ) -> Dict[str, Any]:
        if not template_content or not template_content.strip():
            raise ValueError("El contenido de la plantilla es requerido")

        improved = await self.claude.improve_template(template_content, doc_name, doc_category, model=model)
        if not improved:
            raise AIServiceError("Respuesta inválida de la IA")

        lost = [name for name in placeholder_names(template_content) if name not in placeholder_names(improved)]
        if lost:
            logger.warning(f"Improved template dropped placeholders: {lost}")

        return {
            "success": True,
            "improved_template": improved,
            "original_length": len(template_content),
            "improved_length": len(improved),
            "lost_placeholders": lost
        }

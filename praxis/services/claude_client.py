import anthropic
from typing import List, Dict, Any, Optional
import json
import logging
from ..config import settings
from ..exceptions import AIServiceError

logger = logging.getLogger(__name__)

class ClaudeClient:
    def __init__(self, client: Optional[anthropic.AsyncAnthropic] = None):
        self.client = client or anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.ai_request_timeout_seconds
        )
        self.model = settings.claude_model
        self.max_tokens = settings.max_tokens
        self.temperature = settings.temperature

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None
    ) -> Optional[str]:
        """Run a single-turn completion.

        Returns ``None`` when the model answers with empty content so callers
        can switch to their fallback. Provider errors raise AIServiceError.
        """
        return await self.chat(
            system_prompt,
            [{"role": "user", "content": user_prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
            model=model
        )

    async def chat(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        model: Optional[str] = None
    ) -> Optional[str]:
        model_name = model or self.model
        logger.debug(f"Calling Claude model {model_name}")
        try:
            response = await self.client.messages.create(
                model=model_name,
                max_tokens=max_tokens or self.max_tokens,
                temperature=self.temperature if temperature is None else temperature,
                system=system_prompt,
                messages=messages
            )
        except anthropic.APIError as e:
            logger.error(f"Claude API error: {str(e)}")
            raise AIServiceError(f"AI provider error: {str(e)}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ).strip()
        if not text:
            logger.warning("Claude returned a response without text content")
            return None
        return text

    async def enhance_agent_prompt(
        self,
        system_prompt: str,
        doc_name: str,
        category: str,
        target_audience: str,
        initial_prompt: Optional[str],
        field_labels: List[str],
        doc_description: Optional[str] = None,
        conversation_blocks: Optional[List[Dict[str, Any]]] = None,
        field_instructions: Optional[List[Dict[str, Any]]] = None,
        model: Optional[str] = None
    ) -> Optional[str]:
        """Turn the lawyer's initial prompt into the conversational agent's prompt."""
        user_prompt = (
            "Mejora este prompt para un agente conversacional que generará un documento legal. "
            f"INFORMACIÓN: Nombre: {doc_name}, Categoría: {category}, Audiencia: {target_audience}. "
            f"PROMPT INICIAL: \"{initial_prompt or 'No definido'}\". "
            f"CAMPOS A RECOPILAR: {', '.join(field_labels)}. "
        )
        if doc_description:
            user_prompt += f"DESCRIPCIÓN DEL DOCUMENTO: {doc_description}. "
        if conversation_blocks:
            user_prompt += "BLOQUES DE CONVERSACIÓN (en orden):\n"
            for i, block in enumerate(conversation_blocks, 1):
                user_prompt += (
                    f"{i}. {block.get('block_name')}: {block.get('intro_phrase') or ''} "
                    f"[{', '.join(block.get('placeholders') or [])}]\n"
                )
        if field_instructions:
            user_prompt += "INSTRUCCIONES POR CAMPO:\n"
            user_prompt += json.dumps(field_instructions, ensure_ascii=False, indent=2) + "\n"
        user_prompt += (
            "INSTRUCCIONES: Sé claro, profesional y sigue las normas colombianas. "
            "Devuelve solo el prompt mejorado."
        )

        return await self.complete(system_prompt, user_prompt, temperature=0.7, max_tokens=1500, model=model)

    async def suggest_price(
        self,
        doc_name: str,
        category: str,
        placeholder_count: int,
        target_audience: str,
        model: Optional[str] = None
    ) -> Optional[str]:
        system_prompt = (
            "Eres un experto en precios de servicios legales en Colombia. "
            "Sugiere un precio justo en COP. Responde solo con el número (ej: 45000)."
        )
        user_prompt = (
            f"Documento: {doc_name}, Categoría: {category}, "
            f"Complejidad: {placeholder_count} campos. Audiencia: {target_audience}."
        )
        return await self.complete(system_prompt, user_prompt, temperature=0.3, max_tokens=50, model=model)

    async def improve_template(
        self,
        template_content: str,
        doc_name: Optional[str],
        doc_category: Optional[str],
        model: Optional[str] = None
    ) -> Optional[str]:
        system_prompt = """Eres un experto en redacción de documentos legales en Colombia. Tu tarea es mejorar plantillas de documentos legales para hacerlas más completas, precisas y profesionales.

REGLAS IMPORTANTES:
1. MANTÉN TODOS LOS PLACEHOLDERS existentes en el formato {{nombre_variable}}
2. NO elimines ningún placeholder que ya existe
3. Puedes agregar nuevos placeholders si es necesario para completar el documento
4. Mejora la redacción legal, estructura y claridad
5. Asegúrate de que el documento sea válido bajo la ley colombiana
6. RESPONDE ÚNICAMENTE CON LA PLANTILLA MEJORADA EN TEXTO PLANO, sin markdown ni explicaciones"""

        user_prompt = (
            f"Documento: {doc_name or 'Sin nombre'} - Categoría: {doc_category or 'General'}\n\n"
            f"{template_content}\n\n"
            "Mejora esta plantilla manteniendo todos los placeholders {{variable}} existentes."
        )
        return await self.complete(system_prompt, user_prompt, temperature=0.3, max_tokens=4000, model=model)

    async def copilot_suggest(self, text: str, document_type: str, context: Optional[str]) -> Optional[str]:
        """Short answer for the copilot chat panel."""
        system_prompt = f"""Eres un asistente legal experto en derecho colombiano. Tu tarea es proporcionar sugerencias breves y relevantes para mejorar documentos legales.

Reglas:
- Responde en español
- Sé muy conciso (máximo 2-3 oraciones)
- Enfócate en precisión legal y claridad
- Si detectas errores o inconsistencias, señálalos

Tipo de documento: {document_type or 'legal genérico'}
Contexto adicional: {context or 'ninguno'}"""

        return await self.complete(
            system_prompt,
            f"Analiza este fragmento y proporciona una sugerencia breve:\n\n\"{text}\"",
            max_tokens=200
        )

    async def copilot_autocomplete(self, text: str, document_type: str) -> Optional[str]:
        system_prompt = f"""Eres un asistente legal colombiano. Completa la siguiente cláusula o texto legal de manera profesional y precisa.

Reglas:
- Continúa el texto de forma natural, sin repetir lo ya escrito
- Usa lenguaje jurídico apropiado
- Limita tu respuesta a 1-2 párrafos

Tipo de documento: {document_type or 'contrato'}"""

        return await self.complete(system_prompt, f"Completa este texto legal:\n\n\"{text}\"", max_tokens=300)

    async def copilot_improve(self, text: str) -> Optional[str]:
        system_prompt = """Eres un editor legal experto. Mejora el siguiente texto legal manteniendo su significado pero optimizando:
- Claridad y precisión
- Estructura de las oraciones
- Uso correcto de términos jurídicos
- Gramática y ortografía

Devuelve el texto mejorado directamente, sin explicaciones."""

        return await self.complete(system_prompt, text, temperature=0.3, max_tokens=2000)

from langchain_anthropic import ChatAnthropic
from langchain_core.prompts import ChatPromptTemplate
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.exceptions import OutputParserException
from typing import Dict, Any, List, Optional
import logging
from ..config import settings
from ..exceptions import AIServiceError

logger = logging.getLogger(__name__)

class LangChainConfig:
    def __init__(self):
        self._llm = None

    @property
    def anthropic_llm(self) -> ChatAnthropic:
        if self._llm is None:
            self._llm = self._create_anthropic_llm()
        return self._llm

    def _create_anthropic_llm(self) -> ChatAnthropic:
        return ChatAnthropic(
            model=settings.claude_model,
            anthropic_api_key=settings.anthropic_api_key,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.ai_request_timeout_seconds
        )

class AgentPrompts:
    @staticmethod
    def get_conversation_blocks_prompt() -> ChatPromptTemplate:
        return ChatPromptTemplate.from_messages([
            ("system", """Eres un experto en diseño conversacional para la recolección de datos legales en Colombia.
            Agrupa los placeholders de una plantilla en bloques de conversación ordenados y naturales.

            Reglas:
            1. Cada placeholder debe aparecer en exactamente un bloque
            2. Agrupa datos relacionados (partes, inmueble, condiciones económicas, fechas)
            3. Cada bloque tiene una frase introductoria amable y profesional
            4. Entre 2 y 6 placeholders por bloque cuando sea posible

            Responde únicamente con JSON con esta forma:
            {{"suggestedBlocks": [{{"blockName": "Información de las Partes",
               "introPhrase": "Comencemos con la información básica de las partes involucradas",
               "placeholders": ["nombre_arrendador", "cedula_arrendador"],
               "reasoning": "Datos de identificación agrupados"}}],
              "overallStrategy": "..."}}"""),
            ("human", """Documento: {doc_name}
            Descripción: {doc_description}
            Audiencia: {audience}

            Placeholders disponibles:
            {placeholder_list}

            Fragmento de plantilla (para contexto):
            {template_excerpt}

            Sugiere una estructura de bloques de conversación óptima para recopilar esta información.""")
        ])

    @staticmethod
    def get_risk_detection_prompt() -> ChatPromptTemplate:
        return ChatPromptTemplate.from_messages([
            ("system", """Eres un experto en revisión de documentos legales colombianos. Analiza el texto en busca de:
            1. Riesgos legales potenciales
            2. Cláusulas ambiguas o problemáticas
            3. Inconsistencias internas
            4. Posibles conflictos con la legislación colombiana
            5. Términos que podrían ser desfavorables

            Responde únicamente con JSON:
            {{"overallRisk": "bajo|medio|alto|crítico",
              "risks": [{{"type": "...", "severity": "info|warning|error", "description": "...",
                         "suggestion": "...", "affectedText": "..."}}],
              "summary": "..."}}"""),
            ("human", "Tipo de documento: {document_type}\n\nAnaliza los riesgos en este documento:\n\n{text}")
        ])

    @staticmethod
    def get_inline_analysis_prompt() -> ChatPromptTemplate:
        return ChatPromptTemplate.from_messages([
            ("system", """Eres un editor legal experto. Revisa el documento y propone mejoras puntuales.
            Cada sugerencia debe citar textualmente el fragmento original para poder reemplazarlo.

            Responde únicamente con JSON:
            {{"suggestions": [{{"original": "texto exacto", "suggestion": "texto mejorado",
                               "reason": "...", "type": "improvement|error|risk"}}]}}"""),
            ("human", "Tipo de documento: {document_type}\n\n{text}")
        ])

class StructuredChains:
    """Prompt | model | JSON parser pipelines for answers that must be structured."""

    def __init__(self, config: Optional[LangChainConfig] = None):
        self.config = config or LangChainConfig()
        self.parser = JsonOutputParser()

    async def _run(self, prompt: ChatPromptTemplate, variables: Dict[str, Any]) -> Dict[str, Any]:
        chain = prompt | self.config.anthropic_llm | self.parser
        try:
            result = await chain.ainvoke(variables)
        except OutputParserException as e:
            logger.error(f"Model answer is not valid JSON: {str(e)}")
            raise AIServiceError("Failed to parse AI response as JSON") from e
        except Exception as e:
            logger.error(f"Structured chain failed: {str(e)}")
            raise AIServiceError(f"AI provider error: {str(e)}") from e

        if not isinstance(result, dict):
            raise AIServiceError("Invalid response structure from AI")
        return result

    async def suggest_conversation_blocks(
        self,
        doc_name: str,
        doc_description: Optional[str],
        target_audience: str,
        placeholders: List[str],
        doc_template: str
    ) -> Dict[str, Any]:
        audience = (
            "Empresas y personas jurídicas" if target_audience == "empresas" else "Personas naturales"
        )
        return await self._run(AgentPrompts.get_conversation_blocks_prompt(), {
            "doc_name": doc_name,
            "doc_description": doc_description or "N/A",
            "audience": audience,
            "placeholder_list": "\n".join(f"- {name}" for name in placeholders),
            "template_excerpt": doc_template[:800]
        })

    async def detect_risks(self, text: str, document_type: str) -> Dict[str, Any]:
        return await self._run(AgentPrompts.get_risk_detection_prompt(), {
            "text": text,
            "document_type": document_type
        })

    async def analyze_inline(self, text: str, document_type: str) -> Dict[str, Any]:
        return await self._run(AgentPrompts.get_inline_analysis_prompt(), {
            "text": text,
            "document_type": document_type
        })

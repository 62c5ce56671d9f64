import asyncio

import pytest

from praxis.exceptions import AIServiceError
from praxis.services.claude_client import ClaudeClient
from praxis.services.agent_processor import (
    AgentAIService, fallback_price, format_cop, parse_price
)
from fakes import FakeChains, FakeClaude

TEMPLATE = (
    "Entre {{nombre_arrendador}} y {{nombre_arrendatario}} se celebra contrato "
    "sobre el inmueble ubicado en {{direccion_inmueble}} por {{valor_canon}}."
)


def run(coro):
    return asyncio.run(coro)


class SlowPrimaryClaude(FakeClaude):
    """Hangs on the block-aware prompt so the primary processor times out."""

    async def enhance_agent_prompt(self, *args, **kwargs):
        if "conversation_blocks" in kwargs:
            await asyncio.sleep(1)
        return await super().enhance_agent_prompt(*args, **kwargs)


def test_price_helpers():
    assert format_cop(45000) == "$45.000 COP"
    assert format_cop(1250000) == "$1.250.000 COP"
    assert parse_price("El precio sugerido es $45.000") == 45000
    assert parse_price("sin precio") == 0
    assert parse_price(None) == 0
    assert fallback_price(4) == 31000
    assert fallback_price(1000) == 500000


def test_process_agent_uses_ai_answers():
    claude = FakeClaude(enhance_agent_prompt="Prompt mejorado", suggest_price="60000")
    service = AgentAIService(claude=claude, chains=FakeChains())

    result = run(service.process_agent("Contrato de arrendamiento", TEMPLATE, category="Inmobiliario"))

    assert result["success"] is True
    assert result["enhanced_prompt"] == "Prompt mejorado"
    assert [p["field"] for p in result["placeholders"]] == [
        "nombre_arrendador", "nombre_arrendatario", "direccion_inmueble", "valor_canon"
    ]
    assert result["suggested_price"] == 60000
    assert result["suggested_price_display"] == "$60.000 COP"
    assert result["processing_details"]["placeholders_found"] == 4


def test_process_agent_sends_document_description():
    claude = FakeClaude(enhance_agent_prompt="Prompt", suggest_price="45000")
    service = AgentAIService(claude=claude, chains=FakeChains())

    run(service.process_agent("Contrato de arrendamiento", TEMPLATE, doc_desc="Vivienda urbana en Bogotá"))
    run(service.reprocess_with_fallback(
        {"doc_name": "Contrato de arrendamiento", "doc_template": TEMPLATE, "doc_desc": "Local comercial"}
    ))

    descriptions = [kwargs["doc_description"] for _, _, kwargs in claude.calls_to("enhance_agent_prompt")]
    assert descriptions == ["Vivienda urbana en Bogotá", "Local comercial"]


def test_enhance_prompt_includes_description():
    class RecordingClaudeClient(ClaudeClient):
        async def complete(self, system_prompt, user_prompt, **kwargs):
            self.user_prompt = user_prompt
            return "ok"

    claude = RecordingClaudeClient(client=object())
    run(claude.enhance_agent_prompt(
        "sistema", "Poder", "Civil", "personas", None, ["Otorgante"], doc_description="Poder para vender un vehículo"
    ))

    assert "DESCRIPCIÓN DEL DOCUMENTO: Poder para vender un vehículo" in claude.user_prompt
    assert "Otorgante" in claude.user_prompt


def test_process_agent_falls_back_when_ai_fails():
    claude = FakeClaude(enhance_agent_prompt=AIServiceError("down"), suggest_price="999999999")
    service = AgentAIService(claude=claude, chains=FakeChains())

    result = run(service.process_agent("Contrato de arrendamiento", TEMPLATE, category="Inmobiliario"))

    assert result["enhanced_prompt"].startswith("Eres Lexi")
    assert "Nombre Arrendador" in result["enhanced_prompt"]
    assert result["suggested_price"] == 25000 + 4 * 1500
    assert "algoritmo" in result["price_justification"]


def test_process_agent_requires_name_and_template():
    service = AgentAIService(claude=FakeClaude(), chains=FakeChains())

    with pytest.raises(ValueError):
        run(service.process_agent("", TEMPLATE))
    with pytest.raises(ValueError):
        run(service.process_agent("Contrato", ""))


def test_reprocess_uses_primary_processor_with_blocks():
    claude = FakeClaude(enhance_agent_prompt="Prompt con bloques", suggest_price="45000")
    service = AgentAIService(claude=claude, chains=FakeChains())
    payload = {
        "doc_name": "Contrato de arrendamiento",
        "doc_template": TEMPLATE,
        "conversation_blocks": [
            {"block_name": "Partes", "intro_phrase": "Hablemos de las partes",
             "placeholders": ["nombre_arrendador", "nombre_arrendatario"]}
        ],
        "field_instructions": [{"field_name": "valor_canon", "help_text": "En pesos"}]
    }

    result = run(service.reprocess_with_fallback(payload))

    assert result["enhanced_prompt"] == "Prompt con bloques"
    assert result["processing_details"]["conversation_blocks"] == 1
    assert len(claude.calls_to("enhance_agent_prompt")) == 1


def test_reprocess_falls_back_on_missing_prompt():
    claude = FakeClaude(enhance_agent_prompt=None, suggest_price="45000")
    service = AgentAIService(claude=claude, chains=FakeChains())

    result = run(service.reprocess_with_fallback({"doc_name": "Poder", "doc_template": "Yo {{nombre}}"}))

    assert result["enhanced_prompt"].startswith("Eres Lexi")
    assert len(claude.calls_to("enhance_agent_prompt")) == 2
    assert "conversation_blocks" not in result["processing_details"]


def test_reprocess_falls_back_on_timeout():
    claude = SlowPrimaryClaude(enhance_agent_prompt="Prompt simple", suggest_price="45000")
    service = AgentAIService(claude=claude, chains=FakeChains())

    result = run(service.reprocess_with_fallback(
        {"doc_name": "Poder", "doc_template": "Yo {{nombre}}"}, timeout=0.05
    ))

    assert result["enhanced_prompt"] == "Prompt simple"
    assert result["suggested_price"] == 45000


def test_suggest_conversation_blocks_defaults_and_missing():
    chains = FakeChains(suggest_conversation_blocks={
        "suggestedBlocks": [
            {"blockName": "Partes", "introPhrase": "Empecemos por las partes",
             "placeholders": ["nombre_arrendador", "nombre_arrendatario"], "reasoning": "Identificación"},
            {"placeholders": "valor_canon"}
        ],
        "overallStrategy": "De lo general a lo particular"
    })
    service = AgentAIService(claude=FakeClaude(), chains=chains)

    result = run(service.suggest_conversation_blocks("Contrato", TEMPLATE))

    blocks = result["conversation_blocks"]
    assert blocks[0]["name"] == "Partes"
    assert blocks[1] == {"name": "Bloque 2", "introduction": "", "placeholders": [], "reasoning": None}
    assert result["strategy"] == "De lo general a lo particular"
    assert result["missing_placeholders"] == ["direccion_inmueble", "valor_canon"]


def test_suggest_conversation_blocks_rejects_bad_structure():
    service = AgentAIService(claude=FakeClaude(), chains=FakeChains(suggest_conversation_blocks={"blocks": []}))

    with pytest.raises(AIServiceError):
        run(service.suggest_conversation_blocks("Contrato", TEMPLATE))


def test_suggest_conversation_blocks_needs_placeholders():
    service = AgentAIService(claude=FakeClaude(), chains=FakeChains())

    with pytest.raises(ValueError):
        run(service.suggest_conversation_blocks("Contrato", "Texto sin campos"))


def test_improve_template_reports_lost_placeholders():
    claude = FakeClaude(improve_template="Contrato entre {{nombre_arrendador}} y {{nombre_arrendatario}}.")
    service = AgentAIService(claude=claude, chains=FakeChains())

    result = run(service.improve_template(TEMPLATE, doc_name="Contrato"))

    assert result["original_length"] == len(TEMPLATE)
    assert result["improved_length"] == len(result["improved_template"])
    assert result["lost_placeholders"] == ["direccion_inmueble", "valor_canon"]


def test_improve_template_errors():
    service = AgentAIService(claude=FakeClaude(improve_template=None), chains=FakeChains())

    with pytest.raises(ValueError):
        run(service.improve_template("   "))
    with pytest.raises(AIServiceError):
        run(service.improve_template(TEMPLATE))

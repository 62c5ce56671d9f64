import pytest

from praxis.exceptions import NotFoundError
from praxis.models.database import ConversationBlock, FieldInstruction
from praxis.models.schemas import AgentStatus
from praxis.services import agent_service
from praxis.services.agent_service import can_transition

TEMPLATE = "Yo, {{nombre_poderdante}}, otorgo poder a {{nombre_apoderado}} para {{facultades}}."


def agent_payload(**overrides):
    agent_data = {
        "name": "Poder General",
        "description": "Poder amplio para trámites",
        "category": "Civil",
        "target_audience": "personas",
        "template_content": TEMPLATE,
        "suggested_price": 40000
    }
    agent_data.update(overrides)
    return {
        "agent_data": agent_data,
        "conversation_blocks": [
            {"blockName": "Poderdante", "introPhrase": "Primero, tus datos",
             "placeholders": ["nombre_poderdante"]},
            {"blockName": "Apoderado", "introPhrase": "Ahora el apoderado",
             "placeholders": ["nombre_apoderado", "facultades"]}
        ],
        "field_instructions": [
            {"fieldName": "facultades", "helpText": "Describe los trámites autorizados"}
        ]
    }


def create_agent(db, lawyer, **fields):
    data = {"name": "Poder General", "template_content": TEMPLATE}
    data.update(fields)
    agent, _, _, _ = agent_service.save_agent_with_blocks(db, lawyer, data)
    return agent


def test_status_transition_rules():
    assert can_transition("draft", "pending_review", is_admin=False)
    assert not can_transition("pending_review", "active", is_admin=False)
    assert can_transition("pending_review", "active", is_admin=True)
    assert can_transition("pending_review", "draft", is_admin=True)
    assert can_transition("suspended", "active", is_admin=True)
    assert not can_transition("draft", "active", is_admin=True)


def test_save_agent_with_blocks_orders_blocks(db, lawyer):
    agent, blocks_saved, instructions_saved, warnings = agent_service.save_agent_with_blocks(
        db,
        lawyer,
        {"name": "Poder General", "template_content": TEMPLATE},
        [
            {"block_name": "Poderdante", "intro_phrase": "Tus datos", "placeholders": ["nombre_poderdante"]},
            {"block_name": "Apoderado", "placeholders": ["nombre_apoderado"]}
        ],
        [{"field_name": "facultades", "help_text": "Trámites"}]
    )

    assert agent.status == "draft"
    assert agent.created_by == lawyer.id
    assert (blocks_saved, instructions_saved, warnings) == (2, 1, [])
    assert [(b.block_order, b.block_name) for b in agent.conversation_blocks] == [
        (1, "Poderdante"), (2, "Apoderado")
    ]
    assert agent.conversation_blocks[1].intro_phrase == ""


def test_failed_block_insert_keeps_agent(db, lawyer):
    agent, blocks_saved, instructions_saved, warnings = agent_service.save_agent_with_blocks(
        db,
        lawyer,
        {"name": "Poder General", "template_content": TEMPLATE},
        [{"block_name": None, "placeholders": []}],
        [{"field_name": "facultades"}]
    )

    assert agent.id is not None
    assert blocks_saved == 0
    assert instructions_saved == 1
    assert warnings == ["Conversation blocks could not be saved"]
    assert agent_service.get_agent(db, agent.id).name == "Poder General"


def test_update_agent_whitelist_and_admin_fields(db, lawyer, admin):
    agent = create_agent(db, lawyer)

    updated = agent_service.update_agent(
        db, agent.id, {"description": "Nueva", "created_by": 999, "name": None}, lawyer
    )
    assert updated.description == "Nueva"
    assert updated.created_by == lawyer.id
    assert updated.name == "Poder General"

    with pytest.raises(PermissionError):
        agent_service.update_agent(db, agent.id, {"final_price": 90000}, lawyer)

    updated = agent_service.update_agent(db, agent.id, {"price": 90000}, admin)
    assert updated.final_price == 90000


def test_update_agent_status_through_admin(db, lawyer, admin):
    agent = create_agent(db, lawyer)

    with pytest.raises(ValueError):
        agent_service.update_agent(db, agent.id, {"status": "active"}, admin)

    agent_service.change_agent_status(db, agent.id, AgentStatus.PENDING_REVIEW, lawyer)
    updated = agent_service.update_agent(db, agent.id, {"status": "active"}, admin)
    assert updated.status == "active"


def test_agents_are_private_to_their_creator(db, lawyer, other_lawyer, admin):
    agent = create_agent(db, lawyer)

    with pytest.raises(PermissionError):
        agent_service.get_agent(db, agent.id, other_lawyer)
    assert agent_service.get_agent(db, agent.id, admin).id == agent.id
    with pytest.raises(NotFoundError):
        agent_service.get_agent(db, 12345, lawyer)

    assert agent_service.list_agents(db, other_lawyer) == []
    assert [a.id for a in agent_service.list_agents(db, admin)] == [agent.id]


def test_replace_structure_and_delete_cascade(db, lawyer):
    agent, _, _, _ = agent_service.save_agent_with_blocks(
        db, lawyer, {"name": "Poder", "template_content": TEMPLATE},
        [{"block_name": "Uno", "placeholders": []}],
        [{"field_name": "facultades"}]
    )

    agent = agent_service.replace_conversation_structure(
        db, agent.id, lawyer,
        conversation_blocks=[{"block_name": "Nuevo", "placeholders": ["facultades"]}]
    )
    assert [b.block_name for b in agent.conversation_blocks] == ["Nuevo"]
    assert [i.field_name for i in agent.field_instructions] == ["facultades"]

    agent_service.delete_agent(db, agent.id, lawyer)
    assert db.query(ConversationBlock).count() == 0
    assert db.query(FieldInstruction).count() == 0


def test_save_agent_api(client, lawyer, auth_headers):
    response = client.post("/api/v1/agents", json=agent_payload(), headers=auth_headers(lawyer))

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["blocks_saved"] == 2
    assert data["instructions_saved"] == 1
    assert data["agent"]["status"] == "draft"

    detail = client.get(f"/api/v1/agents/{data['agent']['id']}", headers=auth_headers(lawyer)).json()
    assert [b["block_name"] for b in detail["conversation_blocks"]] == ["Poderdante", "Apoderado"]
    assert detail["field_instructions"][0]["help_text"] == "Describe los trámites autorizados"


def test_save_agent_requires_permission(client, basic_lawyer, auth_headers):
    response = client.post("/api/v1/agents", json=agent_payload(), headers=auth_headers(basic_lawyer))
    assert response.status_code == 403


def test_agents_api_requires_token(client):
    assert client.get("/api/v1/agents").status_code in (401, 403)


def test_agent_lifecycle_api(client, lawyer, admin, auth_headers):
    agent_id = client.post("/api/v1/agents", json=agent_payload(), headers=auth_headers(lawyer)).json()["agent"]["id"]

    # lawyers cannot publish directly
    response = client.patch(f"/api/v1/agents/{agent_id}", json={"status": "active"}, headers=auth_headers(lawyer))
    assert response.status_code == 403

    response = client.post(
        f"/api/v1/agents/{agent_id}/status", json={"status": "pending_review"}, headers=auth_headers(lawyer)
    )
    assert response.json()["status"] == "pending_review"

    response = client.post(
        f"/api/v1/agents/{agent_id}/status", json={"status": "active"}, headers=auth_headers(lawyer)
    )
    assert response.status_code == 400

    response = client.post(
        f"/api/v1/agents/{agent_id}/status", json={"status": "active"}, headers=auth_headers(admin)
    )
    assert response.json()["status"] == "active"

    public = client.get("/api/v1/agents/public").json()
    assert [a["name"] for a in public] == ["Poder General"]
    assert "template_content" not in public[0]

    listed = client.get("/api/v1/agents", params={"status": "active"}, headers=auth_headers(lawyer)).json()
    assert [a["id"] for a in listed] == [agent_id]

    assert client.delete(f"/api/v1/agents/{agent_id}", headers=auth_headers(lawyer)).status_code == 204
    assert client.get(f"/api/v1/agents/{agent_id}", headers=auth_headers(lawyer)).status_code == 404


def test_replace_structure_api(client, lawyer, auth_headers):
    agent_id = client.post("/api/v1/agents", json=agent_payload(), headers=auth_headers(lawyer)).json()["agent"]["id"]

    response = client.put(
        f"/api/v1/agents/{agent_id}/structure",
        json={"conversation_blocks": [{"blockName": "Todo", "placeholders": ["facultades"]}]},
        headers=auth_headers(lawyer)
    )

    assert response.status_code == 200
    data = response.json()
    assert [b["block_name"] for b in data["conversation_blocks"]] == ["Todo"]
    assert len(data["field_instructions"]) == 1


def test_placeholder_endpoints(client, lawyer, auth_headers):
    response = client.post(
        "/api/v1/agents/placeholders/extract", json={"text": TEMPLATE}, headers=auth_headers(lawyer)
    )
    assert [p["field"] for p in response.json()] == ["nombre_poderdante", "nombre_apoderado", "facultades"]

    response = client.post(
        "/api/v1/agents/placeholders/detect", json={"text": "Firma: ____ en [ciudad]"}, headers=auth_headers(lawyer)
    )
    assert [p["kind"] for p in response.json()] == ["underscores", "brackets"]


def test_process_agent_api(client, lawyer, auth_headers, ai_service, fake_claude):
    response = client.post(
        "/api/v1/agents/ai/process",
        json={"doc_name": "Poder General", "doc_template": TEMPLATE, "category": "Civil"},
        headers=auth_headers(lawyer)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["suggested_price"] == 45000
    assert data["suggested_price_display"] == "$45.000 COP"
    assert len(data["placeholders"]) == 3

    # model comes from the seeded system configuration
    _, _, kwargs = fake_claude.calls_to("enhance_agent_prompt")[0]
    assert kwargs["model"] == data["processing_details"]["model_used"]


def test_improve_template_api_rejects_empty(client, lawyer, auth_headers, ai_service):
    response = client.post(
        "/api/v1/agents/ai/improve-template", json={"template_content": " "}, headers=auth_headers(lawyer)
    )
    assert response.status_code == 400


def test_suggest_blocks_api_maps_ai_failure(client, lawyer, auth_headers, ai_service, fake_chains):
    fake_chains.responses["suggest_conversation_blocks"] = {"nothing": True}

    response = client.post(
        "/api/v1/agents/ai/suggest-blocks",
        json={"doc_name": "Poder", "doc_template": TEMPLATE},
        headers=auth_headers(lawyer)
    )
    assert response.status_code == 502

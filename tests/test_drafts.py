import asyncio

import pytest

from praxis.exceptions import NotFoundError
from praxis.models.database import AgentDraft, LegalAgent
from praxis.services import draft_service
from praxis.services.draft_service import DraftAutosaver, can_enter_step

FORM = {
    "doc_name": "Contrato de Arrendamiento",
    "doc_desc": "Vivienda urbana",
    "doc_cat": "Inmobiliario",
    "doc_template": "Entre {{arrendador}} y {{arrendatario}}"
}


def test_save_draft_defaults_and_max_step(db, lawyer):
    draft = draft_service.save_draft(db, lawyer.id, "Mi borrador", 3, FORM)

    assert draft.max_step_reached == 3
    assert draft.target_audience == "personas"
    assert draft.sla_hours == 4
    assert draft.sla_enabled is True
    assert draft.ai_results == {}

    draft = draft_service.save_draft(db, lawyer.id, "Mi borrador", 2, FORM, draft_id=draft.id)
    assert draft.step_completed == 2
    assert draft.max_step_reached == 3
    assert db.query(AgentDraft).count() == 1


def test_save_draft_validates_step_and_owner(db, lawyer, other_lawyer):
    with pytest.raises(ValueError):
        draft_service.save_draft(db, lawyer.id, "Borrador", 6, FORM)

    draft = draft_service.save_draft(db, lawyer.id, "Borrador", 1, FORM)
    with pytest.raises(NotFoundError):
        draft_service.save_draft(db, other_lawyer.id, "Robado", 2, FORM, draft_id=draft.id)
    with pytest.raises(NotFoundError):
        draft_service.get_draft(db, draft.id, other_lawyer.id)


def test_step_gating():
    draft = AgentDraft(max_step_reached=3)

    assert can_enter_step(draft, 1)
    assert can_enter_step(draft, 4)
    assert not can_enter_step(draft, 5)
    assert not can_enter_step(draft, 0)
    assert can_enter_step(AgentDraft(max_step_reached=5), 5)
    assert not can_enter_step(AgentDraft(max_step_reached=5), 6)
    assert can_enter_step(None, 1)
    assert not can_enter_step(None, 2)


def test_publish_draft_creates_agent(db, lawyer):
    draft = draft_service.save_draft(
        db, lawyer.id, "Borrador", 5, FORM,
        ai_results={"enhanced_prompt": "Prompt IA", "suggested_price": 52000}
    )

    agent, blocks_saved, _, warnings = draft_service.publish_draft(
        db, draft.id, lawyer,
        conversation_blocks=[{"block_name": "Partes", "placeholders": ["arrendador", "arrendatario"]}]
    )

    assert agent.name == "Contrato de Arrendamiento"
    assert agent.ai_prompt == "Prompt IA"
    assert agent.suggested_price == 52000
    assert [p["field"] for p in agent.placeholder_fields] == ["arrendador", "arrendatario"]
    assert blocks_saved == 1
    assert warnings == []
    assert db.query(AgentDraft).count() == 0


def test_publish_incomplete_draft_fails(db, lawyer):
    draft = draft_service.save_draft(db, lawyer.id, "Borrador", 1, {"doc_name": "Sin plantilla"})

    with pytest.raises(ValueError):
        draft_service.publish_draft(db, draft.id, lawyer)
    assert db.query(LegalAgent).count() == 0


def test_autosave_debounces_to_last_edit(db, lawyer):
    saver = DraftAutosaver(delay=0.01)

    async def scenario():
        saver.schedule(lawyer.id, {"draft_name": "Auto", "step_completed": 1, "form_data": {"doc_name": "Uno"}})
        last = saver.schedule(lawyer.id, {"draft_name": "Auto", "step_completed": 2, "form_data": {"doc_name": "Dos"}})
        return await last

    draft_id = asyncio.run(scenario())

    drafts = db.query(AgentDraft).all()
    assert [d.id for d in drafts] == [draft_id]
    assert drafts[0].doc_name == "Dos"
    assert saver.draft_id_for(saver.key_for(lawyer.id, None, "Auto")) == draft_id


def test_autosave_reuses_draft_created_by_earlier_tick(db, lawyer):
    saver = DraftAutosaver(delay=0.01)

    async def scenario():
        first = await saver.schedule(lawyer.id, {"draft_name": "Auto", "form_data": {"doc_name": "Uno"}})
        second = await saver.schedule(lawyer.id, {"draft_name": "Auto", "form_data": {"doc_name": "Dos"}})
        return first, second

    first, second = asyncio.run(scenario())

    assert first == second
    assert db.query(AgentDraft).count() == 1


def test_autosave_skips_while_saving_and_drops_failures(db, lawyer):
    saver = DraftAutosaver(delay=0.01)

    async def busy():
        saver.is_saving = True
        return await saver.schedule(lawyer.id, {"draft_name": "Auto", "form_data": {}})

    assert asyncio.run(busy()) is None
    assert db.query(AgentDraft).count() == 0

    saver.is_saving = False

    async def failing():
        return await saver.schedule(lawyer.id, {"draft_name": "Auto", "step_completed": 9, "form_data": {}})

    assert asyncio.run(failing()) is None
    assert saver.is_saving is False
    assert db.query(AgentDraft).count() == 0


def test_forget_drops_pending_saves_and_ids(db, lawyer):
    saver = DraftAutosaver(delay=0.01)

    async def scenario():
        draft_id = await saver.schedule(lawyer.id, {"draft_name": "Auto", "form_data": {"doc_name": "Uno"}})
        saver.schedule(lawyer.id, {"draft_id": draft_id, "draft_name": "Auto", "form_data": {"doc_name": "Dos"}})
        saver.forget(lawyer.id, draft_id)
        pending = saver.debouncer.is_pending(saver.key_for(lawyer.id, draft_id, "Auto"))
        await asyncio.sleep(0.05)
        return draft_id, pending

    draft_id, pending = asyncio.run(scenario())

    assert pending is False
    assert saver.draft_id_for(saver.key_for(lawyer.id, None, "Auto")) is None
    db.expire_all()
    assert db.get(AgentDraft, draft_id).doc_name == "Uno"


def test_draft_api_flow(client, lawyer, auth_headers):
    headers = auth_headers(lawyer)
    response = client.post("/api/v1/drafts", json={
        "draft_name": "Arriendo",
        "step_completed": 2,
        "form_data": {"docName": "Contrato de Arrendamiento", "docTemplate": "Entre {{arrendador}}"}
    }, headers=headers)

    assert response.status_code == 200
    draft_id = response.json()["draft_id"]
    assert response.json()["max_step_reached"] == 2

    step = client.get(f"/api/v1/drafts/{draft_id}/steps/3", headers=headers).json()
    assert step == {"step": 3, "allowed": True, "max_step_reached": 2}
    assert client.get(f"/api/v1/drafts/{draft_id}/steps/4", headers=headers).json()["allowed"] is False

    listed = client.get("/api/v1/drafts", headers=headers).json()
    assert [d["doc_name"] for d in listed] == ["Contrato de Arrendamiento"]

    response = client.post(f"/api/v1/drafts/{draft_id}/publish", json={}, headers=headers)
    assert response.status_code == 200
    assert response.json()["agent"]["template_content"] == "Entre {{arrendador}}"
    assert client.get(f"/api/v1/drafts/{draft_id}", headers=headers).status_code == 404


def test_autosave_api_schedules(client, lawyer, auth_headers, autosaver):
    headers = auth_headers(lawyer)

    response = client.post("/api/v1/drafts/autosave", json={
        "draft_name": "Arriendo", "step_completed": 1, "form_data": {"docName": "Contrato"}
    }, headers=headers)
    assert response.status_code == 202
    assert response.json() == {"scheduled": True, "delay_seconds": 60, "draft_id": None}

    response = client.post("/api/v1/drafts/autosave", json={
        "draft_name": "Arriendo", "step_completed": 7
    }, headers=headers)
    assert response.status_code == 400


def test_wizard_info(client):
    assert client.get("/api/v1/drafts/wizard").json()["steps"] == 5


def test_deleting_draft_cancels_its_autosave(client, lawyer, auth_headers, autosaver):
    headers = auth_headers(lawyer)
    draft_id = client.post("/api/v1/drafts", json={
        "draft_name": "Arriendo", "step_completed": 1, "form_data": {"docName": "Contrato"}
    }, headers=headers).json()["draft_id"]

    client.post("/api/v1/drafts/autosave", json={
        "draft_id": draft_id, "draft_name": "Arriendo", "step_completed": 2, "form_data": {"docName": "Contrato"}
    }, headers=headers)
    key = autosaver.key_for(lawyer.id, draft_id, "Arriendo")
    assert autosaver.debouncer.is_pending(key)

    assert client.delete(f"/api/v1/drafts/{draft_id}", headers=headers).status_code == 204
    assert not autosaver.debouncer.is_pending(key)

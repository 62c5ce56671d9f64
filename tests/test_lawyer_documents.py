import pytest

from praxis.exceptions import NotFoundError
from praxis.services import lawyer_documents
from praxis.services.lawyer_documents import html_to_text, sanitize_html
from praxis.services.pdf_export import build_pdf, footer_lines
from praxis.models.database import DocumentToken


def test_sanitize_html_strips_active_content():
    dirty = (
        '<p onclick="robar()">Cláusula primera</p>'
        '<script>alert(1)</script><style>p{color:red}</style>'
        '<a href="javascript:evil()">enlace</a><img src=javascript:x() onerror=\'y()\'>'
        '<iframe src="https://malo.co"></iframe>'
    )

    clean = sanitize_html(dirty)

    assert clean.startswith("<p>Cláusula primera</p><a")
    assert "enlace</a>" in clean
    for fragment in ("onclick", "script", "alert", "color:red", "href", "<img", "iframe", "malo.co"):
        assert fragment not in clean


def test_sanitize_html_handles_obfuscated_payloads():
    assert sanitize_html("<img/onerror=alert(1) src=x>") == ""

    clean = sanitize_html('<a href="jav&#x61;script:alert(1)">x</a>')
    assert "href" not in clean
    assert "x</a>" in clean

    clean = sanitize_html('<a href="JaVaScRiPt:alert(1)" onmouseover=alert(2)>y</a>')
    assert "alert" not in clean


def test_sanitize_html_keeps_editor_formatting():
    clean = sanitize_html(
        '<p class="MsoNormal ql-align-center" style="color: #ff0000; mso-line-height-rule: exactly">'
        '<strong>Primera.</strong> <a href="https://praxis.legal/terminos" target="_blank">Términos</a></p>'
    )

    assert 'class="ql-align-center"' in clean
    assert "Mso" not in clean
    assert "mso-" not in clean
    assert "#ff0000" in clean
    assert "<strong>Primera.</strong>" in clean
    assert 'href="https://praxis.legal/terminos"' in clean
    assert 'rel="noopener noreferrer"' in clean


def test_sanitize_html_keeps_plain_text_untouched():
    text = "<p>El pago one = 5 se hará en href=javascript:no lugar.</p>"
    assert sanitize_html(text) == text


def test_html_to_text():
    assert html_to_text("<h1>Título</h1><p>Uno<br>dos</p><p>Tres &amp; cuatro</p>") == (
        "Título\n\nUno\ndos\n\nTres & cuatro"
    )


def test_document_crud(db, lawyer, other_lawyer):
    with pytest.raises(ValueError):
        lawyer_documents.create_document(db, lawyer.id, {"title": "   "})

    first = lawyer_documents.create_document(db, lawyer.id, {
        "title": " Contrato laboral ", "document_type": "Laboral", "content": "<p>Hola<script>x</script></p>"
    })
    second = lawyer_documents.create_document(db, lawyer.id, {"title": "Poder", "document_type": "Civil"})

    assert first.title == "Contrato laboral"
    assert first.content == "<p>Hola</p>"
    assert first.markdown_content == first.content
    assert [d.id for d in lawyer_documents.list_documents(db, lawyer.id)] == [second.id, first.id]
    assert [d.id for d in lawyer_documents.list_documents(db, lawyer.id, "LABORAL")] == [first.id]
    assert lawyer_documents.list_documents(db, other_lawyer.id) == []

    with pytest.raises(NotFoundError):
        lawyer_documents.get_document(db, first.id, other_lawyer.id)

    updated = lawyer_documents.update_document(db, first.id, lawyer.id, {
        "content": '<p onmouseover="x()">Nuevo</p>', "price": 20000, "title": None
    })
    assert updated.content == "<p>Nuevo</p>"
    assert updated.price == 20000
    assert updated.title == "Contrato laboral"

    lawyer_documents.delete_document(db, first.id, lawyer.id)
    with pytest.raises(NotFoundError):
        lawyer_documents.get_document(db, first.id, lawyer.id)


def test_lawyer_documents_api(client, lawyer, other_lawyer, auth_headers):
    headers = auth_headers(lawyer)

    response = client.post("/api/v1/my-documents", json={
        "title": "Tutela", "document_type": "Constitucional", "content": "<p>Señor juez</p>"
    }, headers=headers)
    assert response.status_code == 201
    document_id = response.json()["id"]

    assert client.get(f"/api/v1/my-documents/{document_id}", headers=auth_headers(other_lawyer)).status_code == 404

    response = client.patch(f"/api/v1/my-documents/{document_id}", json={"is_monetized": True}, headers=headers)
    assert response.json()["is_monetized"] is True

    listed = client.get("/api/v1/my-documents", params={"search": "tutela"}, headers=headers).json()
    assert [d["id"] for d in listed] == [document_id]

    pdf = client.get(f"/api/v1/my-documents/{document_id}/pdf", headers=headers)
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")

    assert client.delete(f"/api/v1/my-documents/{document_id}", headers=headers).status_code == 204


def test_build_pdf_handles_long_content():
    content = "\n\n".join(f"Cláusula {i}. El arrendatario <pagará> & cumplirá." for i in range(200))

    pdf = build_pdf("Contrato de Arrendamiento", content, footer=["Token: ABC123"])

    data = pdf.getvalue()
    assert data.startswith(b"%PDF")
    # one "/Type /Pages" tree plus at least two pages
    assert data.count(b"/Type /Page") > 2


def test_footer_lines():
    document = DocumentToken(token="ABCDEF123456", reviewed_by_lawyer_name="Laura Gómez")

    assert footer_lines(document) == ["Token: ABCDEF123456", "Revisado por: Laura Gómez"]
    assert footer_lines(DocumentToken(token="X")) == ["Token: X"]

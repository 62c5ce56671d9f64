from praxis.services.placeholders import (
    detect_placeholders, extract_placeholders, fill_template, humanize_field,
    missing_placeholders, placeholder_names
)


def test_extract_placeholders_dedupes_in_order_of_appearance():
    template = "Entre {{ nombre_arrendador }} y {{nombre_arrendatario}}, firmado por {{nombre_arrendador}}."

    placeholders = extract_placeholders(template)

    assert [p["field"] for p in placeholders] == ["nombre_arrendador", "nombre_arrendatario"]
    assert placeholders[0] == {
        "field": "nombre_arrendador",
        "label": "Nombre Arrendador",
        "type": "text",
        "required": True,
        "description": "Ingrese nombre arrendador"
    }


def test_extract_placeholders_without_tokens():
    assert extract_placeholders("Documento sin campos") == []
    assert extract_placeholders("") == []
    assert placeholder_names("{{}} y {{ }}") == []


def test_humanize_field():
    assert humanize_field("valor_canon_mensual") == "Valor Canon Mensual"


def test_detect_placeholders_recognises_editor_conventions():
    text = "Yo, [Nombre], con cédula ____ vivo en <ciudad>. <p>{{fecha}}</p>"

    found = detect_placeholders(text)

    assert [(item["kind"], item["text"]) for item in found] == [
        ("brackets", "[Nombre]"),
        ("underscores", "____"),
        ("angles", "<ciudad>"),
        ("braces", "{{fecha}}"),
    ]
    start = text.index("<ciudad>")
    assert found[2]["start"] == start
    assert found[2]["end"] == start + len("<ciudad>")


def test_detect_placeholders_ignores_html_tags():
    assert detect_placeholders("<p>Hola</p><br/><strong>firma</strong>") == []


def test_detect_placeholders_overlap_keeps_first_kind():
    found = detect_placeholders("Firma: [______]")

    assert len(found) == 1
    assert found[0]["kind"] == "brackets"


def test_fill_template_leaves_unknown_names():
    template = "Yo, {{nombre}}, domiciliado en {{ciudad}}, {{nota}}"

    filled = fill_template(template, {"nombre": "Ana Ruiz", "ciudad": "Medellín", "nota": None})

    assert filled == "Yo, Ana Ruiz, domiciliado en Medellín, {{nota}}"


def test_missing_placeholders():
    blocks = [["nombre", "cedula"], ["direccion"]]

    assert missing_placeholders(["nombre", "cedula", "direccion", "fecha"], blocks) == ["fecha"]
    assert missing_placeholders(["nombre"], []) == ["nombre"]

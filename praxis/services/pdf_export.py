from datetime import datetime
from io import BytesIO
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer

from ..models.database import DocumentToken, LawyerDocument
from .lawyer_documents import html_to_text

def _paragraphs(content: str, style) -> list:
    # blank lines separate paragraphs, single newlines stay as line breaks
    elements = []
    for block in content.replace("\r\n", "\n").split("\n\n"):
        block = block.strip()
        if not block:
            continue
        elements.append(Paragraph(escape(block).replace("\n", "<br/>"), style))
        elements.append(Spacer(1, 0.3 * cm))
    return elements

def build_pdf(
    title: str,
    content: str,
    footer: Optional[List[str]] = None,
    author: Optional[str] = None,
    generated_at: Optional[datetime] = None
) -> BytesIO:
    """Render plain text as an A4 PDF with a title and a footer on every page."""
    generated_at = generated_at or datetime.utcnow()
    footer = footer or []
    buffer = BytesIO()

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=2*cm,
        leftMargin=2*cm,
        topMargin=2*cm,
        bottomMargin=2.5*cm,
        title=title,
        author=author or "Praxis"
    )

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name='Justify',
        parent=styles['Normal'],
        alignment=TA_JUSTIFY,
        fontSize=10,
        leading=14
    ))
    styles['Title'].alignment = TA_CENTER

    stamp = generated_at.strftime("%d/%m/%Y %H:%M")

    def draw_footer(canvas, doc_template):
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        y = 1.5 * cm
        for line in footer:
            canvas.drawString(2 * cm, y, line)
            y -= 0.4 * cm
        canvas.drawRightString(A4[0] - 2 * cm, 1.5 * cm, f"Página {doc_template.page} - {stamp}")
        canvas.restoreState()

    elements = [
        Paragraph(f"<b>{escape(title)}</b>", styles['Title']),
        Spacer(1, 0.8 * cm),
    ]
    elements.extend(_paragraphs(content or "", styles['Justify']))

    doc.build(elements, onFirstPage=draw_footer, onLaterPages=draw_footer)

    buffer.seek(0)
    return buffer

def footer_lines(document: DocumentToken) -> List[str]:
    lines = [f"Token: {document.token}"]
    if document.reviewed_by_lawyer_name:
        lines.append(f"Revisado por: {document.reviewed_by_lawyer_name}")
    return lines

def build_document_pdf(document: DocumentToken, generated_at: Optional[datetime] = None) -> BytesIO:
    return build_pdf(
        document.document_type,
        document.document_content,
        footer=footer_lines(document),
        author=document.reviewed_by_lawyer_name,
        generated_at=generated_at
    )

def build_lawyer_document_pdf(document: LawyerDocument, generated_at: Optional[datetime] = None) -> BytesIO:
    return build_pdf(
        document.title or document.document_type or "Documento",
        html_to_text(document.content or ""),
        generated_at=generated_at
    )

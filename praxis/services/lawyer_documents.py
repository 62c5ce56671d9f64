import html
import logging
import re
from typing import Any, Dict, List, Optional

import nh3
from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from ..exceptions import NotFoundError
from ..models.database import LawyerDocument

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "document_type", "content", "description", "is_monetized", "price")

# Markup the rich text editor produces; everything else is dropped
ALLOWED_TAGS = {
    "p", "br", "strong", "b", "em", "i", "u", "s",
    "ul", "ol", "li",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "blockquote", "pre", "code",
    "a", "span", "div",
}
ALLOWED_ATTRIBUTES = {
    "*": {"style", "class"},
    "a": {"href", "target"},
}
ALLOWED_URL_SCHEMES = {"http", "https", "mailto", "tel"}
ALLOWED_STYLES = {
    "color", "background-color", "text-align", "font-weight", "font-style",
    "text-decoration", "font-size", "line-height", "margin", "margin-top",
    "margin-bottom", "padding", "white-space",
}
EDITOR_CLASS_PREFIX = "ql-"

_BREAKS = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_ENDS = re.compile(r"</(p|div|h[1-6]|li|tr|blockquote)\s*>", re.IGNORECASE)
_TAGS = re.compile(r"<[^>]+>")

def _filter_attribute(tag: str, attribute: str, value: str) -> Optional[str]:
    # only editor classes survive; pasted Office markup brings Mso* classes
    if attribute != "class":
        return value
    classes = [name for name in value.split() if name.startswith(EDITOR_CLASS_PREFIX)]
    return " ".join(classes) or None

def sanitize_html(content: str) -> str:
    """Allowlist-based cleanup of editor HTML.

    Scripts and styles are removed with their content, other unknown tags are
    unwrapped, and only http(s), mailto and tel links are kept.
    """
    return nh3.clean(
        content or "",
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        url_schemes=ALLOWED_URL_SCHEMES,
        attribute_filter=_filter_attribute,
        filter_style_properties=ALLOWED_STYLES,
        clean_content_tags={"script", "style"},
        link_rel="noopener noreferrer",
        strip_comments=True
    )

def html_to_text(content: str) -> str:
    text = _BREAKS.sub("\n", content)
    text = _BLOCK_ENDS.sub("\n\n", text)
    text = html.unescape(_TAGS.sub("", text))
    return re.sub(r"\n{3,}", "\n\n", text).strip()

def create_document(db: Session, lawyer_id: int, data: Dict[str, Any]) -> LawyerDocument:
    title = (data.get("title") or "").strip()
    if not title:
        raise ValueError("Título requerido")

    content = sanitize_html(data.get("content") or "")
    document = LawyerDocument(
        lawyer_id=lawyer_id,
        title=title,
        document_type=data.get("document_type"),
        content=content,
        markdown_content=content,
        description=data.get("description"),
        is_monetized=bool(data.get("is_monetized")),
        price=data.get("price")
    )

    try:
        db.add(document)
        db.commit()
        db.refresh(document)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error saving document: {str(e)}")
        raise

    logger.info(f"Lawyer document {document.id} saved for lawyer {lawyer_id}")
    return document

def list_documents(db: Session, lawyer_id: int, search: Optional[str] = None) -> List[LawyerDocument]:
    query = db.query(LawyerDocument).filter(LawyerDocument.lawyer_id == lawyer_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            LawyerDocument.title.ilike(pattern),
            LawyerDocument.document_type.ilike(pattern)
        ))
    return query.order_by(LawyerDocument.created_at.desc(), LawyerDocument.id.desc()).all()

def get_document(db: Session, document_id: int, lawyer_id: int) -> LawyerDocument:
    document = db.query(LawyerDocument).filter(
        LawyerDocument.id == document_id,
        LawyerDocument.lawyer_id == lawyer_id
    ).first()
    if document is None:
        raise NotFoundError("Document not found")
    return document

def update_document(db: Session, document_id: int, lawyer_id: int, fields: Dict[str, Any]) -> LawyerDocument:
    document = get_document(db, document_id, lawyer_id)

    update_data = {name: fields[name] for name in UPDATABLE_FIELDS if name in fields and fields[name] is not None}
    if "title" in update_data:
        update_data["title"] = update_data["title"].strip()
        if not update_data["title"]:
            raise ValueError("Título requerido")
    if "content" in update_data:
        update_data["content"] = sanitize_html(update_data["content"])
        update_data["markdown_content"] = update_data["content"]

    try:
        for name, value in update_data.items():
            setattr(document, name, value)
        db.commit()
        db.refresh(document)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating document {document_id}: {str(e)}")
        raise

    return document

def delete_document(db: Session, document_id: int, lawyer_id: int) -> None:
    document = get_document(db, document_id, lawyer_id)
    db.delete(document)
    db.commit()
    logger.info(f"Lawyer document {document_id} deleted")

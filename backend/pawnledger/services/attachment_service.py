"""
Images and documents attached to items, incidents, people and users.

OWNERSHIP:
- create / list resolve the target entity first (404 when missing or foreign)
- mutating an existing attachment re-checks its entity (403 when foreign)

INVARIANTS:
- at most one non-deleted primary image per entity; setting a primary
  clears the previous one in the same commit
- deletes are soft: is_deleted + deleted_at, the row stays loadable by id
- new images are appended after the highest position unless one is given
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Image, ImageType, Document, DocumentType, User
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    coerce_int,
)
from pawnledger.time_utils import utcnow
from . import storage_service
from .access_service import NotFoundError, ensure_entity_access, ensure_attachment_access


FILE_FIELDS = {
    "original_filename", "file_path", "storage_key", "file_size", "mime_type",
}

IMAGE_POLICY = ModelValidationPolicy(
    writable_fields={
        "image_type_id", "title", "description", "alt_text", "tags",
        "width", "height", "is_primary", "position",
    } | FILE_FIELDS,
    required_on_create={"file_path"},
)

DOCUMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "document_type_id", "title", "description", "tags",
        "issued_by", "issued_date", "document_number", "expiry_date",
    } | FILE_FIELDS,
    required_on_create={"file_path"},
)

IMAGE_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"image_type_id", "title", "description", "alt_text", "tags"},
)

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def _split_target(payload: dict) -> tuple[str | None, int]:
    """Pop entity_type / entity_id off a create payload."""
    entity_type = payload.pop("entity_type", None)
    entity_id = payload.pop("entity_id", None)
    if entity_type in (None, "") or entity_id in (None, ""):
        raise ValidationError("entity_type and entity_id are required")
    return entity_type, coerce_int(entity_id, "entity_id")


def _normalize_form_values(payload: dict) -> dict:
    """Multipart forms send every value as a string."""
    payload = dict(payload)
    if isinstance(payload.get("is_primary"), str):
        payload["is_primary"] = payload["is_primary"].strip().lower() in _TRUE_STRINGS
    if isinstance(payload.get("tags"), str):
        payload["tags"] = [t.strip() for t in payload["tags"].split(",") if t.strip()]
    if payload.get("tags") is not None and not isinstance(payload["tags"], list):
        raise ValidationError("tags must be a list of strings")
    return payload


def _stored_fields(model, policy: ModelValidationPolicy, stored: dict) -> dict:
    """File fields from a storage answer, limited to what the model keeps."""
    fields = {
        k: v for k, v in stored.items()
        if v is not None and k in policy.writable_fields
    }
    return validate_payload(model=model, payload=fields, policy=policy, partial=True)


def _discard_upload(stored: dict | None) -> None:
    """Remove a file whose row was never saved."""
    if stored and stored.get("storage_key"):
        storage_service.delete(stored["storage_key"], mime_type=stored.get("mime_type"))


def _clear_primary(entity_type: str, entity_id: int, keep_id: int | None = None) -> None:
    query = db.session.query(Image).filter(
        Image.entity_type == entity_type,
        Image.entity_id == entity_id,
        Image.is_deleted.is_(False),
        Image.is_primary.is_(True),
    )
    if keep_id is not None:
        query = query.filter(Image.id != keep_id)
    query.update({Image.is_primary: False}, synchronize_session="fetch")


def _next_position(entity_type: str, entity_id: int) -> int:
    highest = (
        db.session.query(func.max(Image.position))
        .filter(
            Image.entity_type == entity_type,
            Image.entity_id == entity_id,
            Image.is_deleted.is_(False),
        )
        .scalar()
    )
    return 0 if highest is None else highest + 1


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def list_image_types() -> list[ImageType]:
    return db.session.query(ImageType).order_by(ImageType.name.asc()).all()


def list_images(user: User, entity_type: str, entity_id: int) -> list[Image]:
    """Non-deleted images of an entity: primary first, then position, then age."""
    entity_type = ensure_entity_access(user, entity_type, entity_id)
    return (
        db.session.query(Image)
        .filter(
            Image.entity_type == entity_type,
            Image.entity_id == entity_id,
            Image.is_deleted.is_(False),
        )
        .order_by(
            Image.is_primary.desc(),
            Image.position.asc(),
            Image.created_at.asc(),
            Image.id.asc(),
        )
        .all()
    )


def create_image(user: User, payload: dict, upload=None) -> Image:
    """
    Record an image for an entity.

    payload carries entity_type, entity_id and the image metadata. With an
    `upload` (werkzeug FileStorage) the metadata is validated, then the file
    is stored and the storage fields are filled from the provider's answer.
    If the row cannot be saved the stored file is deleted again. Without an
    upload, payload must describe an already-stored file (file_path).
    """
    payload = _normalize_form_values(payload or {})
    entity_type, entity_id = _split_target(payload)
    entity_type = ensure_entity_access(user, entity_type, entity_id)

    if upload is not None:
        for key in FILE_FIELDS:
            payload.pop(key, None)
    elif payload.get("mime_type") and storage_service.file_category(payload["mime_type"]) != "image":
        raise ValidationError(f"File type {payload['mime_type']} is not allowed")

    # Metadata is checked before anything reaches storage.
    patch = validate_payload(model=Image, payload=payload, policy=IMAGE_POLICY, partial=upload is not None)

    if patch.get("image_type_id") is not None:
        if not db.session.get(ImageType, patch["image_type_id"]):
            raise ValidationError("Image type not found")
    else:
        image_type = db.session.query(ImageType).filter_by(name=entity_type).first()
        patch["image_type_id"] = image_type.id if image_type else None

    stored = None
    if upload is not None:
        stored = storage_service.upload(
            upload,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user.id,
            allowed_types=storage_service.ALLOWED_IMAGE_TYPES,
        )

    try:
        if stored is not None:
            patch.update(_stored_fields(Image, IMAGE_POLICY, stored))
        if patch.get("position") is None:
            patch["position"] = _next_position(entity_type, entity_id)
        is_primary = bool(patch.pop("is_primary", False))

        if is_primary:
            _clear_primary(entity_type, entity_id)
        image = Image(
            entity_type=entity_type,
            entity_id=entity_id,
            uploaded_by=user.id,
            is_primary=is_primary,
            **patch,
        )
        db.session.add(image)
        db.session.commit()
    except Exception:
        db.session.rollback()
        _discard_upload(stored)
        raise
    return image


def get_image(user: User, image_id: int) -> Image:
    """Any image of the caller by id, soft-deleted ones included."""
    image = db.session.get(Image, image_id)
    if image is None:
        raise NotFoundError("Image not found")
    ensure_attachment_access(user, image)
    return image


def _get_live_image(user: User, image_id: int) -> Image:
    image = db.session.get(Image, image_id)
    if image is None or image.is_deleted:
        raise NotFoundError("Image not found")
    ensure_attachment_access(user, image)
    return image


def set_primary_image(user: User, image_id: int) -> Image:
    image = _get_live_image(user, image_id)
    try:
        _clear_primary(image.entity_type, image.entity_id, keep_id=image.id)
        image.is_primary = True
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return image


def update_image(user: User, image_id: int, payload: dict) -> Image:
    """Edit title / description / alt text / tags / type."""
    image = _get_live_image(user, image_id)
    payload = _normalize_form_values(payload or {})
    patch = validate_payload(model=Image, payload=payload, policy=IMAGE_UPDATE_POLICY, partial=True)
    if patch.get("image_type_id") is not None and not db.session.get(ImageType, patch["image_type_id"]):
        raise ValidationError("Image type not found")

    for key, value in patch.items():
        setattr(image, key, value)
    db.session.commit()
    return image


def reorder_images(user: User, entity_type: str, entity_id: int, image_ids) -> list[Image]:
    """
    Set positions 0..n-1 following the order of image_ids.

    image_ids must name non-deleted images of this entity, each once. All
    positions are written in one commit.
    """
    entity_type = ensure_entity_access(user, entity_type, entity_id)
    if not isinstance(image_ids, list) or not image_ids:
        raise ValidationError("image_ids must be a non-empty list")
    ids = [coerce_int(v, "image_ids") for v in image_ids]
    if len(set(ids)) != len(ids):
        raise ValidationError("image_ids must not contain duplicates")

    images = (
        db.session.query(Image)
        .filter(
            Image.id.in_(ids),
            Image.entity_type == entity_type,
            Image.entity_id == entity_id,
            Image.is_deleted.is_(False),
        )
        .all()
    )
    if len(images) != len(ids):
        raise ValidationError("Some images not found or access denied")

    by_id = {image.id: image for image in images}
    for position, image_id in enumerate(ids):
        by_id[image_id].position = position
    db.session.commit()

    return list_images(user, entity_type, entity_id)


def delete_image(user: User, image_id: int) -> Image:
    """Soft delete; storage removal is attempted and its failure only logged."""
    image = _get_live_image(user, image_id)
    storage_service.delete(image.storage_key, mime_type=image.mime_type)
    image.is_deleted = True
    image.deleted_at = utcnow()
    db.session.commit()
    return image


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def list_document_types() -> list[DocumentType]:
    return db.session.query(DocumentType).order_by(DocumentType.name.asc()).all()


def get_document_type_by_name(name: str | None) -> DocumentType:
    document_type = None
    if name:
        document_type = db.session.query(DocumentType).filter(
            func.lower(DocumentType.name) == name.strip().lower()
        ).first()
    if document_type is None:
        raise NotFoundError("Document type not found")
    return document_type


def create_document_type(name: str | None, description: str | None = None) -> DocumentType:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name is required")
    if len(name) > 64:
        raise ValidationError("name exceeds max length 64")
    existing = db.session.query(DocumentType).filter(
        func.lower(DocumentType.name) == name.lower()
    ).first()
    if existing:
        raise ConflictError("A document type with this name already exists")

    document_type = DocumentType(name=name, description=(description or "").strip() or None)
    db.session.add(document_type)
    db.session.commit()
    return document_type


def list_documents(user: User, entity_type: str, entity_id: int) -> list[Document]:
    """Non-deleted documents of an entity, newest first."""
    entity_type = ensure_entity_access(user, entity_type, entity_id)
    return (
        db.session.query(Document)
        .filter(
            Document.entity_type == entity_type,
            Document.entity_id == entity_id,
            Document.is_deleted.is_(False),
        )
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )


def create_document(user: User, payload: dict, upload=None) -> Document:
    """
    Record a document for an entity. Same upload / metadata rules as
    create_image. document_type may be given by id or by name.
    """
    payload = _normalize_form_values(payload or {})
    entity_type, entity_id = _split_target(payload)
    entity_type = ensure_entity_access(user, entity_type, entity_id)

    type_name = payload.pop("document_type", None)
    if type_name and payload.get("document_type_id") in (None, ""):
        payload["document_type_id"] = get_document_type_by_name(type_name).id

    if upload is not None:
        for key in FILE_FIELDS:
            payload.pop(key, None)

    patch = validate_payload(model=Document, payload=payload, policy=DOCUMENT_POLICY, partial=upload is not None)
    if patch.get("document_type_id") is not None:
        if not db.session.get(DocumentType, patch["document_type_id"]):
            raise ValidationError("Document type not found")

    stored = None
    if upload is not None:
        stored = storage_service.upload(
            upload,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user.id,
            allowed_types=storage_service.ALLOWED_DOCUMENT_TYPES + storage_service.ALLOWED_IMAGE_TYPES,
        )

    try:
        if stored is not None:
            patch.update(_stored_fields(Document, DOCUMENT_POLICY, stored))
        if not patch.get("title"):
            patch["title"] = patch.get("original_filename")

        document = Document(
            entity_type=entity_type,
            entity_id=entity_id,
            uploaded_by=user.id,
            **patch,
        )
        db.session.add(document)
        db.session.commit()
    except Exception:
        db.session.rollback()
        _discard_upload(stored)
        raise
    return document


def get_document(user: User, document_id: int) -> Document:
    document = db.session.get(Document, document_id)
    if document is None:
        raise NotFoundError("Document not found")
    ensure_attachment_access(user, document)
    return document


def delete_document(user: User, document_id: int) -> Document:
    document = db.session.get(Document, document_id)
    if document is None or document.is_deleted:
        raise NotFoundError("Document not found")
    ensure_attachment_access(user, document)

    storage_service.delete(document.storage_key, mime_type=document.mime_type)
    document.is_deleted = True
    document.deleted_at = utcnow()
    db.session.commit()
    return document

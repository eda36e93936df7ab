from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from ..errors import UploadError
from ..extensions import db
from ..models import Document, DocumentFolder
from ..security import current_user_id
from ..services import uploads
from ..utils.validation import query_int, to_int
from .common import load_owned_property

bp = Blueprint("documents", __name__)


def _truthy(value):
    return str(value).lower() in ("1", "true", "yes")


def _load_own_folder(folder_id, user_id):
    folder = db.session.get(DocumentFolder, folder_id)
    if folder is None or folder.user_id != user_id:
        return None
    return folder


def _load_own_document(document_id, user_id):
    document = db.session.get(Document, document_id)
    if document is None or document.user_id != user_id:
        return None
    return document


def _parse_tags(values):
    """Tags arrive as repeated form fields, a comma-separated string or a JSON list."""
    tags = []
    for value in values:
        if isinstance(value, str):
            tags.extend(t.strip() for t in value.split(","))
        elif value is not None:
            tags.append(str(value).strip())
    return [t for t in tags if t]


def _listing_filters(args):
    """propertyId and parentFolder shared by the folder and document listings"""
    property_id = query_int(args, "propertyId", "property_id")
    parent_id = query_int(args, "parentFolder", "parent_folder", "folderId")
    return property_id, parent_id


def _delete_folder_tree(folder, paths):
    """Delete a folder, its subfolders and every document below it; collects the stored file paths."""
    for child in list(folder.children):
        _delete_folder_tree(child, paths)
    for document in list(folder.documents):
        paths.append(document.path)
        db.session.delete(document)
    db.session.delete(folder)
    return paths


# ============= FOLDERS =============

@bp.get("/document-folders")
@jwt_required()
def list_folders():
    user_id = current_user_id()
    try:
        property_id, parent_id = _listing_filters(request.args)
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    query = DocumentFolder.query.filter_by(user_id=user_id, parent_id=parent_id)
    if property_id is not None:
        query = query.filter_by(property_id=property_id)

    folders = query.order_by(DocumentFolder.name).all()
    return jsonify([f.serialize() for f in folders]), 200


@bp.get("/document-folders/<int:folder_id>")
@jwt_required()
def get_folder(folder_id):
    folder = _load_own_folder(folder_id, current_user_id())
    if folder is None:
        return jsonify({"error": "not_found", "message": "Folder not found"}), 404

    data = folder.serialize()
    data["path"] = folder.breadcrumbs()
    return jsonify(data), 200


@bp.post("/document-folders")
@jwt_required()
def create_folder():
    user_id = current_user_id()
    data = request.get_json(silent=True) or {}

    name = data.get("name") or ""
    if not isinstance(name, str) or not name.strip():
        return jsonify({"error": "validation_error", "message": "name is required"}), 400
    name = name.strip()

    try:
        parent_id = to_int(data.get("parent_id", data.get("parentFolder")), "parent_id")
        property_id = to_int(data.get("property_id", data.get("propertyId")), "property_id")
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    if parent_id is not None and _load_own_folder(parent_id, user_id) is None:
        return jsonify({"error": "not_found", "message": "Parent folder not found"}), 404
    if property_id is not None:
        _, error = load_owned_property(property_id, user_id)
        if error:
            return error

    try:
        folder = DocumentFolder(
            user_id=user_id,
            parent_id=parent_id,
            property_id=property_id,
            name=name,
            description=data.get("description"),
        )
        db.session.add(folder)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "creation_failed", "message": str(e)}), 500

    return jsonify(folder.serialize()), 201


@bp.delete("/document-folders/<int:folder_id>")
@jwt_required()
def delete_folder(folder_id):
    folder = _load_own_folder(folder_id, current_user_id())
    if folder is None:
        return jsonify({"error": "not_found", "message": "Folder not found"}), 404

    try:
        paths = _delete_folder_tree(folder, [])
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "deletion_failed", "message": str(e)}), 500

    for path in paths:
        uploads.delete_upload(path)
    current_app.logger.info("Deleted folder %s with %d documents", folder_id, len(paths))
    return "", 204


# ============= DOCUMENTS =============

@bp.get("/documents")
@jwt_required()
def list_documents():
    """
    Documents in one folder (parentFolder) or at the root.

    ``starred=true`` lists starred documents from every folder.
    """
    user_id = current_user_id()
    try:
        property_id, parent_id = _listing_filters(request.args)
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    query = Document.query.filter_by(user_id=user_id)
    if _truthy(request.args.get("starred", "")):
        query = query.filter_by(starred=True)
        if parent_id is not None:
            query = query.filter_by(folder_id=parent_id)
    else:
        query = query.filter_by(folder_id=parent_id)
    if property_id is not None:
        query = query.filter_by(property_id=property_id)

    documents = query.order_by(Document.created_at.desc(), Document.id.desc()).all()
    return jsonify([d.serialize() for d in documents]), 200


@bp.get("/documents/<int:document_id>")
@jwt_required()
def get_document(document_id):
    document = _load_own_document(document_id, current_user_id())
    if document is None:
        return jsonify({"error": "not_found", "message": "Document not found"}), 404
    return jsonify(document.serialize()), 200


@bp.post("/documents/upload")
@jwt_required()
def upload_document():
    user_id = current_user_id()
    form = request.form

    try:
        folder_id = to_int(form.get("folderId") or form.get("parentFolder"), "folderId")
        property_id = to_int(form.get("propertyId"), "propertyId")
    except ValueError as e:
        return jsonify({"error": "validation_error", "message": str(e)}), 400

    if folder_id is not None and _load_own_folder(folder_id, user_id) is None:
        return jsonify({"error": "not_found", "message": "Folder not found"}), 404
    if property_id is not None:
        _, error = load_owned_property(property_id, user_id)
        if error:
            return error

    file_storage = request.files.get("file")
    try:
        path, size, file_type = uploads.save_document(file_storage, user_id)
    except UploadError as e:
        return jsonify({"error": "upload_failed", "message": str(e)}), 400

    try:
        document = Document(
            user_id=user_id,
            folder_id=folder_id,
            property_id=property_id,
            name=(form.get("name") or file_storage.filename).strip(),
            description=form.get("description"),
            category=form.get("category") or "other",
            tags=_parse_tags(form.getlist("tags")),
            file_type=file_type,
            file_size=size,
            path=path,
        )
        db.session.add(document)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        uploads.delete_upload(path)
        return jsonify({"error": "creation_failed", "message": str(e)}), 500

    return jsonify(document.serialize()), 201


@bp.patch("/documents/<int:document_id>")
@jwt_required()
def update_document(document_id):
    user_id = current_user_id()
    document = _load_own_document(document_id, user_id)
    if document is None:
        return jsonify({"error": "not_found", "message": "Document not found"}), 404

    data = request.get_json(silent=True) or {}
    if "folder_id" in data and data["folder_id"] is not None:
        try:
            target = to_int(data["folder_id"], "folder_id")
        except ValueError as e:
            return jsonify({"error": "validation_error", "message": str(e)}), 400
        if _load_own_folder(target, user_id) is None:
            return jsonify({"error": "not_found", "message": "Folder not found"}), 404
        data["folder_id"] = target
    if "tags" in data:
        tags = data["tags"]
        data["tags"] = _parse_tags(tags if isinstance(tags, list) else [tags])
    if "starred" in data:
        data["starred"] = bool(data["starred"])

    try:
        for field in Document.UPDATABLE_FIELDS:
            if field in data:
                setattr(document, field, data[field])
        document.updated_at = datetime.utcnow()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "update_failed", "message": str(e)}), 500

    return jsonify(document.serialize()), 200


@bp.delete("/documents/<int:document_id>")
@jwt_required()
def delete_document(document_id):
    document = _load_own_document(document_id, current_user_id())
    if document is None:
        return jsonify({"error": "not_found", "message": "Document not found"}), 404

    path = document.path
    try:
        db.session.delete(document)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return jsonify({"error": "deletion_failed", "message": str(e)}), 500

    uploads.delete_upload(path)
    return "", 204

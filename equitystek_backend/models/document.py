from datetime import datetime

from . import db


class DocumentFolder(db.Model):
    __tablename__ = "document_folders"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id", ondelete="SET NULL"), nullable=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("document_folders.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    children = db.relationship("DocumentFolder", backref=db.backref("parent", remote_side=[id]), lazy=True)
    documents = db.relationship("Document", backref="folder", lazy=True)

    def __repr__(self):
        return f"<DocumentFolder {self.id}: {self.name}>"

    def breadcrumbs(self):
        """Folder path from the root down to this folder."""
        path = []
        node = self
        while node is not None:
            path.append({"id": node.id, "name": node.name})
            node = node.parent
        return list(reversed(path))

    def serialize(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "property_id": self.property_id,
            "parent_id": self.parent_id,
            "name": self.name,
            "description": self.description,
            "document_count": len(self.documents),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Document(db.Model):
    __tablename__ = "documents"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    property_id = db.Column(db.Integer, db.ForeignKey("properties.id", ondelete="SET NULL"), nullable=True)
    folder_id = db.Column(db.Integer, db.ForeignKey("document_folders.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    file_type = db.Column(db.String(20), nullable=False)
    file_size = db.Column(db.Integer, nullable=False, default=0)
    category = db.Column(db.String(50), nullable=False, default="other")
    tags = db.Column(db.JSON, nullable=True)
    starred = db.Column(db.Boolean, nullable=False, default=False)
    path = db.Column(db.String(500), nullable=False)  # relative to UPLOAD_FOLDER

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    UPDATABLE_FIELDS = ("name", "description", "category", "tags", "starred", "folder_id")

    def __repr__(self):
        return f"<Document {self.id}: {self.name}>"

    @property
    def url(self):
        return f"/uploads/{self.path}"

    def serialize(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "property_id": self.property_id,
            "folder_id": self.folder_id,
            "name": self.name,
            "description": self.description,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "category": self.category,
            "tags": self.tags or [],
            "starred": self.starred,
            "url": self.url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

import io
import os
from unittest import mock

import pytest

from equitystek_backend.extensions import db
from equitystek_backend.models import Document, DocumentFolder


@pytest.fixture
def make_folder(app):
    def _make_folder(user, name="Insurance", parent=None, **kwargs):
        folder = DocumentFolder(user_id=user.id, name=name, parent_id=parent.id if parent else None, **kwargs)
        db.session.add(folder)
        db.session.commit()
        return folder

    return _make_folder


def upload(client, headers, content=b"policy text", filename="policy.pdf", **fields):
    data = {"file": (io.BytesIO(content), filename)}
    data.update(fields)
    return client.post("/api/documents/upload", data=data, content_type="multipart/form-data", headers=headers)


class TestFolders:

    def test_create_and_list_root(self, client, owner, auth_headers):
        resp = client.post("/api/document-folders", json={"name": "Leases"}, headers=auth_headers(owner))
        assert resp.status_code == 201

        folders = client.get("/api/document-folders", headers=auth_headers(owner)).get_json()
        assert [f["name"] for f in folders] == ["Leases"]
        assert folders[0]["parent_id"] is None

    def test_subfolder_listing_and_breadcrumbs(self, client, owner, make_folder, auth_headers):
        root = make_folder(owner, "Property")
        child = make_folder(owner, "Invoices", parent=root)

        listed = client.get(f"/api/document-folders?parentFolder={root.id}", headers=auth_headers(owner)).get_json()
        detail = client.get(f"/api/document-folders/{child.id}", headers=auth_headers(owner)).get_json()

        assert [f["id"] for f in listed] == [child.id]
        assert [p["name"] for p in detail["path"]] == ["Property", "Invoices"]

    def test_name_required(self, client, owner, auth_headers):
        resp = client.post("/api/document-folders", json={"name": "  "}, headers=auth_headers(owner))
        assert resp.status_code == 400

    def test_foreign_parent_rejected(self, client, owner, make_user, make_folder, auth_headers):
        foreign = make_folder(make_user())
        resp = client.post("/api/document-folders", json={"name": "x", "parent_id": foreign.id},
                           headers=auth_headers(owner))
        assert resp.status_code == 404

    def test_delete_removes_tree_and_files(self, app, client, owner, make_folder, auth_headers):
        root = make_folder(owner, "Property")
        child = make_folder(owner, "Invoices", parent=root)
        doc = upload(client, auth_headers(owner), folderId=str(child.id)).get_json()
        stored = os.path.join(app.config["UPLOAD_FOLDER"], doc["url"][len("/uploads/"):])
        assert os.path.exists(stored)

        resp = client.delete(f"/api/document-folders/{root.id}", headers=auth_headers(owner))

        assert resp.status_code == 204
        assert DocumentFolder.query.count() == 0
        assert Document.query.count() == 0
        assert not os.path.exists(stored)

    def test_failed_delete_keeps_files(self, app, client, owner, make_folder, auth_headers):
        folder = make_folder(owner)
        headers = auth_headers(owner)
        doc = upload(client, headers, folderId=str(folder.id)).get_json()
        stored = os.path.join(app.config["UPLOAD_FOLDER"], doc["url"][len("/uploads/"):])

        with mock.patch.object(db.session, "commit", side_effect=RuntimeError("database unavailable")):
            resp = client.delete(f"/api/document-folders/{folder.id}", headers=headers)

        assert resp.status_code == 500
        assert os.path.exists(stored)
        assert Document.query.count() == 1

    def test_non_string_name_rejected(self, client, owner, auth_headers):
        resp = client.post("/api/document-folders", json={"name": 42}, headers=auth_headers(owner))
        assert resp.status_code == 400

    def test_foreign_folder_not_found(self, client, owner, make_user, make_folder, auth_headers):
        foreign = make_folder(make_user())
        assert client.get(f"/api/document-folders/{foreign.id}", headers=auth_headers(owner)).status_code == 404


class TestDocuments:

    def test_upload(self, client, owner, make_property, auth_headers):
        prop = make_property(owner)

        resp = upload(client, auth_headers(owner), name="Home insurance", category="insurance",
                      tags="policy, 2026", propertyId=str(prop.id))

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["name"] == "Home insurance"
        assert body["file_type"] == "pdf"
        assert body["file_size"] == len(b"policy text")
        assert body["tags"] == ["policy", "2026"]
        assert body["property_id"] == prop.id
        assert body["url"].startswith(f"/uploads/documents/{owner.id}/")

    def test_upload_requires_file(self, client, owner, auth_headers):
        resp = client.post("/api/documents/upload", data={"name": "x"}, content_type="multipart/form-data",
                           headers=auth_headers(owner))
        assert resp.status_code == 400

    def test_upload_into_foreign_folder(self, client, owner, make_user, make_folder, auth_headers):
        foreign = make_folder(make_user())
        resp = upload(client, auth_headers(owner), folderId=str(foreign.id))
        assert resp.status_code == 404
        assert Document.query.count() == 0

    def test_list_root_and_folder(self, client, owner, make_folder, auth_headers):
        folder = make_folder(owner)
        upload(client, auth_headers(owner), name="root doc")
        upload(client, auth_headers(owner), name="filed doc", folderId=str(folder.id))

        root = client.get("/api/documents", headers=auth_headers(owner)).get_json()
        filed = client.get(f"/api/documents?parentFolder={folder.id}", headers=auth_headers(owner)).get_json()

        assert [d["name"] for d in root] == ["root doc"]
        assert [d["name"] for d in filed] == ["filed doc"]

    def test_starred_across_folders(self, client, owner, make_folder, auth_headers):
        folder = make_folder(owner)
        doc = upload(client, auth_headers(owner), name="filed doc", folderId=str(folder.id)).get_json()
        upload(client, auth_headers(owner), name="other")

        client.patch(f"/api/documents/{doc['id']}", json={"starred": True}, headers=auth_headers(owner))
        starred = client.get("/api/documents?starred=true", headers=auth_headers(owner)).get_json()

        assert [d["name"] for d in starred] == ["filed doc"]

    def test_move_and_retag(self, client, owner, make_folder, auth_headers):
        folder = make_folder(owner)
        doc = upload(client, auth_headers(owner)).get_json()

        resp = client.patch(f"/api/documents/{doc['id']}", json={"folder_id": folder.id, "tags": ["a", "b"]},
                            headers=auth_headers(owner))

        assert resp.get_json()["folder_id"] == folder.id
        assert resp.get_json()["tags"] == ["a", "b"]

    def test_delete_removes_file(self, app, client, owner, auth_headers):
        doc = upload(client, auth_headers(owner)).get_json()
        stored = os.path.join(app.config["UPLOAD_FOLDER"], doc["url"][len("/uploads/"):])

        resp = client.delete(f"/api/documents/{doc['id']}", headers=auth_headers(owner))

        assert resp.status_code == 204
        assert not os.path.exists(stored)

    def test_foreign_document_not_found(self, client, owner, make_user, auth_headers):
        other = make_user()
        doc = upload(client, auth_headers(other)).get_json()

        assert client.get(f"/api/documents/{doc['id']}", headers=auth_headers(owner)).status_code == 404
        assert client.delete(f"/api/documents/{doc['id']}", headers=auth_headers(owner)).status_code == 404

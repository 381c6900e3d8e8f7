from __future__ import annotations

import base64

import pytest
from pydantic import ValidationError

from recordsync.domain.commit import RelationChange
from recordsync.protocol import (
    AuthenticateRequest,
    CommitRequest,
    FindRequest,
    RefreshRequest,
    UploadRequest,
)


def test_authenticate_request_builds_login_attempt() -> None:
    request = AuthenticateRequest.model_validate(
        {"authModel": {"railsClass": "User", "model": {"login": "ada", "token": "t", "hash": "h"}}}
    )

    attempt = request.to_attempt()

    assert attempt is not None
    assert (attempt.type_name, attempt.login, attempt.token, attempt.digest) == (
        "User",
        "ada",
        "t",
        "h",
    )
    assert AuthenticateRequest.model_validate({}).to_attempt() is None


def test_refresh_request_groups_ids_by_type() -> None:
    request = RefreshRequest.model_validate(
        {
            "refreshModels": {
                "books": {"railsClass": "Book", "ids": [1, "2"]},
                "moreBooks": {"railsClass": "Book", "ids": [3]},
                "tags": {"railsClass": "Tag"},
            },
            "relations": {
                "bookTags": {"railsClass": "Book", "relationType": "tags", "ids": [1]},
            },
        }
    )

    assert request.requested() == {"Book": [1, "2", 3], "Tag": []}
    (relation,) = request.relation_requests()
    assert (relation.type_name, relation.relation_name, relation.ids) == ("Book", "tags", (1,))


def test_refresh_relation_requires_relation_name() -> None:
    with pytest.raises(ValidationError, match="relationType"):
        RefreshRequest.model_validate({"relations": {"x": {"railsClass": "Book", "ids": [1]}}})


def test_find_request_accepts_single_search_model() -> None:
    request = FindRequest.model_validate(
        {
            "searchModels": {
                "railsClass": "Tag",
                "searchParams": {"name": "a"},
                "page": "",
                "limit": 5,
            }
        }
    )

    (query,) = request.to_queries()
    assert (query.type_name, dict(query.criteria), query.page, query.page_size) == (
        "Tag",
        {"name": "a"},
        1,
        5,
    )


def test_commit_request_builds_batch() -> None:
    request = CommitRequest.model_validate(
        {
            "commitModels": {
                "books": {
                    "railsClass": "Book",
                    "data": [{"cid": "c2", "title": "Draft", "author_id": "c1"}, {"id": 4}],
                }
            },
            "destroyModels": {"Tag": [{"id": 7}, {}]},
            "createRelations": {
                "bookTags": {"railsClass": "Book", "models": {"4": {"tags": {"ids": [1, 2]}}}}
            },
            "destroyRelations": {
                "bookTags": {"railsClass": "Book", "models": {"4": {"tags": {"ids": ""}}}}
            },
        }
    )

    batch = request.to_batch()

    (change_set,) = batch.changes
    created, updated = change_set.records
    assert (change_set.key, change_set.type_name) == ("books", "Book")
    assert created.cid == "c2"
    assert created.id is None
    assert dict(created.attributes) == {"title": "Draft", "author_id": "c1"}
    assert updated.id == 4
    assert batch.destroys[0].ids == (7,)
    assert batch.attach == (RelationChange("Book", "4", "tags", (1, 2)),)
    assert batch.detach == (RelationChange("Book", "4", "tags", ()),)


def test_upload_request_decodes_base64_content() -> None:
    encoded = base64.b64encode(b"hello").decode()
    request = UploadRequest.model_validate(
        {
            "railsClass": "Document",
            "railsAttr": "file",
            "file": {"filename": "hello.txt", "content": encoded, "contentType": "text/plain"},
        }
    )

    assert request.file is not None
    upload = request.file.to_upload()
    assert (upload.filename, upload.content, upload.content_type) == (
        "hello.txt",
        b"hello",
        "text/plain",
    )

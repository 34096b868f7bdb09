"""Tests for the engagement HTTP endpoints."""

from uuid import uuid4

import pytest
from cassandra import OperationTimedOut
from fastapi.testclient import TestClient

from novelhub.notifications.models import NotificationType


def post_comment(client, headers, content_id, text="hello", replying_to=None):
    body = {"content_id": str(content_id), "text": text}
    if replying_to is not None:
        body["replying_to"] = str(replying_to)
    return client.post("/v1/comments", json=body, headers=headers)


class TestCreateComment:
    def test_creates_top_level_comment(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        response = post_comment(client, auth_headers(reader_id), content_id)

        assert response.status_code == 201
        data = response.json()
        assert data["author_id"] == str(reader_id)
        assert data["is_reply"] is False
        assert data["parent_id"] is None
        assert data["warnings"] == []

    def test_creates_reply(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        headers = auth_headers(reader_id)
        parent = post_comment(client, headers, content_id).json()

        response = post_comment(
            client, headers, content_id, "reply", parent["comment_id"]
        )

        assert response.status_code == 201
        assert response.json()["parent_id"] == parent["comment_id"]
        assert response.json()["is_reply"] is True

    def test_requires_token(self, client: TestClient, content_id) -> None:
        response = post_comment(client, {}, content_id)
        assert response.status_code == 401

    def test_rejects_invalid_token(self, client: TestClient, content_id) -> None:
        response = post_comment(
            client, {"Authorization": "Bearer not-a-token"}, content_id
        )
        assert response.status_code == 401

    def test_empty_text_is_bad_request(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        response = post_comment(client, auth_headers(reader_id), content_id, "   ")
        assert response.status_code == 400
        assert response.json()["error"] is True

    def test_unknown_content_is_not_found(
        self, client: TestClient, auth_headers, reader_id
    ) -> None:
        response = post_comment(client, auth_headers(reader_id), uuid4())
        assert response.status_code == 404

    def test_side_effect_failure_is_reported_not_raised(
        self, client: TestClient, auth_headers, fanout, content_id, reader_id
    ) -> None:
        fanout.failures["_insert"] = OperationTimedOut()

        response = post_comment(client, auth_headers(reader_id), content_id)

        assert response.status_code == 201
        assert response.json()["warnings"] == ["notification"]


class TestListComments:
    def test_default_page_size(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        headers = auth_headers(reader_id)
        for i in range(7):
            post_comment(client, headers, content_id, f"c{i}")

        response = client.get(f"/v1/comments/content/{content_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["skip"] == 0
        assert data["limit"] == 5
        assert [item["text"] for item in data["items"]] == [
            "c6",
            "c5",
            "c4",
            "c3",
            "c2",
        ]
        assert data["items"][0]["author"]["username"] == "reader"

    def test_skip_and_limit(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        headers = auth_headers(reader_id)
        for i in range(4):
            post_comment(client, headers, content_id, f"c{i}")

        response = client.get(
            f"/v1/comments/content/{content_id}", params={"skip": 3, "limit": 2}
        )

        assert [item["text"] for item in response.json()["items"]] == ["c0"]

    def test_limit_is_capped(self, client: TestClient, content_id) -> None:
        response = client.get(
            f"/v1/comments/content/{content_id}", params={"limit": 1000}
        )
        assert response.json()["limit"] == 50

    @pytest.mark.parametrize("params", [{"skip": -1}, {"limit": 0}])
    def test_invalid_page_is_rejected(
        self, client: TestClient, content_id, params
    ) -> None:
        response = client.get(f"/v1/comments/content/{content_id}", params=params)
        assert response.status_code == 422

    def test_replies_exclude_grandchildren(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        headers = auth_headers(reader_id)
        root = post_comment(client, headers, content_id, "root").json()
        child = post_comment(
            client, headers, content_id, "child", root["comment_id"]
        ).json()
        post_comment(client, headers, content_id, "grandchild", child["comment_id"])

        response = client.get(f"/v1/comments/{root['comment_id']}/replies")

        assert response.status_code == 200
        assert [item["text"] for item in response.json()["items"]] == ["child"]


class TestDeleteComment:
    def test_author_deletes_subtree(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        headers = auth_headers(reader_id)
        root = post_comment(client, headers, content_id, "root").json()
        post_comment(client, headers, content_id, "child", root["comment_id"])

        response = client.delete(
            f"/v1/comments/{root['comment_id']}", headers=headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["removed_count"] == 2
        assert data["removed_top_level_count"] == 1
        assert data["removed_ids"][-1] == root["comment_id"]

    def test_stranger_is_forbidden(
        self,
        client: TestClient,
        auth_headers,
        content_id,
        reader_id,
        other_reader_id,
    ) -> None:
        comment = post_comment(client, auth_headers(reader_id), content_id).json()

        response = client.delete(
            f"/v1/comments/{comment['comment_id']}",
            headers=auth_headers(other_reader_id),
        )

        assert response.status_code == 403

    def test_unknown_comment_is_not_found(
        self, client: TestClient, auth_headers, reader_id
    ) -> None:
        response = client.delete(
            f"/v1/comments/{uuid4()}", headers=auth_headers(reader_id)
        )
        assert response.status_code == 404

    def test_repeat_delete_is_empty_success(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        headers = auth_headers(reader_id)
        comment = post_comment(client, headers, content_id).json()
        client.delete(f"/v1/comments/{comment['comment_id']}", headers=headers)

        response = client.delete(
            f"/v1/comments/{comment['comment_id']}", headers=headers
        )

        assert response.status_code == 200
        assert response.json()["removed_count"] == 0


class TestLikes:
    def test_toggle_and_status(
        self, client: TestClient, auth_headers, fanout, content_id, reader_id
    ) -> None:
        headers = auth_headers(reader_id)

        liked = client.post(
            f"/v1/likes/{content_id}",
            json={"currently_liked": False},
            headers=headers,
        )
        status_response = client.get(f"/v1/likes/{content_id}/status", headers=headers)

        assert liked.status_code == 200
        assert liked.json() == {"now_liked": True, "warnings": []}
        assert status_response.json() == {"liked_by_user": True}
        assert len(fanout.of_type(NotificationType.LIKE)) == 1

        unliked = client.post(
            f"/v1/likes/{content_id}",
            json={"currently_liked": True},
            headers=headers,
        )
        assert unliked.json() == {"now_liked": False, "warnings": []}
        assert fanout.of_type(NotificationType.LIKE) == []

    def test_missing_state_is_validation_error(
        self, client: TestClient, auth_headers, content_id, reader_id
    ) -> None:
        response = client.post(
            f"/v1/likes/{content_id}", json={}, headers=auth_headers(reader_id)
        )
        assert response.status_code == 422

    def test_storage_failure_is_internal_error(
        self, client: TestClient, auth_headers, fanout, content_id, reader_id
    ) -> None:
        fanout.failures["_insert"] = OperationTimedOut()

        response = client.post(
            f"/v1/likes/{content_id}",
            json={"currently_liked": False},
            headers=auth_headers(reader_id),
        )

        assert response.status_code == 500
        assert response.json()["message"] == "Internal server error"


class TestContentsAndNotifications:
    def test_reads_show_in_activity(
        self, client: TestClient, content_id, publisher_id
    ) -> None:
        read = client.post(f"/v1/contents/{content_id}/reads")
        client.post(f"/v1/contents/{content_id}/reads")

        activity = client.get(f"/v1/contents/{content_id}/activity")

        assert read.status_code == 200
        assert read.json()["publisher_id"] == str(publisher_id)
        assert activity.json()["total_reads"] == 2
        assert activity.json()["total_comments"] == 0

    def test_activity_of_unknown_content(self, client: TestClient) -> None:
        response = client.get(f"/v1/contents/{uuid4()}/activity")
        assert response.status_code == 404

    def test_user_activity(
        self, client: TestClient, content_id, publisher_id
    ) -> None:
        client.post(f"/v1/contents/{content_id}/reads")

        response = client.get(f"/v1/users/{publisher_id}/activity")

        assert response.status_code == 200
        assert response.json() == {
            "user_id": str(publisher_id),
            "total_comments": 0,
            "total_reads": 1,
        }

    def test_activity_of_unknown_user(self, client: TestClient) -> None:
        response = client.get(f"/v1/users/{uuid4()}/activity")
        assert response.status_code == 404

    def test_unseen_badge(
        self,
        client: TestClient,
        auth_headers,
        fanout,
        content_id,
        reader_id,
        publisher_id,
    ) -> None:
        post_comment(client, auth_headers(reader_id), content_id)

        publisher = client.get(
            "/v1/notifications/unseen", headers=auth_headers(publisher_id)
        )
        fanout.mark_all_seen(publisher_id)
        after_seen = client.get(
            "/v1/notifications/unseen", headers=auth_headers(publisher_id)
        )

        assert publisher.json() == {"new_notification_available": True}
        assert after_seen.json() == {"new_notification_available": False}


def test_unwired_coordinator_is_unavailable() -> None:
    from novelhub.main import create_app  # noqa: PLC0415

    client = TestClient(create_app())
    response = client.get(f"/v1/comments/content/{uuid4()}")
    assert response.status_code == 503

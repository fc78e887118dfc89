"""End-to-end tests for the user service HTTP API."""

from __future__ import annotations

import tempfile
import unittest
import uuid
from pathlib import Path

from fastapi.testclient import TestClient

from usercrud.database import Database
from usercrud.security import verify_password
from usercrud.service import create_app


class UserAPITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "users.sqlite3"
        self.database = Database(db_path)
        self.database.initialize()

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _client(self, **kwargs) -> TestClient:
        return TestClient(create_app(database=self.database, **kwargs))

    def _create(self, client: TestClient, username: str = "alice", email: str = "a@x.com", password: str = "pw1") -> str:
        response = client.post(
            "/users",
            json={"username": username, "email": email, "password": password},
        )
        self.assertEqual(response.status_code, 201, response.text)
        location = response.headers["location"]
        self.assertTrue(location.startswith("/users/"))
        return location.rsplit("/", 1)[-1]

    def test_user_lifecycle(self) -> None:
        with self._client() as client:
            user_id = self._create(client)

            fetched = client.get(f"/users/{user_id}")
            self.assertEqual(fetched.status_code, 200, fetched.text)
            payload = fetched.json()
            self.assertEqual(payload["id"], user_id)
            self.assertEqual(payload["username"], "alice")
            self.assertEqual(payload["email"], "a@x.com")
            self.assertIsNone(payload["updated_at"])
            self.assertNotIn("password", payload)
            self.assertNotIn("password_hash", payload)

            stored = self.database.find_by_id(uuid.UUID(user_id))
            assert stored is not None
            self.assertTrue(verify_password("pw1", stored.password_hash))

            updated = client.put(f"/users/{user_id}", json={"username": "alice2", "password": None})
            self.assertEqual(updated.status_code, 204, updated.text)
            self.assertEqual(updated.content, b"")

            fetched = client.get(f"/users/{user_id}")
            self.assertEqual(fetched.json()["username"], "alice2")
            self.assertIsNotNone(fetched.json()["updated_at"])
            stored = self.database.find_by_id(uuid.UUID(user_id))
            assert stored is not None
            self.assertTrue(verify_password("pw1", stored.password_hash))

            deleted = client.delete(f"/users/{user_id}")
            self.assertEqual(deleted.status_code, 204, deleted.text)

            missing = client.get(f"/users/{user_id}")
            self.assertEqual(missing.status_code, 404)

    def test_list_returns_exactly_remaining_users(self) -> None:
        with self._client() as client:
            first = self._create(client, "alice", "alice@example.com")
            second = self._create(client, "bob", "bob@example.com")
            third = self._create(client, "carol", "carol@example.com")
            self.assertEqual(len({first, second, third}), 3)

            self.assertEqual(client.delete(f"/users/{second}").status_code, 204)

            listing = client.get("/users")
            self.assertEqual(listing.status_code, 200, listing.text)
            ids = {item["id"] for item in listing.json()}
            self.assertEqual(ids, {first, third})

    def test_list_is_empty_initially(self) -> None:
        with self._client() as client:
            listing = client.get("/users")
            self.assertEqual(listing.status_code, 200)
            self.assertEqual(listing.json(), [])

    def test_get_unknown_user_returns_404(self) -> None:
        with self._client() as client:
            response = client.get(f"/users/{uuid.uuid4()}")
            self.assertEqual(response.status_code, 404)

    def test_malformed_identifier_is_a_client_error(self) -> None:
        with self._client() as client:
            self.assertEqual(client.get("/users/not-a-uuid").status_code, 400)
            self.assertEqual(client.put("/users/not-a-uuid", json={"username": "x"}).status_code, 400)
            self.assertEqual(client.delete("/users/not-a-uuid").status_code, 400)

    def test_non_canonical_identifier_of_existing_user_is_a_client_error(self) -> None:
        with self._client() as client:
            user_id = self._create(client)
            hex_form = uuid.UUID(user_id).hex
            for path in (
                f"/users/{hex_form}",
                f"/users/%7B{user_id}%7D",
                f"/users/urn:uuid:{user_id}",
                f"/users/%20{user_id}",
            ):
                with self.subTest(path=path):
                    self.assertEqual(client.get(path).status_code, 400)
                    self.assertEqual(client.delete(path).status_code, 400)

            self.assertEqual(client.get(f"/users/{user_id.upper()}").status_code, 200)
        self.assertEqual(self.database.count(), 1)

    def test_update_and_delete_unknown_user_are_silent(self) -> None:
        with self._client() as client:
            unknown = uuid.uuid4()
            self.assertEqual(client.put(f"/users/{unknown}", json={"username": "ghost"}).status_code, 204)
            self.assertEqual(client.delete(f"/users/{unknown}").status_code, 204)
        self.assertEqual(self.database.count(), 0)

    def test_strict_mode_reports_unknown_user(self) -> None:
        with self._client(strict_not_found=True) as client:
            unknown = uuid.uuid4()
            self.assertEqual(client.put(f"/users/{unknown}", json={"username": "ghost"}).status_code, 404)
            self.assertEqual(client.delete(f"/users/{unknown}").status_code, 404)

            user_id = self._create(client)
            self.assertEqual(client.put(f"/users/{user_id}", json={"password": "pw2"}).status_code, 204)
            self.assertEqual(client.delete(f"/users/{user_id}").status_code, 204)

    def test_create_validates_payload(self) -> None:
        with self._client() as client:
            missing = client.post("/users", json={"username": "alice"})
            self.assertEqual(missing.status_code, 422)

            blank = client.post(
                "/users",
                json={"username": "   ", "email": "a@x.com", "password": "pw"},
            )
            self.assertEqual(blank.status_code, 422)
        self.assertEqual(self.database.count(), 0)

    def test_healthcheck(self) -> None:
        with self._client() as client:
            response = client.get("/healthz")
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.json(), {"status": "ok"})


class UserAPIAuthTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.database = Database(Path(self._tempdir.name) / "users.sqlite3")
        self.app = create_app(database=self.database, api_tokens=["token-one", "token-two"])

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def test_missing_token_is_rejected(self) -> None:
        with TestClient(self.app) as client:
            self.assertEqual(client.get("/users").status_code, 401)

    def test_wrong_token_is_forbidden(self) -> None:
        with TestClient(self.app) as client:
            response = client.get("/users", headers={"Authorization": "Bearer nope"})
            self.assertEqual(response.status_code, 403)

    def test_valid_token_is_accepted(self) -> None:
        with TestClient(self.app) as client:
            headers = {"Authorization": "Bearer token-two"}
            created = client.post(
                "/users",
                headers=headers,
                json={"username": "alice", "email": "a@x.com", "password": "pw1"},
            )
            self.assertEqual(created.status_code, 201, created.text)
            listing = client.get("/users", headers=headers)
            self.assertEqual(listing.status_code, 200)
            self.assertEqual(len(listing.json()), 1)

    def test_healthcheck_does_not_require_token(self) -> None:
        with TestClient(self.app) as client:
            self.assertEqual(client.get("/healthz").status_code, 200)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()

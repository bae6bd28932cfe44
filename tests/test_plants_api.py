"""Plant API tests."""
import base64
import json
from uuid import UUID

from fastapi import status

from ensogrow.db import SessionLocal
from ensogrow.errors import UpstreamAuthError
from ensogrow.models.plant import Plant
from ensogrow.models.user import User

from factories import SURVEY, bearer, fenced, plant_payload

IMAGE = base64.b64encode(b"\x89PNG fake image bytes").decode()


def stored_plant(db_session, plant_id) -> Plant:
    db_session.expire_all()
    return db_session.query(Plant).filter(Plant.id == UUID(str(plant_id))).one()


class TestAuthentication:

    def test_missing_token_is_401(self, client):
        response = client.get("/api/plants/active")
        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["message"] == "Authentication failed"

    def test_auth_checked_before_body(self, client):
        response = client.post("/api/plants/recommendations", json={})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_public_root(self, client):
        response = client.get("/")
        assert response.status_code == status.HTTP_200_OK
        assert "Welcome" in response.json()["message"]


class TestRecommendations:

    def test_two_plants_persisted_and_owned(self, client, advisor, alice, db_session):
        advisor.queue(fenced([plant_payload("Basil", "90%"), plant_payload("Mint", "75%")]))

        response = client.post("/api/plants/recommendations", json=SURVEY, headers=alice)

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Plant recommendations generated successfully"
        assert [p["name"] for p in body["data"]] == ["Basil", "Mint"]

        plant = body["data"][0]
        assert plant["successRate"] == "90%"
        assert plant["isValid"] is True
        assert plant["isActive"] is False
        assert plant["location"] == "balcony"
        assert plant["sunlightHours"] == 4
        assert [s["id"] for s in plant["steps"]] == [1, 2, 3]
        assert all(s["isCompleted"] is False for s in plant["steps"])

        user = db_session.query(User).filter(User.firebase_uid == "alice-uid").one()
        owned_ids = {str(p.id) for p in user.plants}
        assert owned_ids == {p["id"] for p in body["data"]}

    def test_prompt_carries_survey(self, client, advisor, alice):
        advisor.queue(json.dumps([plant_payload("Basil")]))
        client.post("/api/plants/recommendations", json=SURVEY, headers=alice)
        assert "balcony" in advisor.prompts[0]
        assert "4 hours" in advisor.prompts[0]

    def test_top_five_by_success_rate(self, client, advisor, alice, db_session):
        rates = ["40%", "95%", "70%", "85%", "unknown", "60%", "85%"]
        advisor.queue(json.dumps([plant_payload(f"P{i}", rate) for i, rate in enumerate(rates)]))

        response = client.post("/api/plants/recommendations", json=SURVEY, headers=alice)

        assert response.status_code == status.HTTP_200_OK
        assert [p["name"] for p in response.json()["data"]] == ["P1", "P3", "P6", "P2", "P5"]
        # every candidate is stored and owned; only the ranking is truncated
        assert db_session.query(Plant).count() == 7

    def test_missing_survey_field_is_400(self, client, alice):
        response = client.post(
            "/api/plants/recommendations",
            json={"location": "balcony", "sunlightHours": 4},
            headers=alice,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "availableSpace" in response.json()["message"]

    def test_zero_sunlight_is_400(self, client, alice):
        response = client.post(
            "/api/plants/recommendations",
            json={**SURVEY, "sunlightHours": 0},
            headers=alice,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unparsable_response_is_422(self, client, advisor, alice, db_session):
        advisor.queue("Sorry, I can only talk about the weather.")

        response = client.post("/api/plants/recommendations", json=SURVEY, headers=alice)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert "No JSON array found" in response.json()["error"]
        assert db_session.query(Plant).count() == 0

    def test_one_bad_candidate_fails_whole_batch(self, client, advisor, alice, db_session):
        broken = plant_payload("Mint")
        del broken["difficultyLevel"]
        advisor.queue(json.dumps([plant_payload("Basil"), broken]))

        response = client.post("/api/plants/recommendations", json=SURVEY, headers=alice)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert "difficultyLevel" in response.json()["error"]
        assert db_session.query(Plant).count() == 0

    def test_survey_overwritten_on_resubmission(self, client, advisor, alice, db_session):
        advisor.queue(json.dumps([plant_payload("Basil")]), json.dumps([plant_payload("Fern")]))

        client.post("/api/plants/recommendations", json=SURVEY, headers=alice)
        client.post(
            "/api/plants/recommendations",
            json={"location": "north window", "sunlightHours": 2, "availableSpace": "shelf"},
            headers=alice,
        )

        profile = client.get("/api/profile", headers=alice).json()["data"]
        assert profile["location"] == "north window"
        assert profile["sunlightHours"] == 2
        assert profile["availableSpace"] == "shelf"
        assert len(profile["plantIds"]) == 2
        assert db_session.query(User).count() == 1

    def test_upstream_key_rejected(self, client, advisor, alice):
        advisor.queue(UpstreamAuthError(error="invalid key", status_code=401))
        response = client.post("/api/plants/recommendations", json=SURVEY, headers=alice)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_upstream_permission_denied(self, client, advisor, alice):
        advisor.queue(UpstreamAuthError(error="model not allowed"))
        response = client.post("/api/plants/recommendations", json=SURVEY, headers=alice)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["error"] == "model not allowed"

    def test_unexpected_failure_is_500(self, client, advisor, alice):
        advisor.queue(RuntimeError("connection reset"))
        response = client.post("/api/plants/recommendations", json=SURVEY, headers=alice)
        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {
            "message": "Error generating plant recommendations",
            "error": "connection reset",
        }


class TestCustomPlant:

    def test_valid_plant(self, client, alice_plant):
        assert alice_plant["name"] == "Basil"
        assert alice_plant["isValid"] is True
        assert [s["id"] for s in alice_plant["steps"]] == [1, 2, 3]

    def test_rejected_plant_is_400_and_not_persisted(self, client, advisor, alice, db_session):
        advisor.queue('{"isValid": false, "error": "Invalid plant name. Please provide a valid plant name."}')

        response = client.post(
            "/api/plants/custom",
            json={**SURVEY, "plantName": "asdfgh"},
            headers=alice,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json() == {
            "message": "Invalid plant name",
            "error": "Invalid plant name. Please provide a valid plant name.",
        }
        assert db_session.query(Plant).count() == 0

    def test_plant_name_required(self, client, alice):
        response = client.post("/api/plants/custom", json=SURVEY, headers=alice)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "plantName" in response.json()["message"]

    def test_prompt_names_plant(self, client, advisor, alice):
        advisor.queue(json.dumps(plant_payload("Lavender")))
        client.post("/api/plants/custom", json={**SURVEY, "plantName": "Lavender"}, headers=alice)
        assert "Plant to grow: Lavender" in advisor.prompts[0]


class TestPlantAccess:

    def test_owner_reads_plant(self, client, alice, alice_plant):
        response = client.get(f"/api/plants/{alice_plant['id']}", headers=alice)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["id"] == alice_plant["id"]

    def test_non_owner_is_403(self, client, bob, alice_plant):
        response = client.get(f"/api/plants/{alice_plant['id']}", headers=bob)
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_malformed_id_is_404(self, client, alice, alice_plant):
        response = client.get("/api/plants/not-a-real-id", headers=alice)
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["message"] == "Plant not found"


class TestActivation:

    def test_toggle_and_list_active(self, client, advisor, alice, bob, alice_plant):
        response = client.patch(f"/api/plants/{alice_plant['id']}/activate", headers=alice)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "Plant activated successfully"
        assert response.json()["data"]["isActive"] is True

        active = client.get("/api/plants/active", headers=alice).json()["data"]
        assert [p["id"] for p in active] == [alice_plant["id"]]

        # other users never see alice's plants
        assert client.get("/api/plants/active", headers=bob).json()["data"] == []

        response = client.patch(f"/api/plants/{alice_plant['id']}/activate", headers=alice)
        assert response.json()["message"] == "Plant deactivated successfully"
        assert client.get("/api/plants/active", headers=alice).json()["data"] == []

    def test_non_owner_cannot_toggle(self, client, bob, alice_plant, db_session):
        response = client.patch(f"/api/plants/{alice_plant['id']}/activate", headers=bob)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert stored_plant(db_session, alice_plant["id"]).is_active is False


class TestStepCompletion:

    def test_owner_completes_step(self, client, alice, alice_plant, db_session):
        response = client.patch(f"/api/plants/{alice_plant['id']}/steps/2/complete", headers=alice)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["id"] == 2
        assert response.json()["data"]["isCompleted"] is True

        steps = stored_plant(db_session, alice_plant["id"]).steps
        assert [s["isCompleted"] for s in steps] == [False, True, False]

    def test_non_owner_is_403_and_nothing_changes(self, client, bob, alice_plant, db_session):
        response = client.patch(f"/api/plants/{alice_plant['id']}/steps/1/complete", headers=bob)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        steps = stored_plant(db_session, alice_plant["id"]).steps
        assert all(s["isCompleted"] is False for s in steps)

    def test_unknown_step_is_404(self, client, alice, alice_plant):
        response = client.patch(f"/api/plants/{alice_plant['id']}/steps/42/complete", headers=alice)
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["message"] == "Step not found"

    def test_non_numeric_step_is_400(self, client, alice, alice_plant):
        response = client.patch(f"/api/plants/{alice_plant['id']}/steps/first/complete", headers=alice)
        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestDiagnosis:

    def test_remediation_steps_inserted(self, client, advisor, alice, alice_plant, db_session):
        client.patch(f"/api/plants/{alice_plant['id']}/steps/1/complete", headers=alice)
        advisor.queue(json.dumps({
            "needsAttention": True,
            "diagnosis": "Early signs of downy mildew",
            "steps": [
                {"title": "Remove affected leaves", "description": "Cut and bin them", "estimatedTime": "1 day"},
                {"title": "Improve airflow", "description": "Space pots apart", "estimatedTime": "1 week"},
            ],
        }))

        response = client.post(
            f"/api/plants/{alice_plant['id']}/diagnose",
            json={"imageBase64": f"data:image/png;base64,{IMAGE}"},
            headers=alice,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["needsAttention"] is True
        assert [s["id"] for s in data["addedSteps"]] == [4, 5]
        assert [s["id"] for s in data["plant"]["steps"]] == [1, 4, 5, 2, 3]
        assert advisor.images == [(IMAGE, "image/png")]

        steps = stored_plant(db_session, alice_plant["id"]).steps
        assert [s["id"] for s in steps] == [1, 4, 5, 2, 3]

    def test_step_completed_during_diagnosis_is_kept(self, client, advisor, alice, alice_plant, db_session):
        advisor.queue(json.dumps({
            "needsAttention": True,
            "diagnosis": "Leaf spot",
            "steps": [{"title": "Trim spotted leaves", "description": "Use clean shears", "estimatedTime": "1 day"}],
        }))
        analyze_image = advisor.analyze_image

        async def complete_step_two_meanwhile(prompt, image_base64, mime_type="image/jpeg"):
            other = SessionLocal()
            try:
                plant = other.query(Plant).filter(Plant.id == UUID(alice_plant["id"])).one()
                plant.steps = [dict(step, isCompleted=step["id"] == 2) for step in plant.steps]
                other.commit()
            finally:
                other.close()
            return await analyze_image(prompt, image_base64, mime_type)

        advisor.analyze_image = complete_step_two_meanwhile

        response = client.post(
            f"/api/plants/{alice_plant['id']}/diagnose",
            json={"imageBase64": IMAGE},
            headers=alice,
        )

        assert response.status_code == status.HTTP_200_OK
        steps = stored_plant(db_session, alice_plant["id"]).steps
        assert [(s["id"], s["isCompleted"]) for s in steps] == [(1, False), (2, True), (4, False), (3, False)]

    def test_healthy_plant_unchanged(self, client, advisor, alice, alice_plant):
        advisor.queue('{"needsAttention": false, "diagnosis": "Healthy and thriving"}')

        response = client.post(
            f"/api/plants/{alice_plant['id']}/diagnose",
            json={"imageBase64": IMAGE},
            headers=alice,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert data["addedSteps"] == []
        assert [s["id"] for s in data["plant"]["steps"]] == [1, 2, 3]

    def test_invalid_base64_is_400(self, client, advisor, alice, alice_plant):
        response = client.post(
            f"/api/plants/{alice_plant['id']}/diagnose",
            json={"imageBase64": "not base64!!"},
            headers=alice,
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert advisor.images == []

    def test_non_owner_is_403(self, client, advisor, bob, alice_plant):
        response = client.post(
            f"/api/plants/{alice_plant['id']}/diagnose",
            json={"imageBase64": IMAGE},
            headers=bob,
        )
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert advisor.images == []


class TestProfile:

    def test_profile_404_before_first_survey(self, client):
        response = client.get("/api/profile", headers=bearer("new-uid", "new@example.com"))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_profile_lists_plants(self, client, alice, alice_plant):
        data = client.get("/api/profile", headers=alice).json()["data"]
        assert data["email"] == "alice@example.com"
        assert data["plantIds"] == [alice_plant["id"]]

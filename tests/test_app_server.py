"""
Tests for the HTTP endpoints.

Tests cover:
- Health check
- Expected grade letter and form
- Booking confirmation
- Recommendation letters
- Stamping an uploaded template
- Error responses
"""

import base64
import json

import config
from template_inspect import extract_words, page_count


def words(response):
    return [word["text"] for word in extract_words(response.content)]


class TestHealthCheck:
    def test_health_check_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestExpectedGrade:
    def test_letter_is_returned_as_attachment(self, client, grade_payload):
        response = client.post("/api/generate-expected-grade-pdf", json=grade_payload)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"].startswith('attachment; filename="Expected_Grade_Sheet_')
        assert "MATHEMATICS" in words(response)

    def test_form_defaults_to_v2(self, client, grade_payload):
        response = client.post("/api/generate-expected-grade-form", json=grade_payload)
        assert response.status_code == 200
        assert page_count(response.content) == 1
        assert {"JANE", "DOE", "1234567890123", "Physics", "B"} <= set(words(response))
        assert "(b)" not in words(response)

    def test_form_v1(self, client, grade_payload):
        response = client.post("/api/generate-expected-grade-form?version=v1", json=grade_payload)
        assert response.status_code == 200

    def test_unknown_form_version(self, client, grade_payload):
        response = client.post("/api/generate-expected-grade-form?version=v3", json=grade_payload)
        assert response.status_code == 422
        assert response.json()["message"] == "Request validation failed."

    def test_missing_letterhead(self, client, templates_dir, grade_payload):
        (templates_dir / config.LETTERHEAD_TEMPLATE).unlink()
        response = client.post("/api/generate-expected-grade-pdf", json=grade_payload)
        assert response.status_code == 500
        body = response.json()
        assert body["message"] == "Failed to generate PDF."
        assert config.LETTERHEAD_TEMPLATE in body["error"]


class TestBookingConfirmation:
    def test_generates_confirmation(self, client):
        response = client.post(
            "/api/generate-booking-confirmation",
            json={"facility": "Main Hall", "date": "2026-03-20", "time": "09:00", "personInCharge": "Mr. Perera"},
        )
        assert response.status_code == 200
        assert 'filename="Facility_Booking_Confirmation_20-03-2026.pdf"' in response.headers["content-disposition"]
        assert "Hall" in words(response)

    def test_missing_field(self, client):
        response = client.post("/api/generate-booking-confirmation", json={"facility": "Main Hall"})
        assert response.status_code == 422


class TestRecommendationLetters:
    LETTER = {
        "firstName": "Jane",
        "lastName": "Doe",
        "gender": "female",
        "grade": "Grade 12",
        "refereeName": "Ms. Silva",
        "refereeDesignation": "Head of Sixth Form",
        "refereeEmail": "silva@example.org",
        "country": "Canada",
        "selectedOptions": [
            "[First Name] is diligent.",
            "[First Name] is kind to [his/her] peers.",
            "Teachers trust [him/her].",
        ],
    }

    def test_recommendation_letter(self, client):
        response = client.post("/api/generate-recommendation-letter", json=self.LETTER)
        assert response.status_code == 200
        assert 'filename="Reference Letter - Jane Doe.pdf"' in response.headers["content-disposition"]
        assert "Canada" in words(response)

    def test_exactly_three_options_required(self, client):
        letter = dict(self.LETTER, selectedOptions=["one", "two"])
        response = client.post("/api/generate-recommendation-letter", json=letter)
        assert response.status_code == 422

    def test_sports_recommendation_with_inline_signature(self, client, png_bytes):
        letter = {k: v for k, v in self.LETTER.items() if k != "selectedOptions"}
        letter.update(
            sportsAchievements=[{"description": "Badminton champion", "month": "May", "year": 2026}],
            signatureUrl="data:image/png;base64," + base64.b64encode(png_bytes).decode(),
            PRINCIPAL_STAMP_URL="data:image/png;base64,broken!!",
        )
        response = client.post("/api/generate-sports-recommendation", json=letter)
        assert response.status_code == 200
        assert "Sports Recommendation - Jane Doe.pdf" in response.headers["content-disposition"]
        assert "badminton," in words(response)


class TestStampUpload:
    def post(self, client, template, payload, fields):
        return client.post(
            "/api/stamp",
            files={"template": ("form.pdf", template, "application/pdf")},
            data={"payload_json": payload, "fields_json": fields},
        )

    def test_stamps_uploaded_template(self, client, template_pdf):
        fields = {"fields": [{"name": "STUDENT_FULL_NAME", "page": 0, "x": 100, "y": 500}]}
        response = self.post(client, template_pdf, json.dumps({"STUDENT_FULL_NAME": "JANE"}), json.dumps(fields))
        assert response.status_code == 200
        assert words(response) == ["JANE"]

    def test_invalid_payload_json(self, client, template_pdf):
        response = self.post(client, template_pdf, "{oops", "{}")
        assert response.status_code == 400

    def test_payload_must_be_object(self, client, template_pdf):
        response = self.post(client, template_pdf, "[1, 2]", "{}")
        assert response.status_code == 400

    def test_malformed_field_map(self, client, template_pdf):
        response = self.post(client, template_pdf, "{}", json.dumps({"NAME": {"x": 1}}))
        assert response.status_code == 400
        assert "missing" in response.json()["error"]

    def test_unreadable_template(self, client):
        response = self.post(client, b"not a pdf", "{}", "{}")
        assert response.status_code == 400

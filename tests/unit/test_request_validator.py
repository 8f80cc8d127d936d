"""
Unit tests for RequestValidator.

Checks run in order and the first failing constraint names the reason.
"""
import pytest

from app.models.journal_entry import EntryType
from app.services.analysis_errors import ValidationError
from app.services.request_validator import RequestValidator

MAX_LENGTH = 10 * 1024 * 1024


@pytest.fixture
def validator():
    return RequestValidator(min_length=100, max_length=MAX_LENGTH)


def make_request(**overrides):
    body = {"analysis_type": "poop", "image_data": "A" * 200}
    body.update(overrides)
    return body


def reason_for(validator, body) -> str:
    with pytest.raises(ValidationError) as exc_info:
        validator.validate(body)
    assert exc_info.value.status_code == 400
    return exc_info.value.reason


class TestAnalysisType:
    def test_missing_type(self, validator):
        body = make_request()
        del body["analysis_type"]
        assert reason_for(validator, body) == "missing_type"

    def test_empty_type_is_missing(self, validator):
        assert reason_for(validator, make_request(analysis_type="")) == "missing_type"

    @pytest.mark.parametrize("value", ["walk", "POOP", 3, ["meal"]])
    def test_invalid_type(self, validator, value):
        assert reason_for(validator, make_request(analysis_type=value)) == "invalid_type"

    @pytest.mark.parametrize("value", ["meal", "poop", "emotion"])
    def test_each_type_accepted(self, validator, value):
        request = validator.validate(make_request(analysis_type=value))
        assert request.analysis_type == EntryType(value)

    def test_type_checked_before_image(self, validator):
        assert reason_for(validator, {"analysis_type": "walk"}) == "invalid_type"


class TestImagePresence:
    def test_missing_image(self, validator):
        assert reason_for(validator, {"analysis_type": "meal"}) == "missing_image"

    def test_image_ref_alone_is_enough(self, validator):
        request = validator.validate(
            {"analysis_type": "meal", "image_ref": "dog-images/otayori/abc/1.jpg"}
        )
        assert request.image_data is None
        assert request.image_ref == "dog-images/otayori/abc/1.jpg"

    def test_image_url_alias(self, validator):
        request = validator.validate(
            {"analysis_type": "meal", "image_url": "https://cdn.example.com/a.jpg"}
        )
        assert request.image_ref == "https://cdn.example.com/a.jpg"


class TestMimeType:
    @pytest.mark.parametrize("value", ["image/jpeg", "image/png", "image/gif", "image/webp"])
    def test_supported_types_accepted(self, validator, value):
        assert validator.validate(make_request(image_mime_type=value)).image_mime_type == value

    @pytest.mark.parametrize(
        "value", ["application/pdf", "image/heic", "IMAGE/JPEG", "", 5, ["image/png"]]
    )
    def test_unsupported_type_rejected(self, validator, value):
        assert reason_for(validator, make_request(image_mime_type=value)) == "unsupported_mime_type"

    def test_checked_before_encoding(self, validator):
        body = make_request(image_data="!!", image_mime_type="application/pdf")
        assert reason_for(validator, body) == "unsupported_mime_type"

    def test_omitted_type_allowed(self, validator):
        assert validator.validate(make_request()).image_mime_type is None


class TestEncoding:
    @pytest.mark.parametrize(
        "payload",
        [
            "A" * 150 + "!",
            "data:image/jpeg;base64," + "A" * 150,
            "A" * 150 + "===",
            "A" * 150 + "\n",
            "A" * 75 + " " + "A" * 75,
        ],
    )
    def test_malformed_encoding(self, validator, payload):
        assert reason_for(validator, make_request(image_data=payload)) == "malformed_encoding"

    def test_non_string_payload(self, validator):
        assert reason_for(validator, make_request(image_data=12345)) == "malformed_encoding"

    def test_padding_accepted(self, validator):
        validator.validate(make_request(image_data="A" * 148 + "=="))

    def test_length_99_rejected(self, validator):
        assert reason_for(validator, make_request(image_data="A" * 99)) == "too_short"

    def test_length_100_accepted(self, validator):
        validator.validate(make_request(image_data="A" * 100))

    def test_length_max_accepted(self, validator):
        validator.validate(make_request(image_data="A" * MAX_LENGTH))

    def test_length_max_plus_one_rejected(self, validator):
        assert reason_for(validator, make_request(image_data="A" * (MAX_LENGTH + 1))) == "too_large"

    def test_encoding_checked_before_length(self, validator):
        assert reason_for(validator, make_request(image_data="!" * 10)) == "malformed_encoding"


class TestOptionalFields:
    def test_subject_info_parsed(self, validator):
        request = validator.validate(
            make_request(
                subject_info={
                    "breed": "Shiba Inu",
                    "age_years": 4,
                    "weight_kg": 9.5,
                    "medical_history": ["allergy: chicken"],
                }
            )
        )
        assert request.subject_info.breed == "Shiba Inu"
        assert request.subject_info.medical_history == ["allergy: chicken"]

    def test_malformed_subject_info(self, validator):
        body = make_request(subject_info={"age_years": -1})
        assert reason_for(validator, body) == "malformed_request"

    def test_non_object_body(self, validator):
        assert reason_for(validator, ["poop"]) == "malformed_request"

    def test_validation_has_no_side_effects(self, validator):
        body = make_request()
        snapshot = dict(body)
        validator.validate(body)
        assert body == snapshot

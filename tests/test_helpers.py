from academy.core.database import serialize_mongo
from academy.progress.certificate import safe_filename
from academy.progress.service import certificate_status, completion_percentage, derive_skill_level


def test_skill_level_bands():
    assert derive_skill_level(None) == {"label": "Beginner", "percent": 0}
    assert derive_skill_level(0)["label"] == "Beginner"
    assert derive_skill_level(39.6) == {"label": "Beginner", "percent": 40}
    assert derive_skill_level(40)["label"] == "Intermediate"
    assert derive_skill_level(70)["label"] == "Advanced"
    assert derive_skill_level(89)["label"] == "Advanced"
    assert derive_skill_level(90)["label"] == "Expert"


def test_completion_percentage():
    assert completion_percentage(0, 0) == 0
    assert completion_percentage(1, 3) == 33
    assert completion_percentage(2, 3) == 67
    assert completion_percentage(5, 3) == 100


def test_certificate_status():
    assert certificate_status({"completion_percentage": 80}) == "Pending"
    assert certificate_status({"completion_percentage": 100}) == "Available"
    assert certificate_status({"completion_percentage": 100, "certificate_downloaded_at": "x"}) == "Downloaded"


def test_safe_filename():
    assert safe_filename("C++ & Rust: 2024") == "C_____Rust__2024"
    assert safe_filename("") == "Course"


def test_serialize_mongo_drops_object_id():
    assert serialize_mongo({"_id": object(), "user_id": "USER_1"}) == {"user_id": "USER_1"}
    assert serialize_mongo(None) is None

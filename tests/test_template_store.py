"""
Tests for template stores.
"""

import pytest

from document_errors import StampingError, TemplateNotFound
from template_store import BucketTemplateStore, LocalTemplateStore


class FakeBlob:
    def __init__(self, data):
        self.data = data

    def exists(self):
        return self.data is not None

    def download_as_bytes(self):
        return self.data


class FakeBucket:
    name = "school-templates"

    def __init__(self, blobs):
        self.blobs = blobs
        self.requested = []

    def blob(self, path):
        self.requested.append(path)
        return FakeBlob(self.blobs.get(path))


class TestLocalTemplateStore:
    def test_loads_template_bytes(self, tmp_path, template_pdf):
        (tmp_path / "letterhead.pdf").write_bytes(template_pdf)
        assert LocalTemplateStore(tmp_path).load("letterhead.pdf") == template_pdf

    def test_missing_template(self, tmp_path):
        with pytest.raises(TemplateNotFound) as excinfo:
            LocalTemplateStore(tmp_path).load("letterhead.pdf")
        assert isinstance(excinfo.value, StampingError)
        assert isinstance(excinfo.value, FileNotFoundError)
        assert "letterhead.pdf" in str(excinfo.value)

    def test_names_cannot_leave_the_folder(self, tmp_path):
        store = LocalTemplateStore(tmp_path / "templates")
        assert store.path_for("../../etc/passwd") == tmp_path / "templates" / "passwd"

    @pytest.mark.parametrize("name", ["", "..", "/"])
    def test_empty_names_are_not_found(self, tmp_path, name):
        with pytest.raises(TemplateNotFound):
            LocalTemplateStore(tmp_path).load(name)


class TestBucketTemplateStore:
    def test_loads_under_prefix(self, template_pdf):
        bucket = FakeBucket({"templates/letterhead.pdf": template_pdf})
        assert BucketTemplateStore(bucket).load("letterhead.pdf") == template_pdf
        assert bucket.requested == ["templates/letterhead.pdf"]

    def test_missing_blob(self):
        with pytest.raises(TemplateNotFound, match="school-templates"):
            BucketTemplateStore(FakeBucket({})).load("letterhead.pdf")

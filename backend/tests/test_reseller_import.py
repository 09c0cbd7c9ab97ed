from __future__ import annotations

import io

import pytest
from fastapi import UploadFile

from backend.app import models
from backend.app.routers import resellers as reseller_routes
from backend.app.services import (
    ResellerImportError,
    ResellerImportService,
    ResellerService,
    ResellerStorageError,
)


def _import(db_session, content: str):
    return ResellerImportService.import_resellers(db_session, io.StringIO(content))


def test_import_collects_row_errors_without_aborting(db_session):
    content = (
        "name,description\n"
        "Alpha,first\n"
        ",missing name\n"
        "Bravo,second\n"
        "Charlie,third\n"
    )

    summary = _import(db_session, content)

    assert summary.imported == 3
    assert summary.error_count == 1
    assert summary.errors[0].row_number == 3
    assert summary.errors[0].error == "Name is required"
    assert summary.errors[0].row == {"name": "", "description": "missing name"}
    assert [result.name for result in summary.results] == ["Alpha", "Bravo", "Charlie"]
    names = [reseller.name for reseller in ResellerService.list_resellers(db_session)]
    assert names == ["Alpha", "Bravo", "Charlie"]


def test_import_normalizes_mixed_case_headers_with_bom(db_session):
    mixed = (
        "\ufeffName , Logo_URL,DESCRIPTION,Website_Url,Location_URL,Latitude,Longitude\n"
        "Acme,https://x/logo.png,desc,https://acme.com,https://maps?q=1,1.5,2.5\n"
    )
    lower = (
        "name,logo_url,description,website_url,location_url,latitude,longitude\n"
        "Acme,https://x/logo.png,desc,https://acme.com,https://maps?q=1,1.5,2.5\n"
    )

    first = _import(db_session, mixed)
    second = _import(db_session, lower)

    assert first.imported == second.imported == 1
    stored = ResellerService.list_resellers(db_session)
    columns = ("name", "logo_url", "description", "website_url", "location_url", "latitude", "longitude")
    snapshots = [tuple(getattr(reseller, column) for column in columns) for reseller in stored]
    assert snapshots[0] == snapshots[1]
    assert snapshots[0] == ("Acme", "https://x/logo.png", "desc", "https://acme.com", "https://maps?q=1", 1.5, 2.5)


def test_import_quoted_row_with_coordinates(db_session):
    content = (
        "name,logo_url,description,website_url,location_url,latitude,longitude\n"
        '"Acme Industrial","https://x/logo.png","desc","https://acme.com","https://maps?q=1",40.7128,-74.0060\n'
    )

    summary = _import(db_session, content)

    assert summary.imported == 1
    reseller = ResellerService.get_reseller(db_session, summary.results[0].id)
    assert reseller.name == "Acme Industrial"
    assert reseller.latitude == pytest.approx(40.7128)
    assert reseller.longitude == pytest.approx(-74.0060)


def test_import_uses_lat_lng_columns_as_fallback(db_session):
    summary = _import(db_session, "name,lat,lng\nDepot,10.5,-20.25\n")

    assert summary.imported == 1
    assert summary.warnings == []
    reseller = ResellerService.get_reseller(db_session, summary.results[0].id)
    assert (reseller.latitude, reseller.longitude) == (10.5, -20.25)


def test_import_warns_when_coordinate_columns_conflict(db_session):
    summary = _import(db_session, "name,latitude,lat,longitude,lng\nDepot,10,11,20,20.0\n")

    assert summary.imported == 1
    assert len(summary.warnings) == 1
    assert summary.warnings[0].row_number == 2
    assert "'latitude'" in summary.warnings[0].message
    reseller = ResellerService.get_reseller(db_session, summary.results[0].id)
    assert (reseller.latitude, reseller.longitude) == (10.0, 20.0)


def test_import_rejects_non_numeric_and_out_of_range_coordinates(db_session):
    content = "name,latitude,longitude\nBad Number,north,1\nOut Of Range,95,1\nGood,1,1\n"

    summary = _import(db_session, content)

    assert summary.imported == 1
    assert summary.error_count == 2
    assert "latitude must be a number" in summary.errors[0].error
    assert summary.errors[1].error == "Invalid reseller data"
    assert "latitude" in summary.errors[1].field_errors


def test_import_skips_blank_rows_and_optional_columns(db_session):
    summary = _import(db_session, "name,unknown_column\nSolo,ignored\n,\n")

    assert summary.imported == 1
    assert summary.error_count == 0
    reseller = ResellerService.get_reseller(db_session, summary.results[0].id)
    assert reseller.description is None
    assert reseller.latitude is None


def test_import_records_storage_failures_per_row(db_session, monkeypatch):
    original = ResellerService.create_reseller

    def flaky_create(db, data):
        if data.name == "Broken":
            raise ResellerStorageError("Could not create reseller: constraint failed")
        return original(db, data)

    monkeypatch.setattr(ResellerService, "create_reseller", staticmethod(flaky_create))

    summary = _import(db_session, "name\nFirst\nBroken\nLast\n")

    assert summary.imported == 2
    assert summary.error_count == 1
    assert summary.errors[0].row == {"name": "Broken"}
    assert "constraint failed" in summary.errors[0].error


def test_import_without_header_is_rejected(db_session):
    with pytest.raises(ResellerImportError):
        _import(db_session, "")


def test_import_from_path_removes_the_source_file(db_session, tmp_path):
    source = tmp_path / "upload.csv"
    source.write_text("\ufeffname\nFrom File\n", encoding="utf-8")

    summary = ResellerImportService.import_resellers_from_path(db_session, source)

    assert summary.imported == 1
    assert summary.results[0].name == "From File"
    assert not source.exists()


def test_import_from_path_removes_the_source_file_when_stream_fails(db_session, tmp_path):
    source = tmp_path / "broken.csv"
    source.write_bytes(b"name\nOk\n\xff\xfe\xfa broken bytes\n")

    with pytest.raises(ResellerImportError):
        ResellerImportService.import_resellers_from_path(db_session, source)

    assert not source.exists()


def test_import_from_path_can_keep_the_source_file(db_session, tmp_path):
    source = tmp_path / "keep.csv"
    source.write_text("name\nKept\n", encoding="utf-8")

    ResellerImportService.import_resellers_from_path(db_session, source, remove_source=False)

    assert source.exists()


def test_import_template_lists_expected_columns():
    template = ResellerImportService.build_import_template()

    header = template.splitlines()[0]
    assert header == "name,logo_url,description,website_url,location_url,latitude,longitude"


def test_import_api_accepts_multipart_upload(client, db_session, tmp_path, monkeypatch):
    monkeypatch.setenv("RESELLER_UPLOAD_DIR", str(tmp_path))
    content = "Name,Lat,Lng\nUploaded,1,2\n,3,4\n".encode("utf-8")

    response = client.post(
        "/api/resellers/import",
        files={"csv": ("resellers.csv", content, "text/csv")},
    )

    assert response.status_code == 200, response.json()
    payload = response.json()
    assert payload["imported"] == 1
    assert payload["error_count"] == 1
    assert payload["results"][0]["name"] == "Uploaded"
    assert payload["errors"][0]["row"] == {"Name": "", "Lat": "3", "Lng": "4"}
    assert list(tmp_path.iterdir()) == []
    assert db_session.query(models.Reseller).count() == 1


def test_import_api_rejects_empty_file(client, tmp_path, monkeypatch):
    monkeypatch.setenv("RESELLER_UPLOAD_DIR", str(tmp_path))

    response = client.post(
        "/api/resellers/import",
        files={"csv": ("empty.csv", b"", "text/csv")},
    )

    assert response.status_code == 400
    assert list(tmp_path.iterdir()) == []


def test_import_template_endpoint(client):
    response = client.get("/api/resellers/import/template")

    assert response.status_code == 200
    assert "text/csv" in response.headers.get("content-type", "")
    assert "attachment" in response.headers.get("content-disposition", "")
    assert response.text.splitlines()[0].startswith("name,")


class _FailingStream(io.BytesIO):
    def read(self, *args, **kwargs):
        raise OSError("connection reset while reading upload")


def test_spooled_upload_is_removed_when_copy_fails(tmp_path, monkeypatch):
    monkeypatch.setenv("RESELLER_UPLOAD_DIR", str(tmp_path))
    upload = UploadFile(file=_FailingStream(), filename="resellers.csv")

    with pytest.raises(OSError):
        reseller_routes._spool_upload(upload)

    assert list(tmp_path.iterdir()) == []

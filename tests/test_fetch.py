"""Tests for downloading the parquet sources."""

import pytest
import requests

from interwar_explorer.config import PARQUET_SOURCES
from interwar_explorer.fetch import fetch_sources


class FakeResponse:
    def __init__(self, chunks, status=200, fail_after=None, error=None):
        self.chunks = chunks
        self.status = status
        self.fail_after = fail_after
        self.error = error or requests.exceptions.ChunkedEncodingError("connection broken")
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.exceptions.HTTPError(f"{self.status} Error")

    def iter_content(self, chunk_size=1):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i >= self.fail_after:
                raise self.error
            yield chunk


class FakeSession:
    def __init__(self, responses=None):
        self.responses = responses or {}
        self.urls = []

    def get(self, url, headers=None, stream=False, timeout=None):
        self.urls.append(url)
        filename = url.rsplit("/", 1)[-1]
        return self.responses.get(filename) or FakeResponse([b"PAR1", b"data"])


def by_file(results):
    return {r["file"]: r for r in results}


class TestFetchSources:
    """Tests for fetch_sources."""

    def test_downloads_every_source(self, tmp_path):
        session = FakeSession()
        results = fetch_sources("https://example.org/data/", tmp_path, session=session, progress=False)
        assert [r["status"] for r in results] == ["downloaded"] * len(PARQUET_SOURCES)
        assert session.urls[0] == "https://example.org/data/" + PARQUET_SOURCES[0][1]
        assert (tmp_path / "columns_metadata.parquet").read_bytes() == b"PAR1data"

    def test_existing_files_skipped(self, tmp_path):
        (tmp_path / "columns_metadata.parquet").write_bytes(b"old")
        results = by_file(fetch_sources("https://example.org", tmp_path, session=FakeSession(), progress=False))
        assert results["columns_metadata.parquet"]["status"] == "skipped"
        assert (tmp_path / "columns_metadata.parquet").read_bytes() == b"old"

    def test_force_overwrites(self, tmp_path):
        (tmp_path / "columns_metadata.parquet").write_bytes(b"old")
        results = by_file(fetch_sources("https://example.org", tmp_path, force=True,
                                        session=FakeSession(), progress=False))
        assert results["columns_metadata.parquet"]["status"] == "downloaded"
        assert (tmp_path / "columns_metadata.parquet").read_bytes() == b"PAR1data"

    def test_http_error_reported(self, tmp_path):
        session = FakeSession({"City_datasets.parquet": FakeResponse([], status=404)})
        results = by_file(fetch_sources("https://example.org", tmp_path, session=session, progress=False))
        assert results["City_datasets.parquet"]["status"] == "failed"
        assert "404" in results["City_datasets.parquet"]["detail"]
        assert results["columns_metadata.parquet"]["status"] == "downloaded"

    def test_partial_file_removed(self, tmp_path):
        session = FakeSession({"Region_datasets.parquet": FakeResponse([b"a", b"b"], fail_after=1)})
        results = by_file(fetch_sources("https://example.org", tmp_path, session=session, progress=False))
        assert results["Region_datasets.parquet"]["status"] == "failed"
        assert not (tmp_path / "Region_datasets.parquet").exists()

    def test_creates_directory(self, tmp_path):
        target = tmp_path / "nested" / "data"
        fetch_sources("https://example.org", target, session=FakeSession(), progress=False)
        assert (target / "data_tables_metadata.parquet").exists()

    def test_requires_base_url(self, tmp_path):
        with pytest.raises(ValueError):
            fetch_sources("", tmp_path, session=FakeSession(), progress=False)

    def test_failed_forced_download_keeps_existing_copy(self, tmp_path):
        (tmp_path / "columns_metadata.parquet").write_bytes(b"good")
        session = FakeSession({"columns_metadata.parquet": FakeResponse([], status=404)})
        results = by_file(fetch_sources("https://example.org", tmp_path, force=True,
                                        session=session, progress=False))
        assert results["columns_metadata.parquet"]["status"] == "failed"
        assert (tmp_path / "columns_metadata.parquet").read_bytes() == b"good"

    def test_write_error_leaves_no_partial_file(self, tmp_path):
        response = FakeResponse([b"PAR1", b"rest"], fail_after=1, error=OSError("disk full"))
        session = FakeSession({"District_datasets.parquet": response})
        results = by_file(fetch_sources("https://example.org", tmp_path, session=session, progress=False))
        assert results["District_datasets.parquet"]["status"] == "failed"
        assert "disk full" in results["District_datasets.parquet"]["detail"]
        assert not (tmp_path / "District_datasets.parquet").exists()
        assert not (tmp_path / "District_datasets.parquet.part").exists()
        assert response.closed

    def test_completed_download_leaves_no_part_file(self, tmp_path):
        fetch_sources("https://example.org", tmp_path, session=FakeSession(), progress=False)
        assert not list(tmp_path.glob("*.part"))

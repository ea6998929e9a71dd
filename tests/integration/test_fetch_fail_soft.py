from __future__ import annotations

from pathlib import Path

import pytest

from london_sqft.common.errors import StageError
from london_sqft.common.http import HttpRequestError
from london_sqft.harvest import runner


class FakeClient:
    """Serves canned bodies per URL suffix; anything else fails like a 404."""

    def __init__(self, bodies: dict[str, bytes]):
        self.bodies = bodies
        self.requested: list[str] = []

    def download(self, url: str, dest: Path, *, headers=None) -> int:
        self.requested.append(url)
        for suffix, body in self.bodies.items():
            if url.endswith(suffix):
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(body)
                return len(body)
        raise HttpRequestError(f"HTTP status: 404 for {url}")


def _small_bundle(bundle, boroughs):
    sources = dict(bundle.sources)
    sources["buildings"] = {**sources["buildings"], "boroughs": boroughs}
    return type(bundle)(pipeline=bundle.pipeline, sources=sources)


@pytest.mark.integration
def test_fetch_fail_soft_when_one_borough_unavailable(monkeypatch, bundle, tmp_path: Path):
    monkeypatch.setenv("EPC_AUTH_TOKEN", "dG9rZW4=")
    small = _small_bundle(
        bundle,
        [{"code": "E09000030", "name": "Tower-Hamlets"}, {"code": "E09000020", "name": "Kensington-and-Chelsea"}],
    )
    client = FakeClient(
        {
            "pp-2024.csv": b"row\n",
            "pp-2025.csv": b"row\n",
            "Tower-Hamlets.zip": b"x" * 2048,
            "Kensington-and-Chelsea.zip": b"<html>error</html>",
        }
    )

    result = runner.run_fetch(small, tmp_path, "run-1", client=client)

    assert result["failed"] == ["epc:E09000020"]
    assert result["results"]["land_registry"] == {"pp-2024.csv": 4, "pp-2025.csv": 4}
    assert result["results"]["epc"] == {"E09000030.zip": 2048}
    assert not (tmp_path / "raw" / "epc" / "E09000020.zip").exists()


@pytest.mark.integration
def test_fetch_uses_cached_files_unless_forced(monkeypatch, bundle, tmp_path: Path):
    monkeypatch.setenv("EPC_AUTH_TOKEN", "dG9rZW4=")
    small = _small_bundle(bundle, [{"code": "E09000030", "name": "Tower-Hamlets"}])
    for name in ("pp-2024.csv", "pp-2025.csv"):
        (tmp_path / "raw" / "ppd").mkdir(parents=True, exist_ok=True)
        (tmp_path / "raw" / "ppd" / name).write_bytes(b"cached\n")
    client = FakeClient({"Tower-Hamlets.zip": b"x" * 2048})

    result = runner.run_fetch(small, tmp_path, "run-1", client=client)

    assert result["results"]["land_registry"] == {"pp-2024.csv": None, "pp-2025.csv": None}
    assert len(client.requested) == 1

    with pytest.raises(StageError):
        runner.run_fetch(small, tmp_path, "run-2", client=FakeClient({}), force=True)


@pytest.mark.integration
def test_fetch_without_token_marks_certificates_failed(monkeypatch, bundle, tmp_path: Path):
    monkeypatch.delenv("EPC_AUTH_TOKEN", raising=False)
    client = FakeClient({"pp-2024.csv": b"row\n", "pp-2025.csv": b"row\n"})

    result = runner.run_fetch(bundle, tmp_path, "run-1", client=client)

    assert result["failed"] == ["epc"]
    assert "epc" not in result["results"]


@pytest.mark.integration
def test_fetch_keeps_other_years_when_one_year_unavailable(monkeypatch, bundle, tmp_path: Path):
    monkeypatch.setenv("EPC_AUTH_TOKEN", "dG9rZW4=")
    small = _small_bundle(bundle, [{"code": "E09000030", "name": "Tower-Hamlets"}])
    client = FakeClient({"pp-2024.csv": b"row\n", "Tower-Hamlets.zip": b"x" * 2048})

    result = runner.run_fetch(small, tmp_path, "run-1", client=client)

    assert result["failed"] == ["land_registry:pp-2025.csv"]
    assert result["results"]["land_registry"] == {"pp-2024.csv": 4}
    assert (tmp_path / "raw" / "ppd" / "pp-2024.csv").read_bytes() == b"row\n"
    assert not (tmp_path / "raw" / "ppd" / "pp-2025.csv").exists()
    assert sum(url.endswith(".csv") for url in client.requested) == 2

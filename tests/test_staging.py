"""Tests for the tar.gz staging pipeline."""

from __future__ import annotations

import base64
import os
import warnings
from pathlib import Path

import pytest

from component.modules.errors import CommitError, NotStaged, StageError, TransportError, ValidationError
from component.modules import staging
from component.modules.staging import StageState, TarGzStage
from tests.conftest import build_tar_gz


def _staged(url: str, name: str = "scanner", policy=None) -> TarGzStage:
    stage = TarGzStage(name, url, policy=policy)
    stage.download()
    stage.unpack()
    return stage


def test_full_pipeline_and_commit(tmp_path: Path, make_artifact) -> None:
    url = make_artifact("scanner", "1.1.1", extra={"lib/nested/data.json": b"{}"})
    target = tmp_path / "install"
    target.mkdir()

    with _staged(url) as stage:
        assert sorted(os.listdir(stage.directory)) == [".signature", ".version", "lib", "scanner"]
        stage.validate()
        assert stage.state is StageState.VALIDATED
        stage.commit(str(target))
        assert os.listdir(stage.directory) == []
        assert stage.state is StageState.COMMITTED
        stage_dir = stage.directory

    assert not os.path.exists(stage_dir)
    assert (target / ".version").read_text().strip() == "1.1.1"
    assert (target / "lib" / "nested" / "data.json").read_bytes() == b"{}"
    assert (target / "scanner").exists()


def test_commit_replaces_existing_entries(tmp_path: Path, make_artifact) -> None:
    url = make_artifact("scanner", "1.1.1", extra={"lib/new.txt": b"new"})
    target = tmp_path / "install"
    (target / "lib").mkdir(parents=True)
    (target / "lib" / "old.txt").write_text("old")
    (target / ".version").write_text("1.0.0")

    with _staged(url) as stage:
        stage.commit(str(target))

    assert (target / ".version").read_text().strip() == "1.1.1"
    assert sorted(os.listdir(target / "lib")) == ["new.txt"]


def test_commit_requires_existing_target(tmp_path: Path, make_artifact) -> None:
    with _staged(make_artifact("scanner", "1.1.1")) as stage:
        with pytest.raises(CommitError) as exc:
            stage.commit(str(tmp_path / "missing"))
    assert exc.value.pending == []


@pytest.mark.parametrize("missing", [".version", ".signature", "scanner"])
def test_validate_names_missing_file(make_artifact, missing: str) -> None:
    url = make_artifact("scanner", "1.1.1", skip=(missing,))
    with _staged(url) as stage:
        with pytest.raises(ValidationError) as exc:
            stage.validate()
    assert exc.value.filename == missing


def test_validate_rejects_bad_version(make_artifact) -> None:
    url = make_artifact("scanner", "latest")
    with _staged(url) as stage:
        with pytest.raises(ValidationError, match="invalid staged semantic version"):
            stage.validate()


def test_signature_raw_or_base64(make_artifact) -> None:
    raw_url = make_artifact("scanner", "1.0.0", signature="untrusted comment: x\nAAAA\n")
    with _staged(raw_url) as stage:
        assert stage.signature() == b"untrusted comment: x\nAAAA\n"

    encoded = base64.b64encode(b"untrusted comment: y\n").decode()
    b64_url = make_artifact("scanner", "1.0.1", signature=encoded)
    with _staged(b64_url) as stage:
        assert stage.signature() == b"untrusted comment: y\n"


def test_unpack_rejects_path_escape(tmp_path: Path) -> None:
    archive = build_tar_gz(tmp_path / "evil.tar.gz", {"../escape": b"x", "scanner": b"x"})
    stage = TarGzStage("scanner", archive.as_uri())
    try:
        stage.download()
        with pytest.raises(StageError) as exc:
            stage.unpack()
        assert exc.value.step == "unpack"
    finally:
        stage.close()
    assert not (tmp_path / "escape").exists()


def test_download_failure_is_transport_error(tmp_path: Path, no_sleep_policy) -> None:
    stage = TarGzStage("scanner", (tmp_path / "nope.tar.gz").as_uri(), policy=no_sleep_policy)
    try:
        with pytest.raises(TransportError) as exc:
            stage.download()
        assert exc.value.attempts == no_sleep_policy.max_retries + 1
        assert os.listdir(stage.directory) == []
    finally:
        stage.close()


def test_close_is_idempotent_and_blocks_further_steps(make_artifact) -> None:
    stage = TarGzStage("scanner", make_artifact("scanner", "1.0.0"))
    stage.close()
    stage.close()
    assert stage.state is StageState.CLOSED
    with pytest.raises(NotStaged):
        stage.download()


def test_url_without_scheme_is_rejected() -> None:
    with pytest.raises(StageError):
        TarGzStage("scanner", "not a url")


def test_partial_commit_reports_pending_entries(tmp_path: Path, make_artifact, monkeypatch) -> None:
    target = tmp_path / "install"
    target.mkdir()
    real_replace = os.replace
    calls = []

    def flaky_replace(src, dest):
        calls.append(os.path.basename(src))
        if len(calls) == 2:
            raise OSError(28, "No space left on device")
        real_replace(src, dest)

    with _staged(make_artifact("scanner", "1.1.1")) as stage:
        stage.validate()
        monkeypatch.setattr(os, "replace", flaky_replace)
        with pytest.raises(CommitError) as exc:
            stage.commit(str(target))
        monkeypatch.undo()

        assert exc.value.pending == [".version", "scanner"]
        assert isinstance(exc.value.__cause__, OSError)
        assert sorted(os.listdir(target)) == [".signature"]
        assert sorted(os.listdir(stage.directory)) == [".version", "scanner"]
        assert stage.state is not StageState.COMMITTED


def test_module_source_compiles_without_warnings() -> None:
    source = Path(staging.__file__).read_text(encoding="utf-8")
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(source, staging.__file__, "exec")

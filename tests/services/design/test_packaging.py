# tests/services/design/test_packaging.py

import io
import json
import zipfile
from datetime import datetime

from design2code.services.design.packaging import build_code_artifact, artifact_key

DESIGN = {"uuid": "d-1", "name": "Checkout", "dsl_revision": 3}


def read_zip(data: bytes) -> dict:
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return {name: archive.read(name).decode("utf-8") for name in archive.namelist()}


def test_artifact_contains_manifest_and_snapshots():
    artifact = build_code_artifact(
        design=DESIGN,
        task_type="react",
        dsl={"styles": {}, "nodes": []},
        annotation={"version": 2, "root_annotation": {"id": "root"}},
        requirement_markdown="# 需求",
        generated_at=datetime(2024, 5, 1, 12, 0, 0),
    )

    files = read_zip(artifact.data)
    assert artifact.files == ["README.md", "design/dsl.json", "design/annotation.json", "requirement.md"]
    assert artifact.file_count == 4
    assert artifact.total_size == len(artifact.data)

    readme = files["README.md"]
    assert "| Design | d-1 |" in readme
    assert "| DSL revision | 3 |" in readme
    assert "| Annotation version | 2 |" in readme
    assert "| Generated at | 2024-05-01 12:00:00 UTC |" in readme
    assert json.loads(files["design/dsl.json"]) == {"styles": {}, "nodes": []}
    assert files["requirement.md"] == "# 需求"


def test_artifact_without_optional_inputs():
    artifact = build_code_artifact(design=DESIGN, task_type="vue", dsl=None, annotation=None)

    files = read_zip(artifact.data)
    assert set(files) == {"README.md", "design/dsl.json"}
    assert "| Annotation version | - |" in files["README.md"]
    assert artifact_key("t-1") == "design/codegen/t-1.zip"

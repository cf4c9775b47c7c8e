# src/design2code/services/design/packaging.py

import io
import json
import zipfile
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from design2code.core.config import settings
from design2code.db.base import utcnow


def artifact_key(task_uuid: str) -> str:
    return f"design/codegen/{task_uuid}.zip"


class CodeArtifact(NamedTuple):
    data: bytes
    files: List[str]

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def total_size(self) -> int:
        return len(self.data)


def build_manifest(
    design_uuid: str,
    design_name: str,
    dsl_revision: int,
    annotation_version: Optional[int],
    task_type: str,
    generated_at: datetime
) -> str:
    lines = [
        f"# {design_name}",
        "",
        "| Field | Value |",
        "| --- | --- |",
        f"| Design | {design_uuid} |",
        f"| DSL revision | {dsl_revision} |",
        f"| Annotation version | {annotation_version if annotation_version is not None else '-'} |",
        f"| Task type | {task_type} |",
        f"| Template | {settings.CODEGEN_TEMPLATE_VERSION} |",
        f"| Generated at | {generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC |",
        "",
    ]
    return "\n".join(lines)


def build_code_artifact(
    design: Dict[str, Any],
    task_type: str,
    dsl: Optional[Dict[str, Any]],
    annotation: Optional[Dict[str, Any]],
    requirement_markdown: Optional[str] = None,
    generated_at: Optional[datetime] = None
) -> CodeArtifact:
    """
    打包生成产物。README.md 总是存在, 记录来源设计稿、DSL 修订、标注版本与生成时间。
    design 需包含 uuid / name / dsl_revision; annotation 为 AnnotationRead 的 JSON 形式。
    """
    generated_at = generated_at or utcnow()
    annotation_version = annotation.get("version") if annotation else None

    entries: Dict[str, str] = {
        "README.md": build_manifest(
            design["uuid"], design["name"], design["dsl_revision"],
            annotation_version, task_type, generated_at
        ),
        "design/dsl.json": json.dumps(dsl, ensure_ascii=False, indent=2),
    }
    if annotation is not None:
        entries["design/annotation.json"] = json.dumps(annotation, ensure_ascii=False, indent=2)
    if requirement_markdown:
        entries["requirement.md"] = requirement_markdown

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries.items():
            archive.writestr(name, content)
    return CodeArtifact(data=buffer.getvalue(), files=list(entries))

# src/design2code/models/design.py

import enum
from sqlalchemy import (
    Column, Integer, String, Text, JSON, Enum, ForeignKey,
    DateTime, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from design2code.db.base import Base, TimestampMixin, utcnow
from design2code.utils.id_generator import generate_uuid

class DesignDocumentStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"       # 软删除, 记录永不物理删除

class AnnotationStatus(str, enum.Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"

class RequirementDocumentStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

class CodeGenerationTaskStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"

class TaskLogLevel(str, enum.Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class DesignDocument(Base, TimestampMixin):
    """设计稿主表 - 持有当前 DSL 及其修订号"""
    __tablename__ = 'design_documents'

    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), default=generate_uuid, unique=True, index=True, nullable=False)

    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    source_url = Column(String(2048), nullable=True, comment="设计源链接 (MasterGo)")

    # 只保留当前 DSL 正文, 历史修订不落库
    dsl_data = Column(JSON, nullable=True)
    dsl_revision = Column(Integer, nullable=False, default=1, comment="每次 DSL 变更严格 +1")
    dsl_digest = Column(String(64), nullable=True, comment="当前 dsl_data 的 sha256")

    status = Column(Enum(DesignDocumentStatus), nullable=False, default=DesignDocumentStatus.ACTIVE, index=True)
    tags = Column(JSON, nullable=False, default=list)
    meta = Column(JSON, nullable=True, comment="额外元信息, 如 componentDocumentLinks")

    created_by = Column(String(64), nullable=False, index=True)
    updated_by = Column(String(64), nullable=True)

    __table_args__ = (
        CheckConstraint("dsl_revision >= 1", name="dsl_revision_positive"),
    )

    annotations = relationship("ComponentAnnotation", back_populates="design", cascade="all, delete-orphan")


class ComponentAnnotation(Base, TimestampMixin):
    """
    组件标注版本表。
    (design_id, version) 唯一, 并发保存同一个 "下一版本" 时由唯一索引拒绝落败方。
    """
    __tablename__ = 'design_component_annotations'

    id = Column(Integer, primary_key=True)
    design_id = Column(Integer, ForeignKey('design_documents.id', ondelete='CASCADE'), nullable=False, index=True)
    version = Column(Integer, nullable=False)

    root_annotation = Column(JSON, nullable=False)
    expanded_keys = Column(JSON, nullable=False, default=list)
    schema_version = Column(String(32), nullable=True)

    status = Column(Enum(AnnotationStatus), nullable=False, default=AnnotationStatus.ACTIVE, index=True)

    created_by = Column(String(64), nullable=False, index=True)
    updated_by = Column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint('design_id', 'version'),
        CheckConstraint("version >= 1", name="version_positive"),
    )

    design = relationship("DesignDocument", back_populates="annotations")


class RequirementDocument(Base, TimestampMixin):
    """需求规格文档 (Markdown)"""
    __tablename__ = 'design_requirement_documents'

    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), default=generate_uuid, unique=True, index=True, nullable=False)
    design_id = Column(Integer, ForeignKey('design_documents.id', ondelete='CASCADE'), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    status = Column(Enum(RequirementDocumentStatus), nullable=False, default=RequirementDocumentStatus.DRAFT, index=True)

    object_key = Column(String(1024), nullable=True, comment="导出文件在存储桶中的 Key")
    export_formats = Column(JSON, nullable=False, default=list)

    created_by = Column(String(64), nullable=False)
    updated_by = Column(String(64), nullable=True)
    published_at = Column(DateTime, nullable=True)
    archived_at = Column(DateTime, nullable=True)

    design = relationship("DesignDocument")


class CodeGenerationTask(Base, TimestampMixin):
    """
    代码生成任务。
    uuid 同时作为队列 job id; logs 为最近 N 条日志的环形缓冲, 完整日志见 CodeGenerationTaskLog。
    """
    __tablename__ = 'design_code_generation_tasks'

    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), default=generate_uuid, unique=True, index=True, nullable=False)
    design_id = Column(Integer, ForeignKey('design_documents.id', ondelete='CASCADE'), nullable=False)
    requirement_document_id = Column(Integer, ForeignKey('design_requirement_documents.id', ondelete='SET NULL'), nullable=True)

    task_type = Column(String(64), nullable=False)
    options = Column(JSON, nullable=False, default=dict)

    status = Column(Enum(CodeGenerationTaskStatus), nullable=False, default=CodeGenerationTaskStatus.PENDING)
    progress = Column(Integer, nullable=False, default=0)
    logs = Column(JSON, nullable=False, default=list)

    # result 仅在 completed 时存在, error 仅在 failed 时存在
    result = Column(JSON, nullable=True)
    error = Column(JSON, nullable=True)

    created_by = Column(String(64), nullable=False)
    updated_by = Column(String(64), nullable=True)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('ix_design_code_generation_tasks_design_status', 'design_id', 'status'),
        CheckConstraint("progress >= 0 AND progress <= 100", name="progress_range"),
    )

    design = relationship("DesignDocument")
    requirement_document = relationship("RequirementDocument")


class CodeGenerationTaskLog(Base):
    """任务审计日志, 只追加, 不设上限"""
    __tablename__ = 'design_code_generation_task_logs'

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey('design_code_generation_tasks.id', ondelete='CASCADE'), nullable=False, index=True)
    level = Column(Enum(TaskLogLevel), nullable=False, default=TaskLogLevel.INFO)
    message = Column(Text, nullable=False)
    context = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

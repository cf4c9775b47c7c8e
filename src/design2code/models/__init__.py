# src/design2code/models/__init__.py

from .asset import PathAsset
from .design import (
    DesignDocument,
    ComponentAnnotation,
    RequirementDocument,
    CodeGenerationTask,
    CodeGenerationTaskLog,
    DesignDocumentStatus,
    AnnotationStatus,
    RequirementDocumentStatus,
    CodeGenerationTaskStatus,
    TaskLogLevel
)

# src/design2code/worker/__init__.py

# 1. 导入并导出配置和注册表
from .main import (
    WorkerSettings,
    startup,
    shutdown,
    TASK_FUNCTIONS
)

# 2. 加载任务包，触发自注册
from . import tasks

# src/design2code/worker/tasks/__init__.py

from arq.worker import func
from design2code.core.config import settings
# 1. 导入这个子域的所有公开任务
from .code_generation import generate_code_task, MAX_DELIVERY_TRIES
# 2. 导入注册中心
from ..main import TASK_FUNCTIONS

# 3. 将自己注册进去; 任务结果以数据库为准, 不在 redis 中保留
TASK_FUNCTIONS.extend([
    func(
        generate_code_task,
        keep_result=0,
        max_tries=MAX_DELIVERY_TRIES,
        timeout=settings.CODEGEN_JOB_TIMEOUT_SECONDS
    ),
])

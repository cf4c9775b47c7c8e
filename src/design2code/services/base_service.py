# src/design2code/services/base_service.py

from design2code.core.context import AppContext

class BaseService:
    """
    Service 基类: 持有请求级上下文。
    子类在 __init__ 中先调用 super().__init__(context) 再创建各自的 DAO。
    """
    def __init__(self, context: AppContext):
        self.context = context
        self.db = context.db
        self.redis = context.redis_service

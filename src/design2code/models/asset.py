# src/design2code/models/asset.py

from sqlalchemy import Column, String, Text
from design2code.db.base import Base, TimestampMixin

class PathAsset(Base, TimestampMixin):
    """
    [共享层] 矢量路径栅格化结果表。
    基于路径内容 digest 去重，同一 digest 的图片被所有设计稿共享，写入后不再修改。
    """
    __tablename__ = 'design_path_assets'

    # 使用 digest 作为主键
    digest = Column(String(64), primary_key=True, comment="(pathData, fill) 序列的 sha256")
    image_url = Column(String(2048), nullable=False, comment="栅格化图片访问URL")
    path_data = Column(Text, nullable=False, comment="原始路径数据, 多段以 | 连接")
    fill_style = Column(Text, nullable=True, comment="原始填充引用, 多段以 | 连接")

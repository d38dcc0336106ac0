from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from enum import Enum


class Environment(str, Enum):

    """运行环境枚举"""
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # 应用基础配置
    app_name: str = "Cafe Coupons"
    app_version: str = "1.0.0"
    environment: Environment = Environment.TESTING
    debug: bool = True

    # 数据库配置
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "cafe_coupons_db"
    db_user: str = "cafe_coupons_user"
    db_password: str = "cafe_coupons_password"

    # Redis配置 (会话快照 + 活动缓存 + 使用记录发件箱)
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # 时区：活动起止时间和按日解锁都以该时区的墙上时间计算
    timezone: str = "Asia/Bangkok"

    # 兑换码配置 (会员/游客前缀目前相同，但保持可分别配置)
    coupon_prefix_member: str = "MC"
    coupon_prefix_guest: str = "MC"
    redemption_ttl_seconds: int = 300
    countdown_tick_seconds: float = 1.0

    # 游客标识
    guest_identifier: str = "Guest"

    # 缓存配置
    campaign_cache_ttl: int = 60
    session_cache_ttl: int = 3600 * 12

    # 使用记录发件箱
    outbox_key: str = "usage_outbox"
    outbox_flush_interval: float = 5.0
    outbox_max_attempts: int = 10

    # 日志配置
    log_level: str = "INFO"

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def database_url_computed(self) -> str:
        """计算数据库URL"""
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def redis_url_computed(self) -> str:
        """计算Redis URL"""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"


# 全局配置实例
settings = Settings()

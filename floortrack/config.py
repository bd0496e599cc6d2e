import os
from datetime import time
from typing import List

DEFAULT_SECRET_KEY = "change-me-floortrack-dev-secret"
LEAVE_OVERLAP_POLICIES = ("count_both", "dedupe")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Settings:
    """應用程式配置設定，全部由環境變數讀取"""

    # 資料庫
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./floortrack.db")

    # JWT 驗證 (只驗證，不簽發密碼)
    SECRET_KEY: str = os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY)
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 720)

    DEBUG: bool = _env_bool("DEBUG", "false")
    DEFAULT_WORK_MODE: str = os.getenv("DEFAULT_WORK_MODE", "office")

    # 自動下班排程
    ENABLE_AUTO_CLOCK_OUT: bool = _env_bool("ENABLE_AUTO_CLOCK_OUT", "true")
    AUTO_CLOCK_OUT_INTERVAL_MINUTES: int = _env_int("AUTO_CLOCK_OUT_INTERVAL_MINUTES", 5)

    # 報表
    FLOOR_TARGET_MINUTES: int = _env_int("FLOOR_TARGET_MINUTES", 480)
    PUNCTUALITY_CUTOFF_HOUR: int = _env_int("PUNCTUALITY_CUTOFF_HOUR", 10)
    PUNCTUALITY_CUTOFF_MINUTE: int = _env_int("PUNCTUALITY_CUTOFF_MINUTE", 0)
    WIDGET_WINDOW_DAYS: int = _env_int("WIDGET_WINDOW_DAYS", 30)
    DEFAULT_HISTORY_DAYS: int = _env_int("DEFAULT_HISTORY_DAYS", 30)
    MAX_HISTORY_DAYS: int = _env_int("MAX_HISTORY_DAYS", 366)
    DEFAULT_ANALYTICS_DAYS: int = _env_int("DEFAULT_ANALYTICS_DAYS", 7)

    # 同一天既有請假又有出勤: count_both (兩邊都算) / dedupe (只算一次)
    ATTENDANCE_LEAVE_OVERLAP: str = os.getenv("ATTENDANCE_LEAVE_OVERLAP", "count_both")

    # 伺服器
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = _env_int("PORT", 8000)
    CORS_ORIGINS: List[str] = _env_list("CORS_ORIGINS", "http://localhost:3000")
    API_PREFIX: str = os.getenv("API_PREFIX", "/api")

    # 日誌
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    @property
    def database_url(self) -> str:
        """SQLAlchemy 連線字串；舊式 postgres:// 前綴改為 postgresql://"""
        url = self.DATABASE_URL
        if url.startswith("postgres://"):
            return "postgresql://" + url[len("postgres://"):]
        return url

    @property
    def dedupe_leave_overlap(self) -> bool:
        return self.ATTENDANCE_LEAVE_OVERLAP.lower() == "dedupe"

    @property
    def punctuality_cutoff(self) -> time:
        """準時上班的最晚時間 (本地時間，精確到分鐘)"""
        return time(self.PUNCTUALITY_CUTOFF_HOUR, self.PUNCTUALITY_CUTOFF_MINUTE)

    def problems(self) -> List[str]:
        """
        檢查設定。

        Returns:
            問題描述列表；空列表表示設定正常
        """
        found = []
        if self.SECRET_KEY == DEFAULT_SECRET_KEY and not self.DEBUG:
            found.append("SECRET_KEY is still the development default")
        if self.ATTENDANCE_LEAVE_OVERLAP.lower() not in LEAVE_OVERLAP_POLICIES:
            found.append(
                f"ATTENDANCE_LEAVE_OVERLAP must be one of {', '.join(LEAVE_OVERLAP_POLICIES)}"
            )
        if self.AUTO_CLOCK_OUT_INTERVAL_MINUTES < 1:
            found.append("AUTO_CLOCK_OUT_INTERVAL_MINUTES must be at least 1")
        return found

    def get_logging_config(self) -> dict:
        """logging.config.dictConfig 使用的配置"""
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {"format": self.LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                },
            },
            "loggers": {
                "floortrack": {"level": self.LOG_LEVEL},
                # INFO would log every job run
                "apscheduler": {"level": "WARNING"},
            },
            "root": {"level": self.LOG_LEVEL, "handlers": ["console"]},
        }


settings = Settings()

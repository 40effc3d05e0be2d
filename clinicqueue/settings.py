"""
clinicqueue 設定。

敏感 / 環境相關的值都可以用環境變數蓋掉，預設是本機開發用的 SQLite。
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-only-not-secret")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # 各 app
    "common",
    "doctors",
    "patients",
    "appointments",
    "queues.apps.QueuesConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "common.middleware.QueueErrorMiddleware",
]

ROOT_URLCONF = "clinicqueue.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# ─── 資料庫 ───
# SQLite 用 IMMEDIATE 交易：叫號 / 掛號一開始就拿寫入鎖，同時進來的會排隊等 timeout 秒
DB_ENGINE = os.environ.get("CLINICQUEUE_DB_ENGINE", "sqlite")

if DB_ENGINE == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("CLINICQUEUE_DB_NAME", "clinicqueue"),
            "USER": os.environ.get("CLINICQUEUE_DB_USER", "postgres"),
            "PASSWORD": os.environ.get("CLINICQUEUE_DB_PASSWORD", ""),
            "HOST": os.environ.get("CLINICQUEUE_DB_HOST", "localhost"),
            "PORT": os.environ.get("CLINICQUEUE_DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("CLINICQUEUE_DB_NAME", str(BASE_DIR / "db.sqlite3")),
            "OPTIONS": {
                "transaction_mode": "IMMEDIATE",
                "timeout": 20,
            },
            # 測試也用檔案，多執行緒的測試才看得到彼此 commit 的資料
            "TEST": {
                "NAME": str(BASE_DIR / "test_db.sqlite3"),
            },
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "zh-hant"
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "Asia/Taipei")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
LOGIN_URL = "/admin/login/"

# ─── 叫號設定 ───
CLINICQUEUE_RETRY = {
    "ATTEMPTS": int(os.environ.get("CLINICQUEUE_RETRY_ATTEMPTS", "5")),
    "BASE_DELAY": 0.02,
    "MAX_DELAY": 0.5,
}

# (候診人數上限, 顯示文字)，最後一段用 None
CLINICQUEUE_WAIT_BANDS = (
    (0, "ready"),
    (2, "10-20 min"),
    (4, "20-35 min"),
    (None, "35-50 min"),
)

CLINICQUEUE_DISPLAY_BOARD = {
    "API_URL": os.environ.get("CLINICQUEUE_BOARD_URL", "http://127.0.0.1:8000/queues/api/current_number/"),
    "SERIAL_PORT": os.environ.get("CLINICQUEUE_BOARD_PORT", "COM3"),
    "BAUDRATE": 9600,
    "POLL_INTERVAL": 3.0,
}

# ─── Logging ───
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "{asctime} {levelname} {name}: {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        name: {"level": os.environ.get("CLINICQUEUE_LOG_LEVEL", "INFO")}
        for name in ("common", "doctors", "patients", "appointments", "queues")
    },
}

"""
Base settings for the clinic booking project.
Environment specific modules import everything from here.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "change-me")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h]

DJANGO_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
]
LOCAL_APPS = [
    "clinic.clients",
    "clinic.catalog",
    "clinic.scheduling",
    "clinic.appointments.apps.AppointmentsConfig",
    "clinic.notifications.apps.NotificationsConfig",
]
INSTALLED_APPS = DJANGO_APPS + LOCAL_APPS

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

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

DATABASES = {
    "default": {
        "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.postgresql"),
        "NAME": os.getenv("DB_NAME", "clinic"),
        "USER": os.getenv("DB_USER", "clinic"),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", "localhost"),
        "PORT": os.getenv("DB_PORT", "5432"),
        "ATOMIC_REQUESTS": False,
    }
}
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Single regional clock; every "now" in the booking engine is local to it.
LANGUAGE_CODE = "pt-br"
TIME_ZONE = os.getenv("CLINIC_TIME_ZONE", "America/Manaus")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
LOGIN_URL = "admin:login"

# ===== BOOKING POLICY =====
BOOKING_ALLOW_WHEN_CLOSED = os.getenv("BOOKING_ALLOW_WHEN_CLOSED", "true").lower() in ("1", "true", "yes")
BOOKING_REQUIRE_PROFESSIONAL = os.getenv("BOOKING_REQUIRE_PROFESSIONAL", "false").lower() in ("1", "true", "yes")
BOOKING_DISCOUNT_SCOPE = os.getenv("BOOKING_DISCOUNT_SCOPE", "procedure")  # "procedure" or "booking"
BOOKING_CONFLICT_DURATION = os.getenv("BOOKING_CONFLICT_DURATION", "total")  # "total" or "primary"
BOOKING_MIN_LEAD_MINUTES = int(os.getenv("BOOKING_MIN_LEAD_MINUTES", "30"))

# ===== NOTIFICATIONS =====
NOTIFICATIONS_ENABLED = os.getenv("NOTIFICATIONS_ENABLED", "true").lower() in ("1", "true", "yes")
SEND_SMS_ON_BOOKING = os.getenv("SEND_SMS_ON_BOOKING", "true").lower() in ("1", "true", "yes")
SEND_EMAIL_ON_BOOKING = os.getenv("SEND_EMAIL_ON_BOOKING", "true").lower() in ("1", "true", "yes")
CLINIC_ADDRESS = os.getenv("CLINIC_ADDRESS", "")
DEFAULT_PHONE_COUNTRY_CODE = os.getenv("DEFAULT_PHONE_COUNTRY_CODE", "+55")

# Staff alerts on every booking and edit
NOTIFY_STAFF_ON_BOOKING = os.getenv("NOTIFY_STAFF_ON_BOOKING", "true").lower() in ("1", "true", "yes")
CLINIC_OWNER_PHONE = os.getenv("CLINIC_OWNER_PHONE", "")
# "Nome:email,Nome:email"
ADMINS = [
    tuple(entry.split(":", 1)) for entry in os.getenv("CLINIC_ADMINS", "").split(",") if ":" in entry
]

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER", "")
TWILIO_WHATSAPP_NUMBER = os.getenv("TWILIO_WHATSAPP_NUMBER", "")

EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "agenda@clinic.local")

# ===== CELERY =====
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_BEAT_SCHEDULE = {
    "schedule-appointment-reminders": {
        "task": "clinic.notifications.tasks.schedule_appointment_reminders",
        "schedule": 60 * 60,
    },
    "cleanup-old-notification-logs": {
        "task": "clinic.notifications.tasks.cleanup_old_notification_logs",
        "schedule": 60 * 60 * 24,
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(levelname)s %(asctime)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"level": "WARNING", "handlers": ["console"]},
    "loggers": {
        "clinic": {"level": os.getenv("CLINIC_LOG_LEVEL", "INFO"), "handlers": ["console"], "propagate": False},
        "celery": {"level": "INFO", "handlers": ["console"], "propagate": False},
    },
}

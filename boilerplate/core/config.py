import os


def _bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Application Metadata
PROJECT_NAME = os.getenv("PROJECT_NAME", "service-boilerplate")
VERSION = "1.0.0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# HTTP Server
HTTP_HOST = os.getenv("HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.getenv("HTTP_PORT", 8080))
HTTP_REQUEST_TIMEOUT = float(os.getenv("HTTP_REQUEST_TIMEOUT", 10))
HTTP_CORS_ALLOW_ORIGINS = os.getenv("HTTP_CORS_ALLOW_ORIGINS", "*").split(",")
HTTP_CORS_ALLOW_METHODS = os.getenv("HTTP_CORS_ALLOW_METHODS", "GET,POST,PUT,DELETE").split(",")

# gRPC Server
GRPC_PORT = int(os.getenv("GRPC_PORT", 50051))
GRPC_REQUEST_TIMEOUT = float(os.getenv("GRPC_REQUEST_TIMEOUT", 10))

GRACEFUL_SHUTDOWN_SECONDS = float(os.getenv("GRACEFUL_SHUTDOWN_SECONDS", 5))

# Database Configuration (primary for writes, replica for reads)
DATABASE_MASTER_URL = os.getenv("DATABASE_MASTER_URL", "postgres://user:password@db:5432/boilerplate")
DATABASE_SLAVE_URL = os.getenv("DATABASE_SLAVE_URL", DATABASE_MASTER_URL)
DATABASE_MASTER_MAX_CONNECTIONS = int(os.getenv("DATABASE_MASTER_MAX_CONNECTIONS", 10))
DATABASE_SLAVE_MAX_CONNECTIONS = int(os.getenv("DATABASE_SLAVE_MAX_CONNECTIONS", 10))
# Seconds a query may run before a slow query warning is logged
DATABASE_MASTER_MAX_QUERY_DURATION_WARNING = float(os.getenv("DATABASE_MASTER_MAX_QUERY_DURATION_WARNING", 1))
DATABASE_SLAVE_MAX_QUERY_DURATION_WARNING = float(os.getenv("DATABASE_SLAVE_MAX_QUERY_DURATION_WARNING", 1))

# Cache and message broker
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
EVENT_BROKER_URL = os.getenv("EVENT_BROKER_URL", "redis://redis:6379/1")

# Event Consumer (polls the broker for due messages)
EVENT_CONSUMER_POLL_INTERVAL = float(os.getenv("EVENT_CONSUMER_POLL_INTERVAL", 1))
EVENT_CONSUMER_BATCH_SIZE = int(os.getenv("EVENT_CONSUMER_BATCH_SIZE", 50))
EVENT_CONSUMER_MAX_ATTEMPTS = int(os.getenv("EVENT_CONSUMER_MAX_ATTEMPTS", 5))
EVENT_CONSUMER_REQUEUE_DELAY = float(os.getenv("EVENT_CONSUMER_REQUEUE_DELAY", 5))
# Seconds a claimed message stays invisible before it is redelivered
EVENT_CONSUMER_VISIBILITY_TIMEOUT = float(os.getenv("EVENT_CONSUMER_VISIBILITY_TIMEOUT", 60))

# Webhook egress
WEBHOOK_BASE_URL = os.getenv("WEBHOOK_BASE_URL", "https://webhook.site")
WEBHOOK_ENDPOINT = os.getenv("WEBHOOK_ENDPOINT", "/00000000-0000-0000-0000-000000000000")
WEBHOOK_TIMEOUT = float(os.getenv("WEBHOOK_TIMEOUT", 10))

# Tracing
TRACER_SERVICE_NAME = os.getenv("TRACER_SERVICE_NAME", PROJECT_NAME)
TRACER_EXPORTER_ENDPOINT = os.getenv("TRACER_EXPORTER_ENDPOINT", "")

# Guest feature flags
GUEST_CACHE_ENABLE = _bool("GUEST_CACHE_ENABLE", "true")
GUEST_CACHE_KEY_FORMAT = os.getenv("GUEST_CACHE_KEY_FORMAT", "boilerplate:guests:{}")
GUEST_CACHE_DURATION = int(os.getenv("GUEST_CACHE_DURATION", 300))

GUEST_EVENT_CREATED_ENABLE = _bool("GUEST_EVENT_CREATED_ENABLE", "true")
GUEST_EVENT_CREATED_TOPIC = os.getenv("GUEST_EVENT_CREATED_TOPIC", "guest.created")
GUEST_EVENT_DELETED_ENABLE = _bool("GUEST_EVENT_DELETED_ENABLE", "true")
GUEST_EVENT_DELETED_TOPIC = os.getenv("GUEST_EVENT_DELETED_TOPIC", "guest.deleted")
GUEST_EVENT_UPDATED_ENABLE = _bool("GUEST_EVENT_UPDATED_ENABLE", "true")
GUEST_EVENT_UPDATED_TOPIC = os.getenv("GUEST_EVENT_UPDATED_TOPIC", "guest.updated")

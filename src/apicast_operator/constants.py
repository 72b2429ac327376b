"""
Constants used throughout the APIcast operator.

This module defines all constant values used by the operator including:
- Custom resource coordinates
- Resource labels and annotations
- Gateway ports and paths
- Status phase and condition values
"""

# Custom resource coordinates
APICAST_GROUP = "apps.3scale.net"
APICAST_VERSION = "v1alpha1"
APICAST_API_VERSION = f"{APICAST_GROUP}/{APICAST_VERSION}"
APICAST_KIND = "APIcast"
APICAST_PLURAL = "apicasts"

# Object kinds handled by the object store
KIND_DEPLOYMENT = "Deployment"
KIND_SERVICE = "Service"
KIND_INGRESS = "Ingress"
KIND_SECRET = "Secret"

# Label constants for resource identification and management
APP_LABEL_KEY = "app"
APP_LABEL_VALUE = "apicast"
DEPLOYMENT_LABEL_KEY = "deployment"
OPERATOR_LABEL_KEY = "app.kubernetes.io/managed-by"
OPERATOR_LABEL_VALUE = "apicast-operator"
INSTANCE_LABEL_KEY = "apps.3scale.net/instance"

# Pod template annotations tracking user provided secrets
ADMIN_PORTAL_SECRET_RESOURCE_VERSION_ANNOTATION = (
    "apicast.apps.3scale.net/admin-portal-secret-resource-version"
)
GATEWAY_CONFIGURATION_SECRET_RESOURCE_VERSION_ANNOTATION = (
    "apicast.apps.3scale.net/gateway-configuration-secret-resource-version"
)

# Keys expected inside user provided secrets
ADMIN_PORTAL_URL_KEY = "AdminPortalURL"
EMBEDDED_CONFIGURATION_KEY = "config.json"

# Resource naming
RESOURCE_PREFIX = "apicast-"
CONTAINER_NAME = "apicast"

# Gateway ports
PROXY_PORT_NAME = "proxy"
PROXY_PORT = 8080
MANAGEMENT_PORT_NAME = "management"
MANAGEMENT_PORT = 8090
METRICS_PORT_NAME = "metrics"
METRICS_PORT = 9421

# Gateway probes
LIVENESS_PATH = "/status/live"
READINESS_PATH = "/status/ready"

# Embedded configuration volume
CONFIGURATION_VOLUME_NAME = "gateway-configuration-volume"
CONFIGURATION_MOUNT_PATH = "/tmp/gateway-configuration-volume"
CONFIGURATION_FILE_PATH = f"{CONFIGURATION_MOUNT_PATH}/{EMBEDDED_CONFIGURATION_KEY}"
SECRET_VOLUME_DEFAULT_MODE = 420

# Default configuration values
DEFAULT_APICAST_IMAGE = "quay.io/3scale/apicast:nightly"
DEFAULT_REPLICAS = 1
DEFAULT_SERVICE_ACCOUNT = "default"
DEFAULT_RESOURCE_REQUESTS = {"cpu": "500m", "memory": "64Mi"}
DEFAULT_RESOURCE_LIMITS = {"cpu": "1", "memory": "128Mi"}

# Status phase constants
PHASE_READY = "Ready"
PHASE_FAILED = "Failed"
PHASE_RECONCILING = "Reconciling"

# Condition type constants (following Kubernetes conventions)
CONDITION_READY = "Ready"
CONDITION_AVAILABLE = "Available"
CONDITION_PROGRESSING = "Progressing"
CONDITION_RECONCILING = "Reconciling"
CONDITION_DEGRADED = "Degraded"

# Condition status constants
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"
CONDITION_UNKNOWN = "Unknown"

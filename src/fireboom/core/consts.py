"""
Constants shared across the control plane: directory layout, request
parameters, headers and engine status names.
"""

from __future__ import annotations

# Root directories under the working directory
ROOT_EXPORTED = "exported"
ROOT_STORE = "store"
ROOT_UPLOAD = "upload"

# exported/
EXPORTED_GENERATED = "generated"
EXPORTED_INTROSPECTION = "introspection"
EXPORTED_MIGRATION = "migration"

GENERATED_SWAGGER = "swagger"
GENERATED_HOOK_SWAGGER = "hook.swagger"
GENERATED_CONFIG = "fireboom.config"
GENERATED_OPERATIONS = "fireboom.operations"
GENERATED_GRAPHQL_SCHEMA = "fireboom.app.schema"

# store/
STORE_DATASOURCE = "datasource"
STORE_AUTHENTICATION = "authentication"
STORE_OPERATION = "operation"
STORE_STORAGE = "storage"
STORE_SDK = "sdk"
STORE_CONFIG = "config"
STORE_ROLE = "role"
STORE_FRAGMENT = "fragment"

# upload/
UPLOAD_OAS = "oas"
UPLOAD_ASYNCAPI = "asyncapi"
UPLOAD_PRISMA = "prisma"
UPLOAD_SQLITE = "sqlite"
UPLOAD_GRAPHQL = "graphql"
UPLOAD_DIRECTORIES = (UPLOAD_OAS, UPLOAD_ASYNCAPI, UPLOAD_PRISMA, UPLOAD_SQLITE, UPLOAD_GRAPHQL)

# Single file names
GLOBAL_OPERATION = "global.operation"
GLOBAL_SETTING = "global.setting"
JAEGER_CONFIG = "jaeger.config"
DEFAULT_ENV = ".env"
KEY_AUTHENTICATION = "authentication"
KEY_LICENSE = "license"

# File extensions
EXT_JSON = ".json"
EXT_GRAPHQL = ".graphql"
EXT_TS = ".ts"
EXT_YAML = ".yml"
EXT_PRISMA = ".prisma"
EXT_SQL = ".sql"
EXT_KEY = ".key"

# Request parameters and headers
QUERY_DATA_NAMES = "dataNames"
QUERY_WATCH_ACTION = "watchAction"
QUERY_OVERWRITE = "overwrite"
QUERY_AUTH_KEY = "auth-key"
QUERY_URL = "url"
FORM_FILE = "file"

HEADER_AUTHENTICATION = "X-FB-Authentication"
HEADER_LOCALE = "X-FB-Locale"
HEADER_USER = "X-FB-User"
HEADER_TAG = "X-FB-Tag"

SYSTEM_USER = "$$system$$"

# Engine status, logged as the ``engineStatus`` field
ENGINE_STATUS_FIELD = "engineStatus"
LICENSE_STATUS_FIELD = "licenseStatus"
ENGINE_BUILDING = "building"
ENGINE_INCREMENT_BUILD = "incrementBuild"
ENGINE_BUILD_SUCCEED = "buildSucceed"
ENGINE_BUILD_FAILED = "buildFailed"
ENGINE_STARTING = "starting"
ENGINE_INCREMENT_START = "incrementStart"
ENGINE_START_SUCCEED = "startSucceed"
ENGINE_START_FAILED = "startFailed"

# Environment keys
ENV_DATABASE_EXECUTE_TIMEOUT = "FB_DATABASE_EXECUTE_TIMEOUT"
ENV_DATABASE_CLOSE_TIMEOUT = "FB_DATABASE_CLOSE_TIMEOUT"
ENV_SERVER_URL = "FB_SERVER_URL"
ENV_API_PUBLIC_URL = "FB_API_PUBLIC_URL"
ENV_API_LISTEN_PORT = "FB_API_LISTEN_PORT"
ENV_LOG_LEVEL = "FB_LOG_LEVEL"
ENV_INTROSPECT_COMMAND = "FB_INTROSPECT_COMMAND"
ENV_ENGINE_COMMAND = "FB_ENGINE_COMMAND"

FB_VERSION = "2.0.0"
FB_COMMIT = "dev"

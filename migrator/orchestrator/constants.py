"""
Constants for the Migration Orchestrator

All tunable values in one place. Thresholds here are shared between the
planner, the tool layer and the AI service, so changing one number changes
behaviour consistently everywhere it is used.
"""

# =============================================================================
# RUN STATES
# =============================================================================

RUN_IDLE = "idle"
RUN_INITIALIZED = "initialized"
RUN_ANALYZING = "analyzing"
RUN_EXECUTING = "executing"
RUN_PAUSED = "paused"
RUN_COMPLETED = "completed"
RUN_FAILED = "failed"

# Ordered run states (paused sits beside executing, not after it)
RUN_STATES = [
    RUN_IDLE,
    RUN_INITIALIZED,
    RUN_ANALYZING,
    RUN_EXECUTING,
    RUN_COMPLETED,
    RUN_FAILED,
]

# Allowed transitions; any state may also move to RUN_FAILED
RUN_STATE_TRANSITIONS = {
    RUN_IDLE: {RUN_INITIALIZED},
    RUN_INITIALIZED: {RUN_INITIALIZED, RUN_ANALYZING},
    RUN_ANALYZING: {RUN_EXECUTING},
    RUN_EXECUTING: {RUN_COMPLETED, RUN_PAUSED},
    RUN_PAUSED: {RUN_EXECUTING, RUN_INITIALIZED},
    RUN_COMPLETED: {RUN_INITIALIZED},
    RUN_FAILED: {RUN_INITIALIZED},
}


# =============================================================================
# TOOL SANDBOX
# =============================================================================

# Maximum file content size accepted by write_file (10 MiB, in characters)
MAX_CONTENT_SIZE = 10 * 1024 * 1024

# Parameter keys redacted from execution history
SENSITIVE_FIELDS = ("password", "token", "key", "secret", "apiKey")

# Replacement value for redacted parameters
REDACTED_VALUE = "***"

# Default exclusions for list_files
DEFAULT_LIST_EXCLUDES = ["node_modules/**", ".git/**", "dist/**"]

# Default command timeout (seconds)
DEFAULT_COMMAND_TIMEOUT = 30

# Maximum captured command output (bytes)
MAX_COMMAND_OUTPUT = 1024 * 1024


# =============================================================================
# AI SERVICE
# =============================================================================

# Default attempts per AI call
DEFAULT_AI_RETRIES = 3

# Exponential backoff: BASE * 2^(attempt-1), capped
AI_BACKOFF_BASE_MS = 1000
AI_BACKOFF_CAP_MS = 10_000

# Characters per estimated token
CHARS_PER_TOKEN = 4

# Prompt truncation
DEFAULT_MAX_PROMPT_LENGTH = 8000
TRUNCATION_RESERVE = 100
TRUNCATION_MARKER = "\n\n[... truncated ...]"


# =============================================================================
# PLANNER
# =============================================================================

# Directories never scanned during project analysis
SCAN_EXCLUDED_DIRS = {"node_modules", "bower_components", "__pycache__", "vendor"}

# Dependencies known to need special handling during migration
PROBLEMATIC_DEPENDENCIES = ["vue-template-compiler", "babel-core"]

# Minutes per plan step before complexity scaling
MINUTES_PER_STEP = 5

COMPLEXITY_MULTIPLIERS = {
    "low": 1,
    "medium": 1.5,
    "high": 2.5,
}

# Default migration targets per detected framework
DEFAULT_TARGETS = {
    "vue": "3.x",
    "react": "18.x",
    "angular": "15.x",
}


# =============================================================================
# AGENTS
# =============================================================================

# Agent role names (also the keys steps use in their `agent` field)
ANALYSIS_AGENT = "AnalysisAgent"
FIX_AGENT = "FixAgent"
VALIDATION_AGENT = "ValidationAgent"
DEPENDENCY_AGENT = "DependencyAgent"

# Source files the fix agent considers
FIXABLE_EXTENSIONS = (".vue", ".js", ".jsx", ".ts", ".tsx")
MAX_FILES_TO_FIX = 10

# Key-file analysis limits
MAX_KEY_FILES = 5
MAX_FILE_ANALYSIS_CHARS = 10_000
MAX_VALIDATION_CHARS = 5000

# Accepted length ratio of an AI fix vs the original file
MIN_FIX_LENGTH_RATIO = 0.5
MAX_FIX_LENGTH_RATIO = 2.0

# Validation score weights (files / build / tests)
VALIDATION_WEIGHTS = {"files": 60, "build": 30, "tests": 10}

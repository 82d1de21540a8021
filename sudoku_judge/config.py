import os
from pathlib import Path

# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = Path(os.environ.get("JUDGE_DATA_DIR", BASE_DIR / "data"))

# Create directories
DATA_DIR.mkdir(parents=True, exist_ok=True)

# Compiler configuration (single language: C++17)
COMPILER = {
    "path": os.environ.get("CXX", "g++"),
    "args": ["-std=c++17", "-O2"],
}
COMPILE_TIMEOUT_MS = int(os.environ.get("COMPILE_TIMEOUT_MS", 20000))

# Runner settings
RUNNER = os.environ.get("RUNNER", "time")  # "time" wraps with /usr/bin/time -v, "plain" runs bare
TIME_PATH = os.environ.get("TIME_PATH", "/usr/bin/time")
TOTAL_TIME_LIMIT_MS = int(os.environ.get("TOTAL_TIME_LIMIT_MS", 30000))
RUN_GRACE_MS = 200
MAX_OUTPUT_BYTES = 1024 * 1024  # 1MB combined stdout+stderr
OVERFLOW_EXIT_CODE = 137

# Judge settings
MAX_CONCURRENT_JUDGES = int(os.environ.get("MAX_CONCURRENT_JUDGES", 4))
CLIP_LENGTH = 20000  # chars of diagnostic text kept per result row
DEFAULT_TIME_LIMIT = 2000  # ms
DEFAULT_MEMORY_LIMIT = 262144  # KB
MAX_TESTCASE_ARCHIVE_SIZE = 10 * 1024 * 1024  # 10MB

# Database
DATABASE_URL = os.environ.get("DATABASE_URL", f"sqlite+aiosqlite:///{DATA_DIR}/judge.db")

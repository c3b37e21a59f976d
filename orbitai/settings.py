"""
This module contains almost all the configuration settings for the OrbitAI application.
It defines paths, learning parameters, logging configurations, and the location of the
external learning executable (MochiMochi).
It is used throughout the application to ensure consistent settings and paths.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(__file__).resolve().parent.parent  # Project Root
BIN_DIR = BASE_DIR / "bin"
LOGS_DIR = BASE_DIR / "logs"
TO_GROUND_DIR = pathlib.Path(os.getenv("ORBITAI_TO_GROUND_DIR", str(BASE_DIR / "toGround")))

#* --- Application File Paths ---
DATA_DIR = TO_GROUND_DIR / "data"
LOG_DB_PATH = LOGS_DIR / "app_logs.db"
OVERRIDES_JSON_PATH = BIN_DIR / "overrides.json"
PARAMS_TO_ENABLE_FILE = pathlib.Path(os.getenv("ORBITAI_PARAMS_FILE", str(BASE_DIR / "params_to_enable.txt")))

#* --- Supervisor Parameters ---
# Photodiode elevations PD1..PD6, in the order learning commands expect them.
PHOTODIODE_NAMES = ("CADC0884", "CADC0886", "CADC0888", "CADC0890", "CADC0892", "CADC0894")
# Attitude quaternion estimate O_Q_FB_FI_EST_0..3
QUATERNION_NAMES = ("CADC1002", "CADC1003", "CADC1004", "CADC1005")
PARAMETER_NAMES = PHOTODIODE_NAMES + QUATERNION_NAMES
PARAMS_DEFAULT_VALUE = 42.0
PARAMS_DEFAULT_REPORT_INTERVAL = 5  # seconds
# HD camera FOV is 21 deg (ICD); 90 deg - (FOV + margin) = 60 deg.
PD6_ELEVATION_THRESHOLD = 1.0472  # rad

#* --- MochiMochi (learning process) ---
MOCHI_DIR = pathlib.Path(os.getenv("MOCHI_DIR", str(BIN_DIR / "Mochi")))
MOCHI_EXECUTABLE = MOCHI_DIR / "OrbitAI_Mochi"
MOCHI_MODELS_DIR = MOCHI_DIR / "models"
MOCHI_LOGS_DIR = MOCHI_DIR / "logs"
MOCHI_ADDRESS = "127.0.0.1"
MOCHI_CONNECT_DELAY = 3.0  # seconds for the child to bind its socket
MOCHI_SETTLE_DELAY = 0.5   # seconds between 'save' and 'exit'
CONNECT_TIMEOUT = 5.0
GRACEFUL_SHUTDOWN_TIMEOUT = 10  # seconds before force-killing
EXPORT_LEARNING_DIR = "learning"
EXPORT_PREFIX = "mochi"

#* --- Optional Services ---
# Grafana Loki (for observability)
LOKI_ENABLED = os.getenv("LOKI_ENABLED", "False").lower() in ('true', '1', 't')
LOKI_URL = os.getenv("LOKI_URL", "http://localhost:3100")
LOKI_ORG_ID = os.getenv("LOKI_ORG_ID", "fake")

#* --- Application variables ---
VERBOSE_LOGGING = False
LOG_HISTORY_COUNT = 50

#* --- MODIFIABLE SETTINGS (Changeable at runtime via 'config' command) ---
MODIFIABLE_SETTINGS = {
    # Learning
    "LEARNING_INTERVAL", "LEARNING_ITERATIONS", "EXPERIMENT_MODE", "MOCHI_PORT",
    # Data
    "DATA_LOG_MIN_INTERVAL",
    # Logging
    "LOG_BUFFER_SIZE", "LOG_BUFFER_FLUSH_INTERVAL",
    "MAX_LOG_ENTRIES", "LOG_DB_PRUNE_INTERVAL",
}

#* --- Default Values for Modifiable Settings ---
LEARNING_INTERVAL = float(os.getenv("ORBITAI_INTERVAL", "5"))      # seconds between two iterations
LEARNING_ITERATIONS = int(os.getenv("ORBITAI_ITERATIONS", "1000"))
EXPERIMENT_MODE = os.getenv("ORBITAI_MODE", "train")               # 'train' or 'inference'
MOCHI_PORT = int(os.getenv("MOCHI_PORT", "9999"))
DATA_LOG_MIN_INTERVAL = PARAMS_DEFAULT_REPORT_INTERVAL * 0.9
LOG_BUFFER_SIZE = 100
LOG_BUFFER_FLUSH_INTERVAL = 10
MAX_LOG_ENTRIES = 200_000
LOG_DB_PRUNE_INTERVAL = 3600 # seconds

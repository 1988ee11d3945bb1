"""Constants for SurveyKit."""

from surveykit import __version__

# Application constants
APP_NAME = "surveykit"
APP_VERSION = __version__

# Default paths
DEFAULT_LOG_DIR = ".logs"
DEFAULT_CONFIG_FILE = "surveykit.yaml"

# Project layout
IMPORTS_DIR = "imports"
BACKUPS_DIR = "backups"
CONVERTED_DIR = "converted"
RECOVERY_MARKER = ".recovery"
PROJECT_FILE = "project.json"
PLACEMENTS_FILE = "placements.json"
MEASUREMENTS_FILE = "measurements.json"

# Project state files copied into every backup generation
DEFAULT_BACKUP_FILES = (PROJECT_FILE, PLACEMENTS_FILE, MEASUREMENTS_FILE)

# AutoSave
DEFAULT_AUTOSAVE_INTERVAL_SECONDS = 120
DEFAULT_MAX_BACKUP_GENERATIONS = 5

# LAS header layout (little-endian byte offsets)
LAS_SIGNATURE = b"LASF"
LAS_HEADER_READ_SIZE = 375
LAS_VERSION_MAJOR_OFFSET = 24
LAS_VERSION_MINOR_OFFSET = 25
LAS_POINT_FORMAT_OFFSET = 104
LAS_LEGACY_POINT_COUNT_OFFSET = 107
LAS_OFFSETS_OFFSET = 131
LAS_BOUNDS_OFFSET = 179
LAS_POINT_COUNT_64_OFFSET = 247
LAS_POINT_COUNT_64_MIN_SIZE = 255

# Point data formats that carry RGB
LAS_COLOR_POINT_FORMATS = frozenset({2, 3, 5, 7, 8, 10})

# PLY header scan limit
PLY_MAX_HEADER_LINES = 100

# Converter
CONVERTER_BINARY_NAME = "py3dtiles_converter"
CONVERTER_PYTHON = "python3"
CONVERTER_MODULE = "py3dtiles"
CONVERTER_INSTALL_HINT = 'pip install "py3dtiles[las]"'
TILESET_MANIFEST = "tileset.json"
# Cesium expects Earth-Centered Earth-Fixed output
OUTPUT_CRS_EPSG = 4978
DEFAULT_CONVERTER_JOBS = 1
BUNDLE_SEARCH_DEPTH = 10

# Progress band for converter output parsing
PROGRESS_START = 0.1
PROGRESS_SPAN = 0.8
PROGRESS_WRITING_MANIFEST = 0.9
PROGRESS_FINISHING = 0.95

# Converter output reading; longer unterminated runs are split into pieces
OUTPUT_READ_CHUNK = 8192
OUTPUT_MAX_LINE = 64 * 1024

"""Constants for gisquick-sync."""

# Project metadata directory (never part of a snapshot)
GISQUICK_DIR = ".gisquick"

# Per-project ignore file, gitignore syntax
IGNORE_FILE = ".gisquickignore"

# Configuration file (inside GISQUICK_DIR)
CONFIG_FILE = "config.yaml"

# Editor backup files end with this suffix
BACKUP_SUFFIX = "~"

# GeoPackage sidecar files: tracked for existence, never hashed
TEMPORARY_FILE_SUFFIXES = ("gpkg-wal", "gpkg-shm")

# Structured container format with its own checksum tool
GEOPACKAGE_EXTENSION = ".gpkg"
DBHASH_TAG = "dbhash"

# Seconds an external checksum tool may run before it is killed
DEFAULT_TOOL_TIMEOUT = 300.0

# Read size used when streaming file content into the hasher
HASH_CHUNK_SIZE = 64 * 1024

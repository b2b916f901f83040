# src/epd_explorer/config.py
import os

# Normalization
MAX_LOCATIONS = int(os.getenv("EPD_MAX_LOCATIONS", "1000"))
UNKNOWN_COUNTRY = os.getenv("EPD_UNKNOWN_COUNTRY", "Unknown")
UNNAMED_PRODUCT = os.getenv("EPD_UNNAMED_PRODUCT", "Unnamed Product")

# Matching
VENDOR_PREFIXES = tuple(
    p.strip().lower().rstrip("-")
    for p in os.getenv("EPD_VENDOR_PREFIXES", "zehnder").split(",")
    if p.strip()
)
MATCH_RATIO_THRESHOLD = float(os.getenv("EPD_MATCH_RATIO_THRESHOLD", "0.5"))
SEARCH_RESULT_LIMIT = int(os.getenv("EPD_SEARCH_RESULT_LIMIT", "5"))

# Placement
DECLUSTER_MAX_RADIUS = float(os.getenv("EPD_DECLUSTER_MAX_RADIUS", "2.0"))

# Categories
CATEGORY_DELIMITER = " / "
UNCATEGORIZED = "Uncategorized"

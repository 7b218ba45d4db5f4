"""
reeflink: Great Barrier Reef feature extraction from cloud-hosted geoParquet.
"""

__version__ = "0.1.0"

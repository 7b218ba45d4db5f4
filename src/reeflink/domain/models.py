"""
Pipeline Domain Models

Pydantic models for the runtime switches and the fixed reference values
shared by every stage.
"""

from typing import Optional

from pydantic import BaseModel, Field

from .enums import DecodePolicy, ExportFormat

# The GBR datasets are published in WGS84; asserted, never inferred
WGS84 = "EPSG:4326"

# Source column -> pipeline column for the GBR features dataset
GBR_FEATURE_COLUMNS = {
    "UNIQUE_ID": "unique_id",
    "GBR_NAME": "gbr_name",
    "LOC_NAME_S": "loc_name_combined",
    "geometry": "geometry_raw",
}

ID_COLUMN = "unique_id"
LABEL_COLUMN = "loc_name_combined"
RAW_GEOMETRY_COLUMN = "geometry_raw"
GEOMETRY_COLUMN = "geometry"


class MapExtent(BaseModel):
    """Lower-left corner of the map window; upper limits follow the data."""
    min_lon: float = Field(130.0, ge=-180.0, le=180.0, description="Western limit in degrees")
    min_lat: float = Field(-30.0, ge=-90.0, le=90.0, description="Southern limit in degrees")

    class Config:
        """Pydantic configuration."""
        frozen = True


# East of 130E and north of 30S
GBR_EXTENT = MapExtent()


class RunOptions(BaseModel):
    """Runtime configuration and feature flags."""
    export_shapefile: bool = Field(default=False, description="Write the feature collection to disk")
    export_format: ExportFormat = Field(default=ExportFormat.SHAPEFILE, description="Format used when exporting")
    layer_name: str = Field(default="gbr_features", min_length=1, description="Output file/layer base name")
    overwrite: bool = Field(default=True, description="Replace an existing export at the same path")
    render_map: bool = Field(default=True, description="Render the mainland/feature overlay map")
    decode_policy: DecodePolicy = Field(default=DecodePolicy.ABORT, description="Handling of undecodable geometries")
    limit: Optional[int] = Field(None, gt=0, description="Feature limit for testing")

    class Config:
        """Pydantic configuration."""
        frozen = True

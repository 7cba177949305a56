"""Video catalog, upload intake and range streaming."""

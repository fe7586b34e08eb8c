"""Avatar image engines: filter-graph construction and media-engine orchestration."""

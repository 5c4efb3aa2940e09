"""Geospatial pieces that sit on top of Tile38: places and recipient lookup."""

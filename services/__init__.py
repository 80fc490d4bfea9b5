"""Service packages for agri-detect."""

"""PlateMyDay web API."""

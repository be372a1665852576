"""Core update logic: validation, snapshot, request planning and the fan-out job."""

"""Internal index machinery."""

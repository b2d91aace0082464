"""Products demo resource, served by the generic repository alone."""

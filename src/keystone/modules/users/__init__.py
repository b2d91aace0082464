"""Users module: principals, their repository and administration routes."""

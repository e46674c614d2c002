"""HTTP routes for chatlink."""

"""Excel review reports."""

"""Account matching and statement period expansion."""

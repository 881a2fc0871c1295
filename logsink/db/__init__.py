"""Database error types shared by the sink."""

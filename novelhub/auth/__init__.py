"""Access token validation for the engagement API."""

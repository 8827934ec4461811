"""Request dependencies shared by the API routes."""

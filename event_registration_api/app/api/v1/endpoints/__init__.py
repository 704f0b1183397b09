"""Domain routers for API v1: registrations, events and audit."""

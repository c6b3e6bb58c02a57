"""Session Authority: principals, sessions, and the auth gate."""

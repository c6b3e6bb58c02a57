"""Validation Gateway: session-gated loan lookup against the Record Service."""

"""Record Service (government loan bank) API."""

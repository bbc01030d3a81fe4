"""PDF handling: filename hints, password recovery, text extraction and chunking."""

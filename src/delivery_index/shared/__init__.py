"""Cross-cutting helpers: logging, shared settings, exceptions."""

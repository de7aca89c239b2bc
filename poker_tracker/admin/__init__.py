"""Admin tools: audit log, chip values, overrides and standings."""

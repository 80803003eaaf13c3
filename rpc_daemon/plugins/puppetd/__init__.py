"""puppetd agent: option sanitizer, lock file handling and the RPC actions."""

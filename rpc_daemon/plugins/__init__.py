"""
Built-in agent plugins

Each subdirectory is one agent:

- puppetd: manage the puppet daemon (enable, disable, runonce, status)
"""

"""Shared constants and configuration defaults for the RPC agent host."""

# Logging defaults
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"

# Timeout defaults
DEFAULT_ACTION_TIMEOUT = 20.0       # seconds an action may run before it is aborted

# Plugin discovery
PLUGIN_MARKER = "rpc_plugin"
PLUGINCONF_PREFIX = "plugin."

# puppetd agent defaults
DEFAULT_PUPPETD_SPLAYTIME = 0
DEFAULT_PUPPETD_LOCKFILE = "/var/lib/puppet/state/puppetdlock"
DEFAULT_PUPPETD_STATEFILE = "/var/lib/puppet/state/state.yaml"
DEFAULT_PUPPETD_BINARY = "/usr/sbin/puppetd"

# Option sanitizer defaults
DEFAULT_OPTIONS_WHITELIST = ["--noop", "--no-noop"]
DEFAULT_OPTIONS_ILLEGAL_CHARS = r"[$;&|]"
DEFAULT_OPTIONS_REGEX = r"""(--[\w-]+)( +(=?["'\d\w][\w\-\d."']+))?"""

from mkdocs.exceptions import PluginError


class AutoWebError(PluginError):
    """Raised when pages or templates are configured in a way that would
    drop required chunks or point at nothing."""

from cfn_hotswap.version import __version__  # noqa: F401

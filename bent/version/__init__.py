from bent.version.bent_version import BENT_VERSION, Version

__all__ = ["BENT_VERSION", "Version"]

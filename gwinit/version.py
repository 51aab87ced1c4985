# Version format: MAJOR.MINOR[.devN]
# - Use .dev0 suffix during development
# - Remove .dev0 for stable releases
__version__ = "0.1.dev0"

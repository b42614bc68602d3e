"""ITGIO Linux version information."""

__version__ = "0.1.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - Initial release: ITGIO button polling and light writes over
#         SextetStream named pipes, one translator per pad, config file,
#         detect / setup-udev commands

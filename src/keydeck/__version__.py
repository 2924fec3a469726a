"""keydeck version information."""

__version__ = "0.3.1"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Version history:
# 0.1.0 - Initial release: 15-key layout, reset, handlers, key images via hidapi
# 0.2.0 - One-shot handlers removed mid-report, diagnostic hook for unexpected
#         reports, typed errors wrapping transport failures
# 0.3.0 - pyusb backend, CLI (detect/select/image/color/clear/watch), XDG config
# 0.3.1 - Global handler receives GLOBAL_KEY, pyusb open failures reattach the
#         kernel driver, image size limit no longer changes Pillow globals

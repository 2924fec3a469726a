#!/usr/bin/env python3
"""
keydeck - Command Line Interface

Entry point for the keydeck package.
"""

import argparse
import logging
import os
import sys

from keydeck.__version__ import __version__
from keydeck.errors import DeckError

_ERRORS = (DeckError, OSError, ValueError)


def _setup_logging(verbose=0):
    """Configure logging based on verbosity (filter out noisy PIL)."""
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG, format='[%(levelname)s] %(name)s: %(message)s')
        logging.getLogger('PIL').setLevel(logging.WARNING)
    elif verbose == 1:
        logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING, format='[%(levelname)s] %(message)s')


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="keydeck",
        description="Control a 15-key USB keypad with per-key displays",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    keydeck detect                List connected keypads
    keydeck select CL12345        Use the keypad with this serial
    keydeck reset                 Restore the factory display
    keydeck image 0 play.png      Show a 72x72 PNG on key 0
    keydeck color 4 ff0000        Fill key 4 with red
    keydeck clear 0               Blank key 0
    keydeck watch                 Print key presses until Ctrl+C
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv)"
    )
    parser.add_argument(
        "--backend",
        choices=["hidapi", "pyusb"],
        help="USB backend (default: saved config, else hidapi)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    detect_parser = subparsers.add_parser("detect", help="List connected keypads")
    detect_parser.add_argument("--all", "-a", action="store_true",
                               help="Include unsupported devices from the same vendor")

    select_parser = subparsers.add_parser("select", help="Select keypad by serial")
    select_parser.add_argument("serial", nargs="?", help="Serial number (omit to clear)")

    subparsers.add_parser("reset", help="Restore factory display state")

    image_parser = subparsers.add_parser("image", help="Show a PNG on a key")
    image_parser.add_argument("key", type=int, help="Key index (0-14)")
    image_parser.add_argument("image", help="72x72 PNG file")

    color_parser = subparsers.add_parser("color", help="Fill a key with a solid color")
    color_parser.add_argument("key", type=int, help="Key index (0-14)")
    color_parser.add_argument("hex", help="Hex color code (e.g., ff0000 for red)")

    clear_parser = subparsers.add_parser("clear", help="Blank a key")
    clear_parser.add_argument("key", type=int, help="Key index (0-14)")

    subparsers.add_parser("clear-all", help="Blank every key")

    watch_parser = subparsers.add_parser("watch", help="Print key presses")
    watch_parser.add_argument("--timeout", "-t", type=int,
                              help="Read timeout per poll in ms (default: config, 100)")
    watch_parser.add_argument("--count", "-n", type=int, default=0,
                              help="Stop after N presses (default: run until Ctrl+C)")

    config_parser = subparsers.add_parser("config", help="Show or change settings")
    config_parser.add_argument("--set-backend", choices=["hidapi", "pyusb"],
                               help="Save default USB backend")
    config_parser.add_argument("--set-poll-timeout", type=int, metavar="MS",
                               help="Save default watch poll timeout")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _setup_logging(args.verbose)
    backend = args.backend

    if args.command == "detect":
        return detect(show_all=args.all, backend=backend)
    elif args.command == "select":
        return select_keypad(args.serial, backend=backend)
    elif args.command == "reset":
        return reset_keypad(backend=backend)
    elif args.command == "image":
        return set_image(args.key, args.image, backend=backend)
    elif args.command == "color":
        return set_color(args.key, args.hex, backend=backend)
    elif args.command == "clear":
        return clear_key(args.key, backend=backend)
    elif args.command == "clear-all":
        return clear_all(backend=backend)
    elif args.command == "watch":
        return watch(timeout=args.timeout, count=args.count, backend=backend)
    elif args.command == "config":
        return configure(backend=args.set_backend, poll_timeout=args.set_poll_timeout)

    return 0


def _open(backend=None):
    """Open the selected (or first) keypad."""
    from keydeck import conf
    from keydeck.keypad import open_keypad

    return open_keypad(
        serial=conf.get_selected_serial(),
        backend=backend or conf.get_backend(),
    )


def detect(show_all=False, backend=None):
    """List keypads."""
    try:
        from keydeck import conf
        from keydeck.device_detector import find_keypads, format_keypad

        devices = find_keypads(backend or conf.get_backend())
        if not show_all:
            devices = [d for d in devices if d.supported]
        if not devices:
            print("No compatible keypad detected.")
            return 1

        selected = conf.get_selected_serial()
        for i, dev in enumerate(devices, 1):
            marker = "*" if selected and dev.serial == selected else " "
            print(f"{marker} [{i}] {format_keypad(dev)}")
        if len(devices) > 1:
            print("\nUse 'keydeck select SERIAL' to choose a keypad")
        return 0
    except _ERRORS as e:
        print(f"Error: {e}")
        return 1


def select_keypad(serial=None, backend=None):
    """Persist the keypad to use, by serial."""
    try:
        from keydeck import conf
        from keydeck.device_detector import find_keypads

        if serial is None:
            conf.save_selected_serial(None)
            print("Selection cleared (first keypad will be used)")
            return 0

        devices = find_keypads(backend or conf.get_backend())
        if not any(d.serial == serial for d in devices):
            print(f"Error: No keypad with serial {serial}")
            return 1

        conf.save_selected_serial(serial)
        print(f"Selected: {serial}")
        return 0
    except _ERRORS as e:
        print(f"Error: {e}")
        return 1


def reset_keypad(backend=None):
    """Restore the factory display."""
    try:
        with _open(backend) as deck:
            deck.reset()
        print("Keypad reset")
        return 0
    except _ERRORS as e:
        print(f"Error resetting keypad: {e}")
        return 1


def set_image(key, image_path, backend=None):
    """Show a PNG on one key."""
    try:
        if not os.path.exists(image_path):
            print(f"Error: File not found: {image_path}")
            return 1

        with _open(backend) as deck:
            deck.set_key_image(key, image_path)
        print(f"Sent {image_path} to key {key}")
        return 0
    except _ERRORS as e:
        print(f"Error sending image: {e}")
        return 1


def set_color(key, hex_color, backend=None):
    """Fill one key with a solid color."""
    try:
        from PIL import Image

        hex_color = hex_color.lstrip('#')
        if len(hex_color) != 6:
            print("Error: Invalid hex color. Use format: ff0000")
            return 1

        r = int(hex_color[0:2], 16)
        g = int(hex_color[2:4], 16)
        b = int(hex_color[4:6], 16)

        with _open(backend) as deck:
            image = Image.new('RGB', deck.layout.canvas_size, (r, g, b))
            deck.set_key_image(key, image)
        print(f"Sent color #{hex_color} to key {key}")
        return 0
    except _ERRORS as e:
        print(f"Error sending color: {e}")
        return 1


def clear_key(key, backend=None):
    """Blank one key."""
    try:
        with _open(backend) as deck:
            deck.clear_key_image(key)
        print(f"Cleared key {key}")
        return 0
    except _ERRORS as e:
        print(f"Error clearing key: {e}")
        return 1


def clear_all(backend=None):
    """Blank every key."""
    try:
        with _open(backend) as deck:
            deck.clear_all_images()
            total = deck.key_count
        print(f"Cleared {total} keys")
        return 0
    except _ERRORS as e:
        print(f"Error clearing keys: {e}")
        return 1


def watch(timeout=None, count=0, backend=None):
    """Print key presses until interrupted or *count* presses were seen."""
    from keydeck import conf

    if timeout is None:
        timeout = conf.get_poll_timeout()

    seen = 0

    def on_press(key):
        nonlocal seen
        seen += 1
        print(f"Key {key} pressed")
        sys.stdout.flush()
        return True

    try:
        with _open(backend) as deck:
            deck.on_diagnostic = lambda msg: print(f"[!] {msg}")
            for key in range(deck.key_count):
                deck.set_key_handler(key, on_press)
            print("Watching for key presses (Ctrl+C to stop)...")
            while not count or seen < count:
                deck.process_events(timeout)
        return 0
    except KeyboardInterrupt:
        print()
        return 0
    except _ERRORS as e:
        print(f"Error: {e}")
        return 1


def configure(backend=None, poll_timeout=None):
    """Show settings, saving any that were given."""
    try:
        from keydeck import conf

        if backend is not None:
            conf.save_backend(backend)
        if poll_timeout is not None:
            conf.save_poll_timeout(poll_timeout)

        print(f"Config:       {conf.CONFIG_PATH}")
        print(f"Backend:      {conf.get_backend()}")
        print(f"Poll timeout: {conf.get_poll_timeout()} ms")
        print(f"Selected:     {conf.get_selected_serial() or '(first keypad)'}")
        return 0
    except _ERRORS as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

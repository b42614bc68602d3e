#!/usr/bin/env python3
"""
ITGIO Linux - Command Line Interface

Entry points for the itgio-linux package.
"""

import argparse
import logging
import os
import subprocess
import sys

from itgio.__version__ import __version__

log = logging.getLogger(__name__)

UDEV_RULES_PATH = "/etc/udev/rules.d/99-itgio.rules"


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="itgio",
        description="ITGIO dance pad to SextetStream pipe bridge",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    itgio run                         Serve all pads on /opt/itgio_N-{lights,buttons}
    itgio run --base-path /tmp/pad    Use /tmp/pad_N-{lights,buttons}
    itgio detect                      List connected pads
    itgio setup-udev --dry-run        Show udev rules for non-root access
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
        help="Increase verbosity (-v, -vv, -vvv)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Bridge pads to named pipes")
    run_parser.add_argument("--base-path", "-b", help="Pipe base path (default from config)")
    run_parser.add_argument("--poll-ms", type=int, help="Button poll interval in ms")
    run_parser.add_argument("--timeout-ms", type=int, help="USB control transfer timeout in ms")

    # Detect command
    subparsers.add_parser("detect", help="List connected ITGIO devices")

    # Setup udev rules command
    udev_parser = subparsers.add_parser("setup-udev", help="Install udev rules for device access")
    udev_parser.add_argument("--dry-run", action="store_true", help="Print rules without installing")

    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return run(base_path=args.base_path, poll_ms=args.poll_ms,
                   timeout_ms=args.timeout_ms)
    elif args.command == "detect":
        return detect()
    elif args.command == "setup-udev":
        return setup_udev(dry_run=args.dry_run)

    return 0


def setup_logging(verbose=0):
    """Configure the root logger from the -v count."""
    if verbose >= 2:
        logging.basicConfig(level=logging.DEBUG, format='[%(levelname)s] %(name)s: %(message)s')
        if verbose < 3:
            logging.getLogger('usb').setLevel(logging.WARNING)
    elif verbose == 1:
        logging.basicConfig(level=logging.INFO, format='[%(levelname)s] %(message)s')
    else:
        logging.basicConfig(level=logging.WARNING)


def _resolve_settings(base_path=None, poll_ms=None, timeout_ms=None):
    """Config-file settings with command-line overrides applied."""
    from itgio.conf import load_settings

    settings = load_settings()
    if base_path:
        settings.base_path = base_path
    if poll_ms is not None and poll_ms > 0:
        settings.poll_interval_ms = poll_ms
    if timeout_ms is not None and timeout_ms > 0:
        settings.control_timeout_ms = timeout_ms
    return settings


def run(base_path=None, poll_ms=None, timeout_ms=None):
    """Serve every connected pad until the first one fails."""
    import usb.core

    from itgio.device_itgio import find_devices
    from itgio.translator import ItgioTranslator

    settings = _resolve_settings(base_path, poll_ms, timeout_ms)

    try:
        devices = find_devices(timeout_ms=settings.control_timeout_ms)
    except (usb.core.NoBackendError, usb.core.USBError) as e:
        log.error("Failed to enumerate ITGIO devices: %s", e)
        print(f"Error: {e}")
        return 1

    if not devices:
        print("No matching devices found.")
        return 1
    if len(devices) == 1:
        log.info("Found device at %s", devices[0].ident)
    else:
        log.warning("Multiple matching devices found, only the first one's exit is watched")

    translators = []
    try:
        for index, device in enumerate(devices):
            stream_base = settings.stream_base_path(index)
            try:
                translator = ItgioTranslator(stream_base, device,
                                             poll_interval=settings.poll_interval)
            except Exception as e:
                log.error("Failed to initialize translator for device %s due to error %s",
                          device.ident, e)
                continue

            try:
                translator.start()
            except Exception as e:
                log.error("Failed to start translator for device %s due to error %s",
                          device.ident, e)
                translator.close()
                continue
            except BaseException:
                # Ctrl-C while waiting for the host to open the pipes
                translator.close()
                raise

            log.info("Serving %s on %s / %s", device.ident,
                     translator.reader_path, translator.writer_path)
            translators.append(translator)

        if not translators:
            print("No device could be started.")
            return 1

        translators[0].wait_exit()
        log.error("Translator for %s exited", translators[0].device.ident)
        return 1
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
        return 0
    finally:
        for translator in translators:
            translator.close()


def _format_device(dev):
    """Format a found device for display."""
    bus = getattr(dev.device, "bus", None)
    address = getattr(dev.device, "address", None)
    return f"[{dev.ident}] bus {bus} address {address}"


def detect():
    """List connected ITGIO devices."""
    try:
        from itgio.device_itgio import find_devices

        devices = find_devices()
        if not devices:
            print("No ITGIO device detected.")
            return 1

        for i, dev in enumerate(devices):
            print(f"  [{i}] {_format_device(dev)}")
        return 0
    except Exception as e:
        print(f"Error: {e}")
        return 1


def render_udev_rules():
    """udev rules granting non-root access to every known ITGIO id."""
    from itgio.device_itgio import KNOWN_IDS

    lines = ["# ITGIO dance pad controllers — auto-generated by itgio setup-udev"]
    for ident in KNOWN_IDS:
        lines.append(
            f'SUBSYSTEM=="usb", '
            f'ATTRS{{idVendor}}=="{ident.vid:04x}", '
            f'ATTRS{{idProduct}}=="{ident.pid:04x}", '
            f'MODE="0666"'
        )
    return "\n".join(lines) + "\n"


def setup_udev(dry_run=False):
    """Generate and install udev rules for the known ITGIO ids."""
    try:
        rules_content = render_udev_rules()

        if dry_run:
            print("=== udev rules ===")
            print(rules_content)
            print(f"# Would write to {UDEV_RULES_PATH}")
            return 0

        # Need root
        if os.geteuid() != 0:
            print("Error: root required. Run with:")
            print("  sudo itgio setup-udev")
            print("\nOr preview first:")
            print("  itgio setup-udev --dry-run")
            return 1

        with open(UDEV_RULES_PATH, "w") as f:
            f.write(rules_content)
        print(f"Wrote {UDEV_RULES_PATH}")

        # Reload udev
        subprocess.run(["udevadm", "control", "--reload-rules"], check=False)
        subprocess.run(["udevadm", "trigger"], check=False)
        print("\nDone. Replug your pad for changes to take effect.")
        return 0

    except Exception as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())

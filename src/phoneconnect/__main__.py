"""Entry point for the ``dial`` command line client."""

import argparse
import asyncio
import logging
import signal
import sys

from . import __version__
from .audio import TelephonyCodec, create_backend, mac_to_card_name
from .config import AppConfig
from .errors import BluetoothError, DialError, EmptyDeviceId, GatewayError
from .gateway import GatewayClient, discover_gateway, validate_phone

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("phoneconnect")

_PROFILE_LABELS = {
    "headset-head-unit-msbc": "HFP mSBC (16 kHz)",
    "headset-head-unit": "HFP call audio",
    "headset-head-unit-cvsd": "HFP CVSD (8 kHz)",
    "audio-gateway": "HFP Audio Gateway",
}


def setup_logging(level_name: str) -> None:
    """Configure logging to stderr (stdout carries command output)."""
    level = getattr(logging, level_name.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    # Quiet noisy libraries
    logging.getLogger("dbus_next").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def _configured_log_level() -> str:
    try:
        return AppConfig.load().log_level
    except DialError:
        return "warning"


def profile_label(profile: str | None) -> str:
    """Human-readable description of a card profile."""
    if profile is None:
        return "unknown"
    if profile in _PROFILE_LABELS:
        return _PROFILE_LABELS[profile]
    if profile.startswith("a2dp"):
        return "A2DP stereo"
    return profile or "off"


async def wait_for_shutdown(message: str) -> None:
    """Block until Ctrl+C / SIGTERM."""
    loop = asyncio.get_running_loop()
    shutdown_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Received shutdown signal")
        shutdown_event.set()

    signals = (signal.SIGTERM, signal.SIGINT)
    for sig in signals:
        loop.add_signal_handler(sig, _signal_handler)
    print(message)
    try:
        await shutdown_event.wait()
    finally:
        for sig in signals:
            loop.remove_signal_handler(sig)


async def resolve_config(timeout: float) -> AppConfig:
    """Load the config and auto-discover the gateway if the URL is a placeholder.

    A discovered URL is saved so later runs skip the scan.
    """
    config = AppConfig.load_or_create()

    if config.is_placeholder:
        print(f"◎ No gateway URL configured - scanning LAN ({timeout:g}s)...")
        found = await discover_gateway(timeout)
        if found is None:
            print(f"! No gateway found on LAN within {timeout:g}s.", file=sys.stderr)
            print(
                "  Start the gateway, or edit the config (`dial config path`) "
                "to set the URL manually.",
                file=sys.stderr,
            )
            raise GatewayError(
                0,
                "Gateway not found via mDNS. Make sure the server is running "
                "on the same network.",
            )
        print(f"✓ Gateway found at {found.host}:{found.port} - saving to config")
        config.server_url = found.url
        try:
            config.save()
        except OSError as e:
            print(f"warn: Could not save config: {e}", file=sys.stderr)

    config.validate()
    return config


# -- Commands --


async def cmd_call(args: argparse.Namespace) -> None:
    if not args.device_id.strip():
        raise EmptyDeviceId()
    validate_phone(args.number)

    config = await resolve_config(args.timeout)
    bt_mac = args.bt_mac or config.bt_mac

    async with create_backend() as backend:
        session = None
        if bt_mac:
            print("♫ Switching Bluetooth to HFP call-audio mode... ", end="", flush=True)
            try:
                session = await backend.activate(mac_to_card_name(bt_mac))
                print(f"done ({session.codec.label})")
            except BluetoothError as e:
                print()
                print(f"warn: BT switch failed: {e}", file=sys.stderr)
                print("  Continuing - audio will stay on the phone speaker.", file=sys.stderr)

        try:
            print(f"→ Dispatching call to {args.device_id} → {args.number}")
            async with GatewayClient(config) as client:
                result = await client.call(args.device_id, args.number)
            print("✓ Call command sent!")
            print(f"  Device : {result.device_id}")
            print(f"  Command: {result.command_id}")

            if session is not None:
                print()
                await wait_for_shutdown(
                    "  ♫ Call audio is routed to this computer via BT HFP.\n"
                    "  Press Ctrl+C when the call ends to restore music audio."
                )
        finally:
            if session is not None:
                await backend.release(session)
                print("♫ Bluetooth restored to music mode.")


async def cmd_devices(args: argparse.Namespace) -> None:
    config = await resolve_config(args.timeout)
    async with GatewayClient(config) as client:
        resp = await client.devices()

    if not resp.devices:
        print("○ No devices currently connected.")
        return
    print(f"● {resp.count} device(s) connected\n")
    for dev in resp.devices:
        print(f"  ─ {dev.device_id}  (connected since {dev.connected_at})")


async def cmd_status(args: argparse.Namespace) -> None:
    config = await resolve_config(args.timeout)
    async with GatewayClient(config) as client:
        health = await client.health()

    print("✓ Gateway is reachable")
    print(f"  URL:               {config.server_url}")
    uptime = health.get("uptime")
    if isinstance(uptime, (int, float)):
        print(f"  Uptime:            {uptime:.0f}s")
    count = health.get("connectedDevices")
    if isinstance(count, int):
        print(f"  Connected devices: {count}")


async def cmd_discover(args: argparse.Namespace) -> int:
    print(f"◎ Scanning for PhoneConnect gateway ({args.timeout:g}s)...")
    found = await discover_gateway(args.timeout)
    if found is None:
        print(f"✗ No gateway found within {args.timeout:g}s. Is the server running?", file=sys.stderr)
        return 1

    print(f"✓ Gateway found!\n  Host: {found.host}\n  Port: {found.port}\n  URL:  {found.url}")
    config = AppConfig.load_or_create()
    config.server_url = found.url
    config.save()
    print(f"↳ Saved to {AppConfig.path()}")
    return 0


async def cmd_config(args: argparse.Namespace) -> None:
    if args.action == "init":
        path = AppConfig.write_default()
        print(f"✓ Created config at {path}")
        print("  server_url is set to the placeholder - run `dial discover` to auto-detect the gateway.")
    elif args.action == "path":
        print(AppConfig.path())
    elif args.action == "show":
        config = AppConfig.load()
        print(f'server_url = "{config.server_url}"')
        print('token      = "***"')
        if config.bt_mac:
            print(f'bt_mac     = "{config.bt_mac}"')
        else:
            print("bt_mac     = (not set) (set to auto-switch BT on every call)")
        print(f'log_level  = "{config.log_level}"')
    elif args.action == "set-bt-mac":
        config = AppConfig.load()
        config.bt_mac = args.mac
        config.save()
        print(f"✓ Saved bt_mac = {args.mac} to config")
        print("  `dial call` will now switch BT to HFP before every call.")


async def cmd_bt(args: argparse.Namespace) -> None:
    async with create_backend() as backend:
        if args.action == "list":
            await _bt_list(backend)
        elif args.action == "hfp":
            await _bt_hfp(backend, args.mac)
        elif args.action == "a2dp":
            print(f"♫ Switching {args.mac} back to A2DP stereo... ", end="", flush=True)
            try:
                await backend.switch_to_music(mac_to_card_name(args.mac))
            except DialError:
                print("failed")
                raise
            print("done")
        elif args.action == "activate":
            card = mac_to_card_name(args.mac)
            print(f"♫ Opening HFP call audio on {args.mac}... ", end="", flush=True)
            try:
                session = await backend.activate(card)
            except DialError:
                print("failed")
                raise
            async with session:
                print(f"done ({session.codec.label})")
                await wait_for_shutdown("  Press Ctrl+C to close call audio and restore music mode.")
            print("♫ Bluetooth restored to music mode.")


async def _bt_list(backend) -> None:
    endpoints = await backend.list_endpoints()
    if not endpoints:
        if sys.platform.startswith("linux"):
            print("○ No Bluetooth audio devices found.\n  Make sure your phone is paired and BT is enabled.")
        else:
            print(
                "! `dial bt list` only works on Linux (pactl required).\n"
                "  On Windows / macOS, open Sound settings to view BT devices."
            )
        return

    print(f"● {len(endpoints)} Bluetooth device(s) found\n")
    for ep in sorted(endpoints, key=lambda e: e.address):
        name = ep.display_name or "(unknown)"
        print(f"  ─ {ep.address}  {name}  ({profile_label(ep.active_profile)})")
    print()
    print("  Switch to call audio : dial bt hfp <MAC>")
    print("  Switch back to music : dial bt a2dp <MAC>")


async def _bt_hfp(backend, mac: str) -> None:
    print(f"♫ Switching {mac} to HFP call-audio mode... ", end="", flush=True)
    try:
        codec = await backend.switch_to_telephony_only(mac_to_card_name(mac))
    except DialError:
        print("failed")
        raise

    print("done" if codec is TelephonyCodec.REMOTE_GATEWAY else f"done ({codec.label})")
    if codec is TelephonyCodec.REMOTE_GATEWAY:
        print("  ✓ Phone is in Audio Gateway mode - this computer is the HF unit.")
        print("  Audio will be bridged as soon as a call is active.")
    else:
        print("  ✓ Audio will now route to this computer when a call is active.")
        print(f"  To restore music audio after the call: dial bt a2dp {mac}")


# -- Parser --


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dial",
        description="PhoneConnect CLI - trigger phone calls through your Android device",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--timeout", type=float, default=5.0,
        help="discovery timeout in seconds (default: 5)",
    )
    parser.add_argument(
        "--log-level", choices=["debug", "info", "warning", "error"],
        help="log verbosity (default: from config, else warning)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    call = sub.add_parser("call", help="initiate a phone call via a connected Android device")
    call.add_argument("device_id", help="device ID shown in the PhoneConnect app (e.g. android_fd9de1fb)")
    call.add_argument("number", help="phone number in E.164 format (e.g. +919876543210)")
    call.add_argument(
        "--bt-mac", metavar="MAC",
        help="Bluetooth MAC of your phone/headset; routes call audio to this computer",
    )
    call.set_defaults(handler=cmd_call)

    sub.add_parser("devices", help="list devices connected to the gateway").set_defaults(handler=cmd_devices)
    sub.add_parser("status", help="check gateway health").set_defaults(handler=cmd_status)
    sub.add_parser(
        "discover", help="scan the LAN for a gateway and save its URL",
    ).set_defaults(handler=cmd_discover)

    config = sub.add_parser("config", help="manage configuration")
    config_sub = config.add_subparsers(dest="action", required=True)
    config_sub.add_parser("init", help="create a default config file")
    config_sub.add_parser("path", help="print the config file path")
    config_sub.add_parser("show", help="show current config values")
    set_mac = config_sub.add_parser("set-bt-mac", help="save a Bluetooth MAC for automatic call audio")
    set_mac.add_argument("mac", help="Bluetooth MAC address (AA:BB:CC:DD:EE:FF)")
    config.set_defaults(handler=cmd_config)

    bt = sub.add_parser("bt", help="Bluetooth audio helpers (Linux: PipeWire / PulseAudio)")
    bt_sub = bt.add_subparsers(dest="action", required=True)
    bt_sub.add_parser("list", help="list Bluetooth audio devices")
    for action, help_text in (
        ("hfp", "switch a device to the HFP call-audio profile"),
        ("a2dp", "switch a device back to the A2DP music profile"),
        ("activate", "open HFP call audio until Ctrl+C"),
    ):
        p = bt_sub.add_parser(action, help=help_text)
        p.add_argument("mac", help="Bluetooth MAC address (AA:BB:CC:DD:EE:FF)")
    bt.set_defaults(handler=cmd_bt)

    return parser


async def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run one command, return the exit status."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level or _configured_log_level())

    try:
        status = await args.handler(args)
    except DialError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return status or 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()

"""Shared constants for ITGIO Linux.

USB ids and HID control-transfer parameters for the ITGIO dance-pad
controller family, plus the SextetStream framing and timing values.
"""

# =========================================================================
# USB ids
# =========================================================================
# All known ITGIO revisions share the vendor id; the product id changes
# between board revisions.
ITGIO_VID = 0x07C0
ITGIO_PIDS = (0x1502, 0x1582, 0x1584)

# =========================================================================
# HID control transfers
# =========================================================================
# bmRequestType: class request, interface recipient
#   0xA1 = IN  (device → host)
#   0x21 = OUT (host → device)
HID_GET_REPORT = 0x01
HID_SET_REPORT = 0x09

HID_IFACE_IN_WVALUE = 256   # report type 1 (input), report id 0
HID_IFACE_OUT_WVALUE = 512  # report type 2 (output), report id 0
HID_WINDEX = 0

# Button and light reports are both a single little-endian u32
CONTROL_REPORT_SIZE = 4

# Control transfer timeout (ms).  Long enough to ride out a busy bus,
# short enough to bound one poll iteration.
CONTROL_TIMEOUT_MS = 50

# =========================================================================
# SextetStream
# =========================================================================
LINE_TERMINATOR = b"\n"

# Bits per stream byte
SEXTET_BITS = 6

# Only the low 16 button bits are reported to the host
BUTTON_BITMAP_BITS = 16

# Named pipes are read/write for owner and group
PIPE_MODE = 0o660

LIGHTS_SUFFIX = "-lights"
BUTTONS_SUFFIX = "-buttons"

# =========================================================================
# Timing
# =========================================================================
POLL_INTERVAL_S = 0.020  # button poll cadence (20 ms)

# How long close() waits for each translator thread
THREAD_JOIN_TIMEOUT_S = 0.5

# Default pipe base path; device N gets "{base}_{N}-lights" etc.
DEFAULT_BASE_PATH = "/opt/itgio"

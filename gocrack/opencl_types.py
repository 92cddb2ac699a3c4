"""OpenCL device types and error codes."""

from __future__ import annotations

import enum

__all__ = ["DeviceType", "CLError", "UnknownCLError", "to_error", "check"]


class DeviceType(enum.IntFlag):
    """Kind of OpenCL device, as a bit mask."""

    DEFAULT = 1 << 0
    CPU = 1 << 1
    GPU = 1 << 2
    ACCELERATOR = 1 << 3
    ALL = 0xFFFFFFFF

    def __str__(self) -> str:
        value = int(self)
        labels = [
            label
            for flag, label in (
                (DeviceType.CPU, "CPU"),
                (DeviceType.GPU, "GPU"),
                (DeviceType.ACCELERATOR, "Accelerator"),
                (DeviceType.DEFAULT, "Default"),
            )
            if value & int(flag)
        ]
        return "|".join(labels) if labels else "None"


_MESSAGES: dict[int, str] = {
    -1: "Device Not Found",
    -2: "Device Not Available",
    -3: "Compiler Not Available",
    -4: "Mem Object Allocation Failure",
    -5: "Out Of Resources",
    -6: "Out Of Host Memory",
    -7: "Profiling Info Not Available",
    -8: "Mem Copy Overlap",
    -9: "Image Format Mismatch",
    -10: "Image Format Not Supported",
    -11: "Build Program Failure",
    -12: "Map Failure",
    -13: "Misaligned Sub Buffer Offset",
    -14: "Exec Status Error For Events In Wait List",
    -15: "Compile Program Failure",
    -16: "Linker Not Available",
    -17: "Link Program Failure",
    -18: "Device Partition Failed",
    -19: "Kernel Arg Info Not Available",
    -30: "Invalid Value",
    -31: "Invalid Device Type",
    -32: "Invalid Platform",
    -33: "Invalid Device",
    -34: "Invalid Context",
    -35: "Invalid Queue Properties",
    -36: "Invalid Command Queue",
    -37: "Invalid Host Ptr",
    -38: "Invalid Mem Object",
    -39: "Invalid Image Format Descriptor",
    -40: "Invalid Image Size",
    -41: "Invalid Sampler",
    -42: "Invalid Binary",
    -43: "Invalid Build Options",
    -44: "Invalid Program",
    -45: "Invalid Program Executable",
    -46: "Invalid Kernel Name",
    -47: "Invalid Kernel Definition",
    -48: "Invalid Kernel",
    -49: "Invalid Arg Index",
    -50: "Invalid Arg Value",
    -51: "Invalid Arg Size",
    -52: "Invalid Kernel Args",
    -53: "Invalid Work Dimension",
    -54: "Invalid Work Group Size",
    -55: "Invalid Work Item Size",
    -56: "Invalid Global Offset",
    -57: "Invalid Event Wait List",
    -58: "Invalid Event",
    -59: "Invalid Operation",
    -60: "Invalid Gl Object",
    -61: "Invalid Buffer Size",
    -62: "Invalid Mip Level",
    -63: "Invalid Global Work Size",
    -64: "Invalid Property",
    -65: "Invalid Image Descriptor",
    -66: "Invalid Compiler Options",
    -67: "Invalid Linker Options",
    -68: "Invalid Device Partition Count",
    -1001: "No valid ICDs found",
}


class CLError(Exception):
    """An error reported by an OpenCL call."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"cl: {message}")
        self.code = code
        self.message = message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CLError):
            return NotImplemented
        return self.code == other.code

    def __hash__(self) -> int:
        return hash(self.code)


class UnknownCLError(CLError):
    """An OpenCL error code without a known meaning."""

    def __init__(self, code: int) -> None:
        super().__init__(code, f"error {code}")


def to_error(code: int) -> CLError | None:
    """Return the error for an OpenCL status code, or None on success."""
    if code == 0:
        return None
    message = _MESSAGES.get(code)
    if message is None:
        return UnknownCLError(code)
    return CLError(code, message)


def check(code: int) -> None:
    """Raise the matching CLError if the status code is not a success."""
    error = to_error(code)
    if error is not None:
        raise error
from inlinepic.detect import DetectionSignals, ProtocolKind, supported_protocols

GREEN = "\033[32m"
RED = "\033[31m"
YELLOW = "\033[33m"
RESET = "\033[0m"

LABELS = {
    ProtocolKind.ITERM2: "iTerm2:",
    ProtocolKind.KITTY: "Kitty: ",
    ProtocolKind.SIXEL: "Sixel: ",
}


def _paint(text: str, code: str, colour: bool) -> str:
    return f"{code}{text}{RESET}" if colour else text


def protocol_report(signals: DetectionSignals, image_bytes: int | None = None, colour: bool = True) -> str:
    """Summarise which graphics protocols the environment advertises."""
    support = supported_protocols(signals)
    lines = ["Protocol support:"]
    for kind, label in LABELS.items():
        verdict = _paint("Yes", GREEN, colour) if support[kind] else _paint("No", RED, colour)
        lines.append(f"  {label} {verdict}")

    if image_bytes is not None:
        present = _paint("Yes", GREEN, colour) if image_bytes > 0 else _paint("No", RED, colour)
        lines.append(f"Image: {present} ({image_bytes} bytes)")

    if not any(support.values()):
        lines.append(_paint("No supported graphic protocols detected.", YELLOW, colour))
    return "\n".join(lines)
